"""FastAPI application factory for the QuestHub backend."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from questhub.auth.router import admin_router as auth_admin_router
from questhub.auth.router import router as auth_router
from questhub.bot.router import router as bot_router
from questhub.campaigns.router import admin_router as campaigns_admin_router
from questhub.campaigns.router import router as campaigns_router
from questhub.completions.router import admin_router as completions_admin_router
from questhub.completions.router import router as completions_router
from questhub.config import get_settings
from questhub.database import close_db, init_db
from questhub.gamification.router import admin_router as gamification_admin_router
from questhub.gamification.router import router as gamification_router
from questhub.health.router import router as health_router
from questhub.identity.router import router as identity_router
from questhub.middleware import setup_middleware
from questhub.missions.router import admin_router as missions_admin_router
from questhub.missions.router import router as missions_router
from questhub.notifications.notifier import create_notifier, set_notifier
from questhub.redis_client import close_redis, init_arq, init_redis
from questhub.store.router import admin_router as store_admin_router
from questhub.store.router import router as store_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    if settings.notification_backend == "queue":
        await init_arq(settings.arq_redis_url)
    set_notifier(create_notifier(settings.notification_backend))

    yield

    set_notifier(None)
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="QuestHub API",
        description="Backend API for QuestHub campaigns: Telegram Mini App, bot and admin console",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(bot_router)
    app.include_router(auth_router)
    app.include_router(auth_admin_router)
    app.include_router(identity_router)
    app.include_router(campaigns_router)
    app.include_router(campaigns_admin_router)
    app.include_router(missions_router)
    app.include_router(missions_admin_router)
    app.include_router(completions_router)
    app.include_router(completions_admin_router)
    app.include_router(gamification_router)
    app.include_router(gamification_admin_router)
    app.include_router(store_router)
    app.include_router(store_admin_router)

    return app


app = create_app()
