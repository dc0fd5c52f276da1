"""Telegram bot webhook service.

Run with: uvicorn questhub.telegram_bot.app:app
"""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from questhub.config import get_settings
from questhub.middleware.error_handler import setup_error_handlers
from questhub.middleware.logging import setup_logging
from questhub.middleware.request_id import RequestIdMiddleware
from questhub.telegram_bot.backend import BackendClient
from questhub.telegram_bot.client import TelegramApiError, TelegramClient
from questhub.telegram_bot.handlers import UpdateHandler

logger = structlog.get_logger(__name__)


class SendMessageRequest(BaseModel):
    chat_id: int | str
    message: str = Field(..., min_length=1, max_length=4096)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    http = httpx.AsyncClient(timeout=settings.notification_timeout_seconds)
    telegram = TelegramClient(settings.telegram_bot_token, http, settings.telegram_api_base)
    app.state.telegram = telegram
    app.state.handler = UpdateHandler(telegram, BackendClient(settings.api_url, settings.api_key, http))
    logger.info("telegram_bot_started", api_url=settings.api_url)

    yield

    await http.aclose()


def get_telegram(request: Request) -> TelegramClient:
    return request.app.state.telegram


def get_handler(request: Request) -> UpdateHandler:
    return request.app.state.handler


async def require_bot_api_key(x_api_key: str | None = Header(default=None)) -> None:
    expected = get_settings().api_key
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid API key")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(title="QuestHub Bot", docs_url=None, redoc_url=None, lifespan=lifespan)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    @app.post("/webhook")
    async def webhook(
        request: Request,
        handler: UpdateHandler = Depends(get_handler),
        x_telegram_bot_api_secret_token: str | None = Header(default=None),
    ) -> dict[str, bool]:
        """Telegram update. Always acknowledged so Telegram does not redeliver."""
        secret = get_settings().telegram_webhook_secret
        if secret and not secrets.compare_digest(x_telegram_bot_api_secret_token or "", secret):
            raise HTTPException(status_code=401, detail="Unauthorized")
        try:
            update: Any = await request.json()
        except ValueError:
            logger.warning("webhook_invalid_json")
            return {"ok": True}
        if isinstance(update, dict):
            try:
                await handler.handle(update)
            except Exception:
                logger.exception("webhook_update_failed", update_id=update.get("update_id"))
        return {"ok": True}

    @app.post("/send-message", dependencies=[Depends(require_bot_api_key)])
    async def send_message(
        body: SendMessageRequest,
        telegram: TelegramClient = Depends(get_telegram),
    ) -> dict[str, Any]:
        """Deliver a message on behalf of the backend."""
        try:
            await telegram.send_message(body.chat_id, body.message)
        except (TelegramApiError, httpx.HTTPError) as e:
            logger.warning("send_message_failed", chat_id=body.chat_id, error=str(e))
            raise HTTPException(status_code=502, detail="Telegram API error") from e
        return {"success": True, "message": "Message sent successfully"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()
