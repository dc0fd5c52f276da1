"""arq worker delivering queued Telegram notifications.

Run with: arq questhub.notifications.worker.WorkerSettings
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from arq import Retry
from arq.connections import RedisSettings

from questhub.config import get_settings
from questhub.notifications.notifier import BotGatewayNotifier

logger = structlog.get_logger()

MAX_TRIES = 3


async def send_telegram_message(ctx: dict[str, Any], chat_id: int, text: str) -> bool:
    """Deliver one message through the bot gateway, retrying with backoff."""
    notifier: BotGatewayNotifier = ctx["notifier"]
    if await notifier.send(chat_id, text):
        return True
    job_try = ctx.get("job_try", 1)
    if job_try < MAX_TRIES:
        raise Retry(defer=job_try * 5)
    logger.error("notification_abandoned", chat_id=chat_id, tries=job_try)
    return False


async def startup(ctx: dict[str, Any]) -> None:
    settings = get_settings()
    ctx["http"] = httpx.AsyncClient()
    ctx["notifier"] = BotGatewayNotifier(
        bot_url=settings.bot_url,
        api_key=settings.api_key,
        timeout=settings.notification_timeout_seconds,
        client=ctx["http"],
    )
    logger.info("notification_worker_started", bot_url=settings.bot_url)


async def shutdown(ctx: dict[str, Any]) -> None:
    await ctx["http"].aclose()
    logger.info("notification_worker_stopped")


class WorkerSettings:
    """arq worker settings for outbound notifications."""

    functions = [send_telegram_message]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 10
    max_tries = MAX_TRIES
    job_timeout = 30
