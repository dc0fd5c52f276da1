"""
Outbound Telegram notifications.

The core never sends messages itself: settlement collects ``OutboundMessage``
values and the HTTP layer hands them to a notifier after the transaction
commits. Delivery is best-effort; a failure is logged and never reaches the
caller.

Backends (``QH_NOTIFICATION_BACKEND``):
    direct    POST to the bot gateway's ``/send-message`` inline
    queue     enqueue an arq job; the worker POSTs to the gateway
    disabled  log only
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

import httpx
import structlog

from questhub.config import get_settings
from questhub.redis_client import get_arq

logger = structlog.get_logger()

SEND_MESSAGE_JOB = "send_telegram_message"


@dataclass(frozen=True)
class OutboundMessage:
    chat_id: int
    text: str


class BaseNotifier(ABC):
    """Abstract base class for notification delivery."""

    @abstractmethod
    async def send(self, chat_id: int, text: str) -> bool:
        """Deliver one message. Returns True on success, never raises."""
        ...


class BotGatewayNotifier(BaseNotifier):
    """POST ``{chat_id, message}`` to the bot's ``/send-message`` endpoint."""

    def __init__(
        self,
        bot_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = f"{bot_url.rstrip('/')}/send-message"
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def _post(self, client: httpx.AsyncClient, chat_id: int, text: str) -> None:
        response = await client.post(
            self.endpoint,
            headers={"x-api-key": self.api_key},
            json={"chat_id": chat_id, "message": text},
            timeout=self.timeout,
        )
        response.raise_for_status()

    async def send(self, chat_id: int, text: str) -> bool:
        try:
            if self._client is not None:
                await self._post(self._client, chat_id, text)
            else:
                async with httpx.AsyncClient() as client:
                    await self._post(client, chat_id, text)
        except Exception:
            logger.exception("notification_send_failed", chat_id=chat_id, backend="direct")
            return False
        logger.info("notification_sent", chat_id=chat_id, backend="direct")
        return True


class QueuedNotifier(BaseNotifier):
    """Enqueue delivery on the arq worker."""

    async def send(self, chat_id: int, text: str) -> bool:
        try:
            await get_arq().enqueue_job(SEND_MESSAGE_JOB, chat_id, text)
        except Exception:
            logger.exception("notification_enqueue_failed", chat_id=chat_id)
            return False
        logger.info("notification_enqueued", chat_id=chat_id)
        return True


class NullNotifier(BaseNotifier):
    """Drop messages, logging them. Used when delivery is disabled."""

    async def send(self, chat_id: int, text: str) -> bool:
        logger.info("notification_dropped", chat_id=chat_id, text=text)
        return True


def create_notifier(backend: str | None = None) -> BaseNotifier:
    """Create the notifier selected by configuration."""
    settings = get_settings()
    name = (backend or settings.notification_backend).lower()

    if name == "direct":
        return BotGatewayNotifier(
            bot_url=settings.bot_url,
            api_key=settings.api_key,
            timeout=settings.notification_timeout_seconds,
        )
    if name == "queue":
        return QueuedNotifier()
    if name == "disabled":
        return NullNotifier()
    msg = f"Unsupported notification backend: {name}"
    raise ValueError(msg)


_notifier: BaseNotifier | None = None


def get_notifier() -> BaseNotifier:
    """Get or create the process-wide notifier (FastAPI dependency)."""
    global _notifier  # noqa: PLW0603
    if _notifier is None:
        _notifier = create_notifier()
    return _notifier


def set_notifier(notifier: BaseNotifier | None) -> None:
    """Replace the process-wide notifier. ``None`` resets to configuration."""
    global _notifier  # noqa: PLW0603
    _notifier = notifier


async def deliver_notifications(notifier: BaseNotifier, messages: Iterable[OutboundMessage]) -> int:
    """Send every message, swallowing failures. Returns how many were delivered."""
    delivered = 0
    for message in messages:
        try:
            if await notifier.send(message.chat_id, message.text):
                delivered += 1
        except Exception:
            logger.exception("notification_delivery_error", chat_id=message.chat_id)
    return delivered
