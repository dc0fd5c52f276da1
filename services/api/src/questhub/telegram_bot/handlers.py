"""Telegram update handling: deep links and the plain commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import httpx
import structlog

from questhub.telegram_bot.backend import BackendClient
from questhub.telegram_bot.client import TelegramApiError, TelegramClient

logger = structlog.get_logger(__name__)

OPEN_CAMPAIGN_BUTTON = "🚀 Open Campaign"
HELP_TEXT = (
    "Available commands:\n"
    "/start - Start the bot\n"
    "/help - Show this help message\n"
    "/ping - Check server connection"
)
UNKNOWN_TEXT = "Unknown command. Type /help for a list of commands."


@dataclass(frozen=True)
class DeepLink:
    kind: Literal["join", "qr"]
    code: str


def parse_deep_link(text: str) -> DeepLink | None:
    """``/start join_<code>`` or ``/start qr_<code>``; anything else is None."""
    parts = text.strip().split()
    if len(parts) < 2 or parts[0].split("@", 1)[0] != "/start":
        return None
    payload = parts[1]
    for prefix, kind in (("join_", "join"), ("qr_", "qr")):
        if payload.startswith(prefix) and len(payload) > len(prefix):
            return DeepLink(kind=kind, code=payload[len(prefix):])  # type: ignore[arg-type]
    return None


def joined_caption(title: str) -> str:
    return f"You have joined «{title}»! Open the campaign to see your missions."


class UpdateHandler:
    def __init__(self, telegram: TelegramClient, backend: BackendClient) -> None:
        self.telegram = telegram
        self.backend = backend

    async def _reply(self, chat_id: int, text: str) -> None:
        try:
            await self.telegram.send_message(chat_id, text)
        except (TelegramApiError, httpx.HTTPError):
            logger.exception("bot_reply_failed", chat_id=chat_id)

    async def handle(self, update: dict[str, Any]) -> None:
        message = update.get("message") or {}
        text = message.get("text")
        chat_id = (message.get("chat") or {}).get("id")
        user = message.get("from") or {}
        if not text or chat_id is None or not user.get("id"):
            return

        link = parse_deep_link(text)
        if link is not None and link.kind == "join":
            await self._join(chat_id, user, link.code)
            return
        if link is not None and link.kind == "qr":
            await self._complete_qr(chat_id, user, link.code)
            return

        command = text.strip().split()[0].split("@", 1)[0]
        if command == "/start":
            name = user.get("first_name") or "there"
            await self._reply(chat_id, f"Hello {name}! 👋\n\nI'm your Telegram bot. How can I help you today?")
        elif command == "/help":
            await self._reply(chat_id, HELP_TEXT)
        elif command == "/ping":
            result = await self.backend.ping()
            if result.ok:
                await self._reply(chat_id, f'✅ Server connection is OK.\nServer says: "{result.message}"')
            else:
                await self._reply(chat_id, f"❌ Failed to connect to server. {result.message}")
        else:
            await self._reply(chat_id, UNKNOWN_TEXT)

    async def _join(self, chat_id: int, user: dict[str, Any], code: str) -> None:
        logger.info("bot_join_attempt", tg_id=user["id"])
        result = await self.backend.join_campaign(user, code)
        if not result.ok:
            await self._reply(chat_id, result.message)
            return

        title = result.data.get("title", "")
        cover_url = result.data.get("campaign_cover_url")
        tma_url = result.data.get("campaign_tma_url")
        if not cover_url or not tma_url:
            await self._reply(chat_id, joined_caption(title))
            return
        try:
            await self.telegram.send_photo_with_button(
                chat_id, cover_url, joined_caption(title), OPEN_CAMPAIGN_BUTTON, tma_url
            )
        except (TelegramApiError, httpx.HTTPError):
            logger.exception("bot_join_photo_failed", chat_id=chat_id)
            await self._reply(chat_id, joined_caption(title))

    async def _complete_qr(self, chat_id: int, user: dict[str, Any], code: str) -> None:
        # On success the backend notifies the user through /send-message
        logger.info("bot_qr_attempt", tg_id=user["id"])
        result = await self.backend.complete_qr_mission(user, code)
        if not result.ok:
            await self._reply(chat_id, result.message)
