"""Minimal Telegram Bot API client (sendMessage, sendPhoto)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)


class TelegramApiError(Exception):
    """Telegram answered with ``ok: false`` or a non-JSON body."""


class TelegramClient:
    def __init__(self, bot_token: str, http: httpx.AsyncClient, api_base: str = "https://api.telegram.org") -> None:
        self._base = f"{api_base.rstrip('/')}/bot{bot_token}"
        self._http = http

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._http.post(f"{self._base}/{method}", json=payload)
        try:
            data = response.json()
        except ValueError as e:
            msg = f"{method}: HTTP {response.status_code} with non-JSON body"
            raise TelegramApiError(msg) from e
        if not data.get("ok"):
            msg = f"{method}: {data.get('description', 'unknown error')}"
            raise TelegramApiError(msg)
        return data

    async def send_message(self, chat_id: int | str, text: str) -> dict[str, Any]:
        return await self._call("sendMessage", {"chat_id": chat_id, "text": text})

    async def send_photo_with_button(
        self,
        chat_id: int | str,
        photo_url: str,
        caption: str,
        button_text: str,
        web_app_url: str,
    ) -> dict[str, Any]:
        """Photo with an inline button that opens the Mini App."""
        reply_markup = {"inline_keyboard": [[{"text": button_text, "web_app": {"url": web_app_url}}]]}
        return await self._call(
            "sendPhoto",
            {"chat_id": chat_id, "photo": photo_url, "caption": caption, "reply_markup": reply_markup},
        )
