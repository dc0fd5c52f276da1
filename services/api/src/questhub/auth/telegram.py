"""Telegram WebApp ``initData`` verification.

The Mini App forwards the raw query string Telegram hands it. Its ``hash``
field is an HMAC-SHA256 over the remaining fields, keyed with
``HMAC("WebAppData", bot_token)``.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from urllib.parse import parse_qsl

from pydantic import ValidationError

from questhub.identity.schemas import TelegramIdentity


class InvalidInitData(ValueError):
    """Raised when initData is malformed, unsigned, forged or stale."""


def compute_init_data_hash(fields: dict[str, str], bot_token: str) -> str:
    """Compute the expected ``hash`` value for the given initData fields."""
    data_check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    return hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()


def validate_init_data(
    init_data: str,
    bot_token: str,
    *,
    max_age_seconds: int = 86400,
    now: float | None = None,
) -> TelegramIdentity:
    """Verify the signature and freshness of initData and return the Telegram user."""
    if not init_data:
        raise InvalidInitData("initData is empty")
    if not bot_token:
        raise InvalidInitData("Bot token is not configured")

    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    received_hash = fields.pop("hash", "")
    if not received_hash:
        raise InvalidInitData("initData is not signed")

    expected = compute_init_data_hash(fields, bot_token)
    if not hmac.compare_digest(expected, received_hash):
        raise InvalidInitData("initData signature mismatch")

    try:
        auth_date = int(fields.get("auth_date", "0"))
    except ValueError as e:
        raise InvalidInitData("auth_date is not a timestamp") from e
    current = time.time() if now is None else now
    if max_age_seconds > 0 and current - auth_date > max_age_seconds:
        raise InvalidInitData("initData has expired")

    try:
        return TelegramIdentity.model_validate(json.loads(fields.get("user", "")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidInitData("initData carries no valid user") from e
