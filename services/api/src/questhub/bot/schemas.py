"""Bot API schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from questhub.identity.schemas import TelegramIdentity


class CompleteQrMissionRequest(BaseModel):
    tg_user: TelegramIdentity
    completion_code: str = Field(..., min_length=1, max_length=64)


class PingResponse(BaseModel):
    message: str = "pong"
