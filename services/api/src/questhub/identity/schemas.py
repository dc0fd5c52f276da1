"""Telegram identity and user profile schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TelegramIdentity(BaseModel):
    """The Telegram ``user`` object as sent by the bot and by WebApp initData."""

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., gt=0)
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    photo_url: str | None = None


class RankBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    priority: int
    image_url: str | None = None


class UserProfile(BaseModel):
    """Public profile of the authenticated Mini App user."""

    id: uuid.UUID
    tg_id: int
    username: str | None
    first_name: str | None
    last_name: str | None
    avatar_url: str | None
    experience_points: int
    mana_points: int
    rank: RankBrief | None = None
    created_at: datetime
