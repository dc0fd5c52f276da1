"""Campaign schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from questhub.identity.schemas import TelegramIdentity

CampaignStatusLiteral = Literal["DRAFT", "ACTIVE", "PAUSED", "COMPLETED", "ARCHIVED"]


class CampaignCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_participants: int | None = Field(None, ge=1)
    cover_url: str | None = None
    icon_url: str | None = None

    @model_validator(mode="after")
    def _window(self) -> CampaignCreate:
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            msg = "end_date must be after start_date"
            raise ValueError(msg)
        return self


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatusLiteral


class CampaignResponse(BaseModel):
    """Full campaign record."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str | None
    activation_code: str
    status: str
    start_date: datetime | None
    end_date: datetime | None
    max_participants: int | None
    cover_url: str | None
    icon_url: str | None
    created_by: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class JoinRequest(BaseModel):
    """Mini App join. Code format is checked by the admission controller."""

    activation_code: str = Field(..., max_length=32)


class JoinedCampaign(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str | None
    status: str
    start_date: datetime | None
    end_date: datetime | None
    cover_url: str | None
    icon_url: str | None
    joined_at: datetime


# ---------------------------------------------------------------------------
# Bot
# ---------------------------------------------------------------------------


class BotJoinRequest(BaseModel):
    tg_user: TelegramIdentity
    activation_code: str = Field(..., max_length=32)


class BotJoinResponse(BaseModel):
    campaign_id: uuid.UUID
    title: str
    campaign_cover_url: str | None
    campaign_tma_url: str
