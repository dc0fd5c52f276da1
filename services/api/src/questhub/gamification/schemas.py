"""Achievement, rank and progress schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class AchievementUnlockConditions(BaseModel):
    required_missions: list[uuid.UUID] = Field(..., min_length=1)


class AchievementCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    unlock_conditions: AchievementUnlockConditions
    experience_reward: int = Field(0, ge=0)
    mana_reward: int = Field(0, ge=0)


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    campaign_id: uuid.UUID
    name: str
    description: str | None
    image_url: str | None
    unlock_conditions: dict[str, Any]
    experience_reward: int
    mana_reward: int
    created_at: datetime


class IdRequirementBody(BaseModel):
    ids: list[uuid.UUID] = Field(..., min_length=1)
    operator: Literal["AND", "OR"] = "OR"


class RankUnlockConditions(BaseModel):
    required_campaigns: IdRequirementBody | None = None
    required_achievements: IdRequirementBody | None = None


class RankCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    priority: int = Field(..., ge=0)
    unlock_conditions: RankUnlockConditions = Field(default_factory=RankUnlockConditions)


class RankResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str | None
    image_url: str | None
    priority: int
    unlock_conditions: dict[str, Any]
    created_at: datetime


class AchievementProgress(BaseModel):
    """One achievement of a joined campaign, with the user's state."""

    id: uuid.UUID
    name: str
    description: str | None
    image_url: str | None
    experience_reward: int
    mana_reward: int
    campaign_id: uuid.UUID
    campaign_title: str
    campaign_icon_url: str | None
    required_mission_titles: list[str]
    is_completed: bool
    awarded_at: datetime | None = None


class CompetencyProgress(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    progress_points: int


class EarnedAchievement(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    image_url: str | None
    awarded_at: datetime


# ---------------------------------------------------------------------------
# Competencies
# ---------------------------------------------------------------------------


class CompetencyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    campaign_id: uuid.UUID | None = None


class CompetencyUpdate(BaseModel):
    """Only the fields present in the request are changed."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class CompetencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    campaign_id: uuid.UUID | None
    is_global: bool


class CompetencyListResponse(BaseModel):
    competencies: list[CompetencyResponse]
    total: int
