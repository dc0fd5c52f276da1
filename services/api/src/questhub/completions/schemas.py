"""Completion schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    mission_id: uuid.UUID
    status: str
    result_data: Any = None
    moderator_id: uuid.UUID | None = None
    moderator_comment: str | None = None
    created_at: datetime
    updated_at: datetime


class CompletionWithUser(CompletionResponse):
    """Moderation queue entry."""

    tg_id: int
    username: str | None = None
    first_name: str | None = None


class CompletionListResponse(BaseModel):
    completions: list[CompletionWithUser]
    total: int


class QuizRewards(BaseModel):
    experience: int
    mana: int


class QuizResult(BaseModel):
    passed: bool
    score: float
    total_questions: int
    correct_answers: int
    rewards: QuizRewards | None = None
    required_score: float | None = None


class CompletionStatusUpdate(BaseModel):
    """Moderator verdict."""

    status: Literal["APPROVED", "REJECTED"]
    comment: str | None = Field(None, max_length=2000)

    @field_validator("comment")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        return (v.strip() or None) if v is not None else None
