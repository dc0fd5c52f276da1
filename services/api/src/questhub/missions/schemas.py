"""Mission schemas: console create bodies, Mini App views and typed submissions."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator

from questhub.codes import normalize_completion_code


class CompetencyReward(BaseModel):
    competency_id: uuid.UUID
    points: int = Field(..., gt=0)


class QuizAnswer(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuizQuestion(BaseModel):
    text: str = Field(..., min_length=1)
    answers: list[QuizAnswer] = Field(..., min_length=2)

    @model_validator(mode="after")
    def _has_correct_answer(self) -> QuizQuestion:
        if not any(a.is_correct for a in self.answers):
            msg = "Each question needs at least one correct answer"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Console: create (one body per mission type)
# ---------------------------------------------------------------------------


class _MissionCreateBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=64)
    cover_url: str | None = None
    experience_reward: int = Field(0, ge=0)
    mana_reward: int = Field(0, ge=0)
    competency_rewards: list[CompetencyReward] = Field(default_factory=list)
    required_rank_id: uuid.UUID | None = None
    required_achievement_id: uuid.UUID | None = None


class ManualUrlMissionCreate(_MissionCreateBase):
    type: Literal["MANUAL_URL"]
    submission_prompt: str = Field(..., min_length=1)
    placeholder_text: str | None = Field(None, max_length=255)


class QuizMissionCreate(_MissionCreateBase):
    type: Literal["QUIZ"]
    questions: list[QuizQuestion] = Field(..., min_length=1)
    pass_threshold: float = Field(1.0, gt=0, le=1)


class QrMissionCreate(_MissionCreateBase):
    type: Literal["QR_CODE"]
    completion_code: str | None = Field(None, min_length=4, max_length=64, pattern=r"^[A-Za-z0-9]+$")

    @field_validator("completion_code")
    @classmethod
    def _upper(cls, v: str | None) -> str | None:
        return v.upper() if v else v


MissionCreate = Annotated[
    Union[ManualUrlMissionCreate, QuizMissionCreate, QrMissionCreate],
    Field(discriminator="type"),
]


class MissionAdminResponse(BaseModel):
    """Full mission record for the console, answer key and QR secret included."""

    id: uuid.UUID
    campaign_id: uuid.UUID
    title: str
    description: str | None
    category: str | None
    cover_url: str | None
    type: str
    experience_reward: int
    mana_reward: int
    competency_rewards: list[dict[str, Any]]
    required_rank_id: uuid.UUID | None
    required_achievement_id: uuid.UUID | None
    details: dict[str, Any] | None
    created_at: datetime


# ---------------------------------------------------------------------------
# Mini App: views
# ---------------------------------------------------------------------------


class MissionView(BaseModel):
    """A mission as the participant sees it. Never carries the answer key."""

    id: uuid.UUID
    campaign_id: uuid.UUID
    title: str
    description: str | None
    category: str | None
    cover_url: str | None
    type: str
    experience_reward: int
    mana_reward: int
    competency_rewards: list[dict[str, Any]]
    required_rank_id: uuid.UUID | None
    required_achievement_id: uuid.UUID | None
    required_achievement_name: str | None = None
    is_locked: bool
    is_completed: bool
    completion_status: str | None = None
    details: dict[str, Any] | None = None


class CampaignMissions(BaseModel):
    campaign_id: uuid.UUID
    campaign_title: str
    campaign_cover_url: str | None
    missions: list[MissionView]


class CompletedMission(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    category: str | None
    cover_url: str | None
    type: str
    experience_reward: int
    mana_reward: int
    completed_at: datetime


class CampaignCompletedMissions(BaseModel):
    campaign_id: uuid.UUID
    campaign_title: str
    campaign_cover_url: str | None
    missions: list[CompletedMission]


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


class UrlSubmission(BaseModel):
    type: Literal["MANUAL_URL"] = "MANUAL_URL"
    mission_id: uuid.UUID
    submission_url: HttpUrl


class QuizAnswerChoice(BaseModel):
    question_index: int = Field(..., ge=0)
    answer_index: int = Field(..., ge=0)


class QuizSubmission(BaseModel):
    type: Literal["QUIZ"] = "QUIZ"
    mission_id: uuid.UUID
    answers: list[QuizAnswerChoice] = Field(..., min_length=1)


class QrSubmission(BaseModel):
    type: Literal["QR_CODE"] = "QR_CODE"
    completion_code: str = Field(..., min_length=1, max_length=64)

    @field_validator("completion_code")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_completion_code(v)


Submission = Annotated[
    Union[UrlSubmission, QuizSubmission, QrSubmission],
    Field(discriminator="type"),
]
