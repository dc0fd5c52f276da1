"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, EmailStr, Field, field_validator

from questhub.identity.schemas import UserProfile


class TmaLoginRequest(BaseModel):
    """Raw Telegram WebApp initData string."""

    init_data: str = Field(..., min_length=1)


class ManagerLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TmaTokenResponse(TokenPair):
    user: UserProfile


class ManagerResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str | None
    role: str


class ManagerTokenResponse(TokenPair):
    manager: ManagerResponse
