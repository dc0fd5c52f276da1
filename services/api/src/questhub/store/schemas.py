"""Store schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StoreItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    image_url: str | None
    cost: int
    quantity: int | None
    campaign_id: uuid.UUID | None
    is_global: bool


class StoreItemAdminResponse(StoreItemResponse):
    is_active: bool
    created_at: datetime


class StoreItemListResponse(BaseModel):
    items: list[StoreItemAdminResponse]
    total: int


class StoreItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    cost: int = Field(..., ge=0)
    quantity: int | None = Field(None, ge=0)
    is_active: bool = True


class StoreItemUpdate(BaseModel):
    """Only the fields present in the request are changed. ``quantity: null`` means unlimited."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    cost: int | None = Field(None, ge=0)
    quantity: int | None = Field(None, ge=0)
    is_active: bool | None = None
