"""Store endpoints: Mini App catalogue, console item management."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import get_current_manager, get_current_user
from questhub.database import get_session, transaction
from questhub.db.models import Manager, StoreItem, User
from questhub.store.schemas import (
    StoreItemAdminResponse,
    StoreItemCreate,
    StoreItemListResponse,
    StoreItemResponse,
    StoreItemUpdate,
)
from questhub.store.service import (
    create_store_item,
    delete_store_item,
    get_store_item,
    list_available_items,
    list_store_items,
    update_store_item,
)

router = APIRouter(prefix="/api/tma/store", tags=["Mini App: Store"])
admin_router = APIRouter(prefix="/api/web/store", tags=["Console: Store"])


# ── Mini App ──


@router.get("", response_model=list[StoreItemResponse])
async def list_store_items_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await list_available_items(db, user.id)


# ── Console ──


def _page(items: list[StoreItem], total: int) -> StoreItemListResponse:
    return StoreItemListResponse(items=[StoreItemAdminResponse.model_validate(i) for i in items], total=total)


@admin_router.get("", response_model=StoreItemListResponse)
async def list_global_items_endpoint(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return _page(*await list_store_items(db, limit=limit, offset=offset))


@admin_router.post("", response_model=StoreItemAdminResponse, status_code=201)
async def create_global_item_endpoint(
    body: StoreItemCreate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    async with transaction(db):
        item = await create_store_item(db, body)
    return StoreItemAdminResponse.model_validate(item)


@admin_router.get("/campaigns/{campaign_id}/items", response_model=StoreItemListResponse)
async def list_campaign_items_endpoint(
    campaign_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return _page(*await list_store_items(db, campaign_id=campaign_id, limit=limit, offset=offset))


@admin_router.post("/campaigns/{campaign_id}/items", response_model=StoreItemAdminResponse, status_code=201)
async def create_campaign_item_endpoint(
    campaign_id: uuid.UUID,
    body: StoreItemCreate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Create an item sold only to participants of the campaign."""
    async with transaction(db):
        item = await create_store_item(db, body, campaign_id=campaign_id)
    return StoreItemAdminResponse.model_validate(item)


@admin_router.get("/{item_id}", response_model=StoreItemAdminResponse)
async def get_item_endpoint(
    item_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return StoreItemAdminResponse.model_validate(await get_store_item(db, item_id))


@admin_router.patch("/{item_id}", response_model=StoreItemAdminResponse)
async def update_item_endpoint(
    item_id: uuid.UUID,
    body: StoreItemUpdate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    async with transaction(db):
        item = await update_store_item(db, item_id, body)
    return StoreItemAdminResponse.model_validate(item)


@admin_router.delete("/{item_id}", status_code=204)
async def delete_item_endpoint(
    item_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    async with transaction(db):
        await delete_store_item(db, item_id)
    return Response(status_code=204)
