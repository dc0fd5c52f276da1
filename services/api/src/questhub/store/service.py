"""Store catalogue: what a user can see, and console management."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import Campaign, CampaignStatus, StoreItem, UserCampaign
from questhub.errors import CampaignNotFound, StoreItemNotFound, ValidationFailed
from questhub.store.schemas import StoreItemCreate, StoreItemUpdate

logger = logging.getLogger(__name__)

# Fields that may not be cleared with an explicit null
_REQUIRED_FIELDS = ("name", "cost", "is_active")


async def list_available_items(db: AsyncSession, user_id: uuid.UUID) -> list[StoreItem]:
    """Active items that are global or belong to an active campaign the user joined.

    Global items come first, then by creation time.
    """
    joined_active = (
        select(UserCampaign.campaign_id)
        .join(Campaign, Campaign.id == UserCampaign.campaign_id)
        .where(
            UserCampaign.user_id == user_id,
            Campaign.status == CampaignStatus.ACTIVE.value,
            Campaign.deleted_at.is_(None),
        )
    )
    result = await db.execute(
        select(StoreItem)
        .where(
            StoreItem.deleted_at.is_(None),
            StoreItem.is_active.is_(True),
            or_(StoreItem.is_global.is_(True), StoreItem.campaign_id.in_(joined_active)),
        )
        .order_by(StoreItem.is_global.desc(), StoreItem.created_at.asc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


async def get_store_item(db: AsyncSession, item_id: uuid.UUID) -> StoreItem:
    result = await db.execute(select(StoreItem).where(StoreItem.id == item_id, StoreItem.deleted_at.is_(None)))
    item = result.scalar_one_or_none()
    if item is None:
        raise StoreItemNotFound
    return item


async def list_store_items(
    db: AsyncSession,
    *,
    campaign_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StoreItem], int]:
    """Global items, or one campaign's items when ``campaign_id`` is given. Newest first."""
    filters = [StoreItem.deleted_at.is_(None)]
    if campaign_id is None:
        filters.append(StoreItem.is_global.is_(True))
    else:
        filters.append(StoreItem.campaign_id == campaign_id)

    total = (await db.execute(select(func.count()).select_from(StoreItem).where(*filters))).scalar_one()
    result = await db.execute(
        select(StoreItem).where(*filters).order_by(StoreItem.created_at.desc()).limit(limit).offset(offset)
    )
    return list(result.scalars().all()), total


async def create_store_item(
    db: AsyncSession, body: StoreItemCreate, campaign_id: uuid.UUID | None = None
) -> StoreItem:
    """Create a global item, or a campaign item when ``campaign_id`` is given. Does not commit."""
    if campaign_id is not None:
        campaign = (
            await db.execute(select(Campaign.id).where(Campaign.id == campaign_id, Campaign.deleted_at.is_(None)))
        ).first()
        if campaign is None:
            raise CampaignNotFound("Campaign not found.")

    name = body.name.strip()
    if not name:
        raise ValidationFailed("Name is required and cannot be empty.")
    item = StoreItem(
        name=name,
        description=body.description,
        image_url=body.image_url,
        cost=body.cost,
        quantity=body.quantity,
        is_active=body.is_active,
        campaign_id=campaign_id,
        is_global=campaign_id is None,
    )
    db.add(item)
    await db.flush()
    logger.info("Created store item %s (%s) campaign=%s", item.id, item.name, campaign_id)
    return item


async def update_store_item(db: AsyncSession, item_id: uuid.UUID, body: StoreItemUpdate) -> StoreItem:
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailed("At least one field to update must be provided.")
    for key in _REQUIRED_FIELDS:
        if key in fields and fields[key] is None:
            raise ValidationFailed(f"{key} cannot be null.")
    if "name" in fields:
        fields["name"] = fields["name"].strip()
        if not fields["name"]:
            raise ValidationFailed("Name, if provided, cannot be empty.")

    item = await get_store_item(db, item_id)
    for key, value in fields.items():
        setattr(item, key, value)
    await db.flush()
    return item


async def delete_store_item(db: AsyncSession, item_id: uuid.UUID) -> StoreItem:
    """Soft-delete an item. Does not commit."""
    item = await get_store_item(db, item_id)
    item.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    return item
