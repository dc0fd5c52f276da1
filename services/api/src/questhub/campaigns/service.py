"""Campaign admission controller and console management."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.campaigns.schemas import BotJoinResponse, CampaignCreate, JoinedCampaign
from questhub.codes import generate_unique_activation_code, is_valid_activation_code
from questhub.config import get_settings
from questhub.db.models import Campaign, CampaignStatus, Mission, UserCampaign
from questhub.errors import (
    AlreadyJoined,
    CampaignEnded,
    CampaignFull,
    CampaignHasMissions,
    CampaignNotActive,
    CampaignNotFound,
    CampaignNotStarted,
    InvalidActivationCode,
    ValidationFailed,
)
from questhub.identity.schemas import TelegramIdentity
from questhub.identity.service import resolve_user

logger = logging.getLogger(__name__)

# Allowed console status transitions
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    CampaignStatus.DRAFT.value: frozenset({CampaignStatus.ACTIVE.value, CampaignStatus.ARCHIVED.value}),
    CampaignStatus.ACTIVE.value: frozenset({CampaignStatus.PAUSED.value, CampaignStatus.COMPLETED.value}),
    CampaignStatus.PAUSED.value: frozenset({CampaignStatus.ACTIVE.value, CampaignStatus.COMPLETED.value}),
    CampaignStatus.COMPLETED.value: frozenset({CampaignStatus.ARCHIVED.value}),
    CampaignStatus.ARCHIVED.value: frozenset(),
}


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


async def get_campaign(db: AsyncSession, campaign_id: uuid.UUID) -> Campaign:
    """Get a live campaign or raise ``CampaignNotFound``."""
    result = await db.execute(select(Campaign).where(Campaign.id == campaign_id, Campaign.deleted_at.is_(None)))
    campaign = result.scalar_one_or_none()
    if campaign is None:
        raise CampaignNotFound("Campaign not found.")
    return campaign


async def count_participants(db: AsyncSession, campaign_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(UserCampaign).where(UserCampaign.campaign_id == campaign_id)
    )
    return result.scalar_one()


async def is_member(db: AsyncSession, user_id: uuid.UUID, campaign_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(UserCampaign.user_id).where(UserCampaign.user_id == user_id, UserCampaign.campaign_id == campaign_id)
    )
    return result.first() is not None


async def lock_campaign_by_code(db: AsyncSession, activation_code: str) -> Campaign | None:
    """Locked read (``SELECT ... FOR UPDATE``) of the live campaign with this code.

    The lock serializes concurrent joins of the same campaign until the
    joining transaction ends, which keeps the capacity check race-free.
    """
    result = await db.execute(
        select(Campaign)
        .where(Campaign.activation_code == activation_code, Campaign.deleted_at.is_(None))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def check_joinable(campaign: Campaign, now: datetime | None = None) -> None:
    """Status and date-window checks, in order."""
    now = now or datetime.now(timezone.utc)
    if campaign.status != CampaignStatus.ACTIVE.value:
        raise CampaignNotActive
    if campaign.start_date is not None and now < _as_utc(campaign.start_date):
        raise CampaignNotStarted
    if campaign.end_date is not None and now > _as_utc(campaign.end_date):
        raise CampaignEnded


async def join_campaign(db: AsyncSession, user_id: uuid.UUID, activation_code: str) -> Campaign:
    """Admit a user to the campaign behind an activation code.

    Runs inside the caller's transaction; commit makes the membership
    visible and releases the campaign lock.

    Raises:
        InvalidActivationCode: The code is not exactly six digits.
        CampaignNotFound: No live campaign has this code.
        CampaignNotActive, CampaignNotStarted, CampaignEnded: Not joinable now.
        AlreadyJoined: A membership exists (checked, then enforced by the primary key).
        CampaignFull: ``max_participants`` reached.
    """
    if not is_valid_activation_code(activation_code):
        raise InvalidActivationCode

    campaign = await lock_campaign_by_code(db, activation_code)
    if campaign is None:
        raise CampaignNotFound
    check_joinable(campaign)

    if await is_member(db, user_id, campaign.id):
        raise AlreadyJoined

    if campaign.max_participants is not None:
        if await count_participants(db, campaign.id) >= campaign.max_participants:
            raise CampaignFull

    try:
        async with db.begin_nested():
            db.add(UserCampaign(user_id=user_id, campaign_id=campaign.id))
    except IntegrityError as e:
        raise AlreadyJoined from e

    logger.info("User %s joined campaign %s", user_id, campaign.id)
    return campaign


def campaign_tma_url(campaign_id: uuid.UUID) -> str:
    return f"{get_settings().tma_url.rstrip('/')}/campaign/{campaign_id}"


async def join_campaign_by_code(db: AsyncSession, identity: TelegramIdentity, activation_code: str) -> BotJoinResponse:
    """Bot deep-link flow: resolve the Telegram user, then admit them."""
    user = await resolve_user(db, identity)
    campaign = await join_campaign(db, user.id, activation_code)
    return BotJoinResponse(
        campaign_id=campaign.id,
        title=campaign.title,
        campaign_cover_url=campaign.cover_url,
        campaign_tma_url=campaign_tma_url(campaign.id),
    )


async def list_joined_campaigns(db: AsyncSession, user_id: uuid.UUID) -> list[JoinedCampaign]:
    """Live campaigns the user has joined, most recent first."""
    rows = await db.execute(
        select(Campaign, UserCampaign.joined_at)
        .join(UserCampaign, UserCampaign.campaign_id == Campaign.id)
        .where(UserCampaign.user_id == user_id, Campaign.deleted_at.is_(None))
        .order_by(UserCampaign.joined_at.desc())
    )
    return [
        JoinedCampaign(
            id=c.id,
            title=c.title,
            description=c.description,
            status=c.status,
            start_date=c.start_date,
            end_date=c.end_date,
            cover_url=c.cover_url,
            icon_url=c.icon_url,
            joined_at=joined_at,
        )
        for c, joined_at in rows.all()
    ]


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


async def create_campaign(db: AsyncSession, body: CampaignCreate, manager_id: uuid.UUID | None = None) -> Campaign:
    """Create a DRAFT campaign with a fresh activation code. Does not commit."""
    campaign = Campaign(
        title=body.title,
        description=body.description,
        activation_code=await generate_unique_activation_code(db),
        status=CampaignStatus.DRAFT.value,
        start_date=body.start_date,
        end_date=body.end_date,
        max_participants=body.max_participants,
        cover_url=body.cover_url,
        icon_url=body.icon_url,
        created_by=manager_id,
    )
    db.add(campaign)
    await db.flush()
    logger.info("Created campaign %s (%s) code=%s", campaign.id, campaign.title, campaign.activation_code)
    return campaign


async def update_campaign_status(db: AsyncSession, campaign_id: uuid.UUID, status: str) -> Campaign:
    """Move a campaign through its lifecycle.

    Raises:
        ValidationFailed: The transition is not allowed.
    """
    campaign = await get_campaign(db, campaign_id)
    if status == campaign.status:
        return campaign
    allowed = STATUS_TRANSITIONS.get(campaign.status, frozenset())
    if status not in allowed:
        raise ValidationFailed(
            f"Cannot change campaign status from {campaign.status} to {status}.",
            code="INVALID_STATUS_TRANSITION",
        )
    logger.info("Campaign %s status %s -> %s", campaign.id, campaign.status, status)
    campaign.status = status
    await db.flush()
    return campaign


async def delete_campaign(db: AsyncSession, campaign_id: uuid.UUID) -> Campaign:
    """Soft-delete a campaign that has no live missions. Does not commit."""
    campaign = await get_campaign(db, campaign_id)
    missions = (
        await db.execute(
            select(func.count())
            .select_from(Mission)
            .where(Mission.campaign_id == campaign_id, Mission.deleted_at.is_(None))
        )
    ).scalar_one()
    if missions:
        raise CampaignHasMissions
    campaign.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    return campaign
