"""Campaign endpoints: Mini App join/list, console CRUD."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import get_current_manager, get_current_user
from questhub.campaigns.schemas import (
    CampaignCreate,
    CampaignResponse,
    CampaignStatusUpdate,
    JoinedCampaign,
    JoinRequest,
)
from questhub.campaigns.service import (
    create_campaign,
    delete_campaign,
    get_campaign,
    join_campaign,
    list_joined_campaigns,
    update_campaign_status,
)
from questhub.database import get_session, transaction
from questhub.db.models import Manager, User
from questhub.gamification.schemas import EarnedAchievement
from questhub.gamification.service import list_earned_achievements

router = APIRouter(prefix="/api/tma/campaigns", tags=["Mini App: Campaigns"])
admin_router = APIRouter(prefix="/api/web/campaigns", tags=["Console: Campaigns"])


# ── Mini App ──


@router.post("/join", response_model=CampaignResponse)
async def join_campaign_endpoint(
    body: JoinRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Join a campaign by its 6-digit activation code."""
    async with transaction(db):
        campaign = await join_campaign(db, user.id, body.activation_code)
    return CampaignResponse.model_validate(campaign)


@router.get("", response_model=list[JoinedCampaign])
async def list_joined_campaigns_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Campaigns the current user has joined."""
    return await list_joined_campaigns(db, user.id)


@router.get("/{campaign_id}/achievements", response_model=list[EarnedAchievement])
async def list_earned_achievements_endpoint(
    campaign_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Achievements the current user earned in one joined campaign."""
    return await list_earned_achievements(db, user.id, campaign_id)


# ── Console ──


@admin_router.post("", response_model=CampaignResponse, status_code=201)
async def create_campaign_endpoint(
    body: CampaignCreate,
    manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Create a DRAFT campaign. The activation code is generated server-side."""
    async with transaction(db):
        campaign = await create_campaign(db, body, manager.id)
    return CampaignResponse.model_validate(campaign)


@admin_router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign_endpoint(
    campaign_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return CampaignResponse.model_validate(await get_campaign(db, campaign_id))


@admin_router.patch("/{campaign_id}/status", response_model=CampaignResponse)
async def update_campaign_status_endpoint(
    campaign_id: uuid.UUID,
    body: CampaignStatusUpdate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Move a campaign through DRAFT → ACTIVE ⇄ PAUSED → COMPLETED → ARCHIVED."""
    async with transaction(db):
        campaign = await update_campaign_status(db, campaign_id, body.status)
    return CampaignResponse.model_validate(campaign)


@admin_router.delete("/{campaign_id}", status_code=204)
async def delete_campaign_endpoint(
    campaign_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Soft-delete a campaign. Refused while it still has missions."""
    async with transaction(db):
        await delete_campaign(db, campaign_id)
    return Response(status_code=204)
