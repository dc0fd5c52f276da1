"""Mission endpoints: Mini App views, console management."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import get_current_manager, get_current_user
from questhub.database import get_session, transaction
from questhub.db.models import Manager, User
from questhub.missions.schemas import (
    CampaignCompletedMissions,
    CampaignMissions,
    MissionAdminResponse,
    MissionCreate,
    MissionView,
)
from questhub.missions.service import (
    create_mission,
    delete_mission,
    get_mission,
    get_mission_view,
    list_available_missions,
    list_campaign_missions,
    list_completed_missions,
    mission_admin_response,
)

router = APIRouter(prefix="/api/tma", tags=["Mini App: Missions"])
admin_router = APIRouter(prefix="/api/web", tags=["Console: Missions"])


# ── Mini App ──


@router.get("/campaigns/{campaign_id}/missions/{mission_id}", response_model=MissionView)
async def get_mission_endpoint(
    campaign_id: uuid.UUID,
    mission_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mission detail with lock and completion state. Quiz answers come without the key."""
    return await get_mission_view(db, user, campaign_id, mission_id)


@router.get("/missions/available", response_model=list[CampaignMissions])
async def list_available_missions_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Missions still open to the user, grouped by campaign."""
    return await list_available_missions(db, user)


@router.get("/missions/completed", response_model=list[CampaignCompletedMissions])
async def list_completed_missions_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await list_completed_missions(db, user.id)


# ── Console ──


@admin_router.post("/campaigns/{campaign_id}/missions", response_model=MissionAdminResponse, status_code=201)
async def create_mission_endpoint(
    campaign_id: uuid.UUID,
    body: MissionCreate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Create a mission; the body shape is selected by ``type``."""
    async with transaction(db):
        mission = await create_mission(db, campaign_id, body)
    return mission_admin_response(mission)


@admin_router.get("/campaigns/{campaign_id}/missions", response_model=list[MissionAdminResponse])
async def list_campaign_missions_endpoint(
    campaign_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return [mission_admin_response(m) for m in await list_campaign_missions(db, campaign_id)]


@admin_router.get("/missions/{mission_id}", response_model=MissionAdminResponse)
async def get_mission_admin_endpoint(
    mission_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return mission_admin_response(await get_mission(db, mission_id))


@admin_router.delete("/missions/{mission_id}", status_code=204)
async def delete_mission_endpoint(
    mission_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Soft-delete a mission. Refused once anyone has submitted it."""
    async with transaction(db):
        await delete_mission(db, mission_id)
    return Response(status_code=204)
