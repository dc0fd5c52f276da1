"""Progress views for the Mini App; achievement, rank and competency management for the console."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import get_current_manager, get_current_user
from questhub.database import get_session, transaction
from questhub.db.models import Manager, User
from questhub.gamification.schemas import (
    AchievementCreate,
    AchievementProgress,
    AchievementResponse,
    CompetencyCreate,
    CompetencyListResponse,
    CompetencyProgress,
    CompetencyResponse,
    CompetencyUpdate,
    RankCreate,
    RankResponse,
)
from questhub.gamification.service import (
    create_achievement,
    create_competency,
    create_rank,
    delete_achievement,
    delete_competency,
    get_competency,
    list_achievement_progress,
    list_competencies,
    list_competency_progress,
    update_competency,
)

router = APIRouter(prefix="/api/tma/progress", tags=["Mini App: Progress"])
admin_router = APIRouter(prefix="/api/web", tags=["Console: Gamification"])


# ── Mini App ──


@router.get("/achievements", response_model=list[AchievementProgress])
async def achievement_progress_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await list_achievement_progress(db, user.id)


@router.get("/competencies", response_model=list[CompetencyProgress])
async def competency_progress_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await list_competency_progress(db, user.id)


# ── Console ──


@admin_router.post("/campaigns/{campaign_id}/achievements", response_model=AchievementResponse, status_code=201)
async def create_achievement_endpoint(
    campaign_id: uuid.UUID,
    body: AchievementCreate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Create an achievement unlocked by a set of the campaign's missions."""
    async with transaction(db):
        achievement = await create_achievement(db, campaign_id, body)
    return AchievementResponse.model_validate(achievement)


@admin_router.delete("/achievements/{achievement_id}", status_code=204)
async def delete_achievement_endpoint(
    achievement_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Soft-delete an achievement. Refused once granted to anyone."""
    async with transaction(db):
        await delete_achievement(db, achievement_id)
    return Response(status_code=204)


@admin_router.post("/ranks", response_model=RankResponse, status_code=201)
async def create_rank_endpoint(
    body: RankCreate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    async with transaction(db):
        rank = await create_rank(db, body)
    return RankResponse.model_validate(rank)


@admin_router.get("/competencies", response_model=CompetencyListResponse)
async def list_competencies_endpoint(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    competencies, total = await list_competencies(db, limit=limit, offset=offset)
    return CompetencyListResponse(
        competencies=[CompetencyResponse.model_validate(c) for c in competencies],
        total=total,
    )


@admin_router.post("/competencies", response_model=CompetencyResponse, status_code=201)
async def create_competency_endpoint(
    body: CompetencyCreate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    async with transaction(db):
        competency = await create_competency(db, body)
    return CompetencyResponse.model_validate(competency)


@admin_router.get("/competencies/{competency_id}", response_model=CompetencyResponse)
async def get_competency_endpoint(
    competency_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    return CompetencyResponse.model_validate(await get_competency(db, competency_id))


@admin_router.patch("/competencies/{competency_id}", response_model=CompetencyResponse)
async def update_competency_endpoint(
    competency_id: uuid.UUID,
    body: CompetencyUpdate,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    async with transaction(db):
        competency = await update_competency(db, competency_id, body)
    return CompetencyResponse.model_validate(competency)


@admin_router.delete("/competencies/{competency_id}", status_code=204)
async def delete_competency_endpoint(
    competency_id: uuid.UUID,
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Soft-delete a competency. Refused once any user has progress in it."""
    async with transaction(db):
        await delete_competency(db, competency_id)
    return Response(status_code=204)
