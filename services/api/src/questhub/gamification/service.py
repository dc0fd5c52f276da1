"""Achievement, rank and competency management, and the user's progress views."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import (
    Achievement,
    Campaign,
    Competency,
    Mission,
    Rank,
    UserAchievement,
    UserCampaign,
    UserCompetency,
)
from questhub.errors import (
    AchievementAlreadyGranted,
    AchievementNotFound,
    CampaignNotFound,
    CompetencyInUse,
    CompetencyNameConflict,
    CompetencyNotFound,
    MalformedUnlockConditions,
    ValidationFailed,
)
from questhub.gamification.schemas import (
    AchievementCreate,
    AchievementProgress,
    CompetencyCreate,
    CompetencyProgress,
    CompetencyUpdate,
    EarnedAchievement,
    RankCreate,
)
from questhub.gamification.unlock_conditions import AchievementConditions, RankConditions

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


async def get_achievement(db: AsyncSession, achievement_id: uuid.UUID) -> Achievement:
    result = await db.execute(
        select(Achievement).where(Achievement.id == achievement_id, Achievement.deleted_at.is_(None))
    )
    achievement = result.scalar_one_or_none()
    if achievement is None:
        raise AchievementNotFound
    return achievement


async def create_achievement(db: AsyncSession, campaign_id: uuid.UUID, body: AchievementCreate) -> Achievement:
    """Create an achievement whose required missions all belong to the campaign.

    Raises:
        CampaignNotFound: No live campaign with that id.
        ValidationFailed: The conditions are malformed or name foreign missions.
    """
    campaign = (
        await db.execute(select(Campaign.id).where(Campaign.id == campaign_id, Campaign.deleted_at.is_(None)))
    ).first()
    if campaign is None:
        raise CampaignNotFound("Campaign not found.")

    try:
        conditions = AchievementConditions.parse(body.unlock_conditions.model_dump(mode="json"))
    except MalformedUnlockConditions as e:
        raise ValidationFailed(str(e), code="INVALID_UNLOCK_CONDITIONS") from e

    found = set(
        (
            await db.execute(
                select(Mission.id).where(
                    Mission.id.in_(conditions.required_missions),
                    Mission.campaign_id == campaign_id,
                    Mission.deleted_at.is_(None),
                )
            )
        ).scalars()
    )
    missing = conditions.required_missions - found
    if missing:
        raise ValidationFailed(
            f"Required missions not found in this campaign: {', '.join(sorted(str(m) for m in missing))}",
            code="INVALID_UNLOCK_CONDITIONS",
        )

    achievement = Achievement(
        campaign_id=campaign_id,
        name=body.name.strip(),
        description=body.description,
        image_url=body.image_url,
        unlock_conditions=conditions.to_json(),
        experience_reward=body.experience_reward,
        mana_reward=body.mana_reward,
    )
    db.add(achievement)
    await db.flush()
    logger.info("Created achievement %s (%s) in campaign %s", achievement.id, achievement.name, campaign_id)
    return achievement


async def delete_achievement(db: AsyncSession, achievement_id: uuid.UUID) -> Achievement:
    """Soft-delete an achievement nobody holds yet. Does not commit."""
    achievement = await get_achievement(db, achievement_id)
    granted = (
        await db.execute(
            select(UserAchievement.user_id).where(UserAchievement.achievement_id == achievement_id).limit(1)
        )
    ).first()
    if granted is not None:
        raise AchievementAlreadyGranted
    achievement.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    return achievement


# ---------------------------------------------------------------------------
# Ranks
# ---------------------------------------------------------------------------


async def create_rank(db: AsyncSession, body: RankCreate) -> Rank:
    try:
        conditions = RankConditions.parse(body.unlock_conditions.model_dump(mode="json", exclude_none=True))
    except MalformedUnlockConditions as e:
        raise ValidationFailed(str(e), code="INVALID_UNLOCK_CONDITIONS") from e

    rank = Rank(
        title=body.title.strip(),
        description=body.description,
        image_url=body.image_url,
        priority=body.priority,
        unlock_conditions=conditions.to_json(),
    )
    db.add(rank)
    await db.flush()
    logger.info("Created rank %s (%s) priority=%d", rank.id, rank.title, rank.priority)
    return rank


# ---------------------------------------------------------------------------
# Competencies
# ---------------------------------------------------------------------------


async def get_competency(db: AsyncSession, competency_id: uuid.UUID) -> Competency:
    result = await db.execute(
        select(Competency).where(Competency.id == competency_id, Competency.deleted_at.is_(None))
    )
    competency = result.scalar_one_or_none()
    if competency is None:
        raise CompetencyNotFound
    return competency


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Name is required and cannot be empty.")
    return name


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: uuid.UUID | None = None) -> None:
    stmt = select(Competency.id).where(Competency.name == name, Competency.deleted_at.is_(None))
    if exclude_id is not None:
        stmt = stmt.where(Competency.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise CompetencyNameConflict(f"A competency with the name '{name}' already exists.")


async def list_competencies(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> tuple[list[Competency], int]:
    live = Competency.deleted_at.is_(None)
    total = (await db.execute(select(func.count()).select_from(Competency).where(live))).scalar_one()
    result = await db.execute(select(Competency).where(live).order_by(Competency.name).limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def create_competency(db: AsyncSession, body: CompetencyCreate) -> Competency:
    """Create a competency. Without ``campaign_id`` it is global.

    Raises:
        CampaignNotFound: ``campaign_id`` names no live campaign.
        CompetencyNameConflict: A live competency already has this name.
    """
    name = _clean_name(body.name)
    if body.campaign_id is not None:
        campaign = (
            await db.execute(
                select(Campaign.id).where(Campaign.id == body.campaign_id, Campaign.deleted_at.is_(None))
            )
        ).first()
        if campaign is None:
            raise CampaignNotFound("Campaign not found.")
    await _ensure_name_free(db, name)

    competency = Competency(
        name=name,
        description=body.description,
        campaign_id=body.campaign_id,
        is_global=body.campaign_id is None,
    )
    db.add(competency)
    await db.flush()
    logger.info("Created competency %s (%s)", competency.id, competency.name)
    return competency


async def update_competency(db: AsyncSession, competency_id: uuid.UUID, body: CompetencyUpdate) -> Competency:
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailed("At least one field to update must be provided.")
    competency = await get_competency(db, competency_id)
    if "name" in fields:
        name = _clean_name(fields["name"])
        await _ensure_name_free(db, name, exclude_id=competency.id)
        competency.name = name
    if "description" in fields:
        competency.description = fields["description"]
    await db.flush()
    return competency


async def delete_competency(db: AsyncSession, competency_id: uuid.UUID) -> Competency:
    """Soft-delete a competency no user has progress in. Does not commit."""
    competency = await get_competency(db, competency_id)
    in_use = (
        await db.execute(
            select(UserCompetency.user_id).where(UserCompetency.competency_id == competency_id).limit(1)
        )
    ).first()
    if in_use is not None:
        raise CompetencyInUse
    competency.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    return competency


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def list_achievement_progress(db: AsyncSession, user_id: uuid.UUID) -> list[AchievementProgress]:
    """Achievements of every live campaign the user joined, earned or not."""
    rows = (
        await db.execute(
            select(Achievement, Campaign.title, Campaign.icon_url, UserAchievement.awarded_at)
            .join(Campaign, Campaign.id == Achievement.campaign_id)
            .join(UserCampaign, (UserCampaign.campaign_id == Campaign.id) & (UserCampaign.user_id == user_id))
            .outerjoin(
                UserAchievement,
                (UserAchievement.achievement_id == Achievement.id) & (UserAchievement.user_id == user_id),
            )
            .where(Campaign.deleted_at.is_(None), Achievement.deleted_at.is_(None))
            .order_by(Campaign.created_at, Achievement.created_at)
        )
    ).all()

    required: dict[uuid.UUID, list[uuid.UUID]] = {}
    for achievement, *_ in rows:
        try:
            conditions = AchievementConditions.parse(achievement.unlock_conditions)
        except MalformedUnlockConditions:
            required[achievement.id] = []
            continue
        required[achievement.id] = sorted(conditions.required_missions)

    mission_ids = {m for ids in required.values() for m in ids}
    titles: dict[uuid.UUID, str] = {}
    if mission_ids:
        titles = dict(
            (await db.execute(select(Mission.id, Mission.title).where(Mission.id.in_(mission_ids)))).tuples().all()
        )

    return [
        AchievementProgress(
            id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            image_url=achievement.image_url,
            experience_reward=achievement.experience_reward,
            mana_reward=achievement.mana_reward,
            campaign_id=achievement.campaign_id,
            campaign_title=campaign_title,
            campaign_icon_url=campaign_icon_url,
            required_mission_titles=[titles[m] for m in required[achievement.id] if m in titles],
            is_completed=awarded_at is not None,
            awarded_at=awarded_at,
        )
        for achievement, campaign_title, campaign_icon_url, awarded_at in rows
    ]


async def list_competency_progress(db: AsyncSession, user_id: uuid.UUID) -> list[CompetencyProgress]:
    """Global competencies with the user's points (zero when never credited)."""
    rows = await db.execute(
        select(Competency.id, Competency.name, Competency.description, UserCompetency.progress_points)
        .outerjoin(
            UserCompetency,
            (UserCompetency.competency_id == Competency.id) & (UserCompetency.user_id == user_id),
        )
        .where(Competency.is_global.is_(True), Competency.deleted_at.is_(None))
        .order_by(Competency.name)
    )
    return [
        CompetencyProgress(id=cid, name=name, description=description, progress_points=points or 0)
        for cid, name, description, points in rows.all()
    ]


async def list_earned_achievements(
    db: AsyncSession, user_id: uuid.UUID, campaign_id: uuid.UUID
) -> list[EarnedAchievement]:
    """Achievements the user holds in one joined campaign, newest first."""
    joined = (
        await db.execute(
            select(UserCampaign.user_id).where(UserCampaign.user_id == user_id, UserCampaign.campaign_id == campaign_id)
        )
    ).first()
    if joined is None:
        raise CampaignNotFound("Campaign not found or you are not a participant.")

    rows = await db.execute(
        select(Achievement.id, Achievement.name, Achievement.description, Achievement.image_url, UserAchievement.awarded_at)
        .join(UserAchievement, UserAchievement.achievement_id == Achievement.id)
        .where(UserAchievement.user_id == user_id, Achievement.campaign_id == campaign_id)
        .order_by(UserAchievement.awarded_at.desc())
    )
    return [
        EarnedAchievement(id=aid, name=name, description=description, image_url=image_url, awarded_at=awarded_at)
        for aid, name, description, image_url, awarded_at in rows.all()
    ]
