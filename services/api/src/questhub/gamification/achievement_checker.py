"""Achievement unlock checker.

Runs inside the settlement transaction of the completion that triggered it:
a failure here rolls back the approval as well.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import Achievement, CompletionStatus, Mission, MissionCompletion, UserAchievement
from questhub.errors import MalformedUnlockConditions
from questhub.gamification.rewards import credit_points
from questhub.gamification.unlock_conditions import AchievementConditions

logger = logging.getLogger(__name__)


async def has_achievement(db: AsyncSession, user_id: uuid.UUID, achievement_id: uuid.UUID) -> bool:
    """Check if user already holds a specific achievement."""
    result = await db.execute(
        select(UserAchievement.user_id).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )
    return result.first() is not None


async def approved_mission_ids(
    db: AsyncSession, user_id: uuid.UUID, mission_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    """The subset of ``mission_ids`` the user holds an APPROVED completion for."""
    ids = list(mission_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(MissionCompletion.mission_id)
        .where(
            MissionCompletion.user_id == user_id,
            MissionCompletion.status == CompletionStatus.APPROVED.value,
            MissionCompletion.mission_id.in_(ids),
        )
        .distinct()
    )
    return set(result.scalars().all())


async def grant_achievement(db: AsyncSession, user_id: uuid.UUID, achievement: Achievement) -> bool:
    """Insert the grant and credit its rewards. Returns False if already held.

    The insert runs in a SAVEPOINT: when a concurrent settlement wins the
    race the primary key rejects the duplicate and no reward is credited.
    """
    try:
        async with db.begin_nested():
            db.add(UserAchievement(user_id=user_id, achievement_id=achievement.id))
    except IntegrityError:
        logger.info("Achievement %s already granted to user %s", achievement.id, user_id)
        return False

    await credit_points(db, user_id, experience=achievement.experience_reward, mana=achievement.mana_reward)
    return True


async def check_and_award_achievements(
    db: AsyncSession,
    user_id: uuid.UUID,
    mission_id: uuid.UUID,
) -> list[Achievement]:
    """Grant every achievement of the mission's campaign that is now satisfied.

    Only achievements the user does not hold and whose ``required_missions``
    include ``mission_id`` are re-evaluated. Malformed conditions are logged
    and skipped; an empty requirement set is never granted.

    Returns:
        The achievements granted by this call.
    """
    campaign_id = (await db.execute(select(Mission.campaign_id).where(Mission.id == mission_id))).scalar_one_or_none()
    if campaign_id is None:
        logger.warning("Mission %s not found, skipping achievement check", mission_id)
        return []

    held = select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    result = await db.execute(
        select(Achievement)
        .where(
            Achievement.campaign_id == campaign_id,
            Achievement.deleted_at.is_(None),
            Achievement.id.not_in(held),
        )
        .order_by(Achievement.created_at)
    )

    awarded: list[Achievement] = []
    for achievement in result.scalars().all():
        try:
            conditions = AchievementConditions.parse(achievement.unlock_conditions)
        except MalformedUnlockConditions as e:
            logger.warning("Skipping achievement %s with malformed unlock conditions: %s", achievement.id, e)
            continue

        if not conditions.references(mission_id):
            continue

        approved = await approved_mission_ids(db, user_id, conditions.required_missions)
        if not conditions.satisfied_by(approved):
            continue

        if await grant_achievement(db, user_id, achievement):
            logger.info('Awarded achievement "%s" (%s) to user %s', achievement.name, achievement.id, user_id)
            awarded.append(achievement)

    return awarded
