"""Rank recomputation after an achievement grant."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import Rank, User, UserAchievement, UserCampaign
from questhub.errors import MalformedUnlockConditions
from questhub.gamification.unlock_conditions import RankConditions

logger = logging.getLogger(__name__)


def select_rank(
    ranks: list[Rank],
    campaign_ids: set[uuid.UUID],
    achievement_ids: set[uuid.UUID],
) -> Rank | None:
    """Pick the highest-priority rank the user qualifies for.

    ``ranks`` must be ordered by priority ascending. The first one is the
    default and applies when nothing else qualifies. Ranks without
    conditions only ever apply as the default.
    """
    if not ranks:
        return None
    for rank in reversed(ranks[1:]):
        try:
            conditions = RankConditions.parse(rank.unlock_conditions)
        except MalformedUnlockConditions as e:
            logger.warning("Skipping rank %s with malformed unlock conditions: %s", rank.id, e)
            continue
        if conditions.is_empty:
            continue
        if conditions.satisfied_by(campaign_ids, achievement_ids):
            return rank
    return ranks[0]


async def update_user_rank(db: AsyncSession, user_id: uuid.UUID) -> Rank | None:
    """Recompute the user's rank. Returns the new rank if it changed, else None."""
    ranks = list(
        (
            await db.execute(
                select(Rank).where(Rank.deleted_at.is_(None)).order_by(Rank.priority.asc(), Rank.created_at.asc())
            )
        ).scalars()
    )
    if not ranks:
        logger.warning("No ranks configured, cannot update rank for user %s", user_id)
        return None

    campaign_ids = set(
        (await db.execute(select(UserCampaign.campaign_id).where(UserCampaign.user_id == user_id))).scalars()
    )
    achievement_ids = set(
        (await db.execute(select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id))).scalars()
    )

    best = select_rank(ranks, campaign_ids, achievement_ids)
    current = (await db.execute(select(User.rank_id).where(User.id == user_id))).scalar_one_or_none()
    if best is None or current == best.id:
        return None

    logger.info('Updating rank for user %s to "%s" (%s)', user_id, best.title, best.id)
    await db.execute(update(User).where(User.id == user_id).values(rank_id=best.id))
    return best
