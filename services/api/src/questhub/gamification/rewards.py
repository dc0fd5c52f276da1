"""Additive point credits.

All credits are relative SQL updates (``col = col + n``), so concurrent
settlements for the same user never lose an increment.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import User, UserCompetency

logger = logging.getLogger(__name__)


async def credit_points(db: AsyncSession, user_id: uuid.UUID, *, experience: int = 0, mana: int = 0) -> None:
    """Add experience and mana to a user. Zero amounts are a no-op."""
    if not experience and not mana:
        return
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            experience_points=User.experience_points + experience,
            mana_points=User.mana_points + mana,
        )
    )


async def credit_competency(db: AsyncSession, user_id: uuid.UUID, competency_id: uuid.UUID, points: int) -> None:
    """Add progress points to one competency, creating the row on first credit."""
    stmt = (
        update(UserCompetency)
        .where(UserCompetency.user_id == user_id, UserCompetency.competency_id == competency_id)
        .values(progress_points=UserCompetency.progress_points + points)
    )
    if (await db.execute(stmt)).rowcount:
        return
    try:
        async with db.begin_nested():
            db.add(UserCompetency(user_id=user_id, competency_id=competency_id, progress_points=points))
    except IntegrityError:
        # Either another settlement created the row first, or the competency is gone
        if not (await db.execute(stmt)).rowcount:
            logger.warning("Competency %s not found, %d points for user %s dropped", competency_id, points, user_id)


def _parse_reward(item: Any) -> tuple[uuid.UUID, int] | None:  # noqa: ANN401
    if not isinstance(item, dict):
        return None
    try:
        competency_id = uuid.UUID(str(item.get("competency_id")))
        points = int(item.get("points") or 0)
    except (TypeError, ValueError):
        return None
    if points <= 0:
        return None
    return competency_id, points


async def credit_competency_rewards(
    db: AsyncSession,
    user_id: uuid.UUID,
    rewards: Iterable[Any] | None,
    *,
    mission_id: uuid.UUID | None = None,
) -> int:
    """Credit a mission's ``competency_rewards`` list. Returns how many were credited.

    Unparseable items are logged and skipped.
    """
    credited = 0
    for item in rewards or []:
        parsed = _parse_reward(item)
        if parsed is None:
            logger.warning("Skipping invalid competency reward %r on mission %s", item, mission_id)
            continue
        competency_id, points = parsed
        await credit_competency(db, user_id, competency_id, points)
        credited += 1
    return credited


async def get_user_points(db: AsyncSession, user_id: uuid.UUID) -> tuple[int, int]:
    """Current (experience, mana) straight from the database."""
    row = (
        await db.execute(select(User.experience_points, User.mana_points).where(User.id == user_id))
    ).one()
    return row.experience_points, row.mana_points
