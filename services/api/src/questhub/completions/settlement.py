"""Reward settlement: the single path by which a completion becomes APPROVED.

Settlement runs inside the caller's transaction. Messages for the user are
collected on the result and delivered by the caller only after commit.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import Achievement, CompletionStatus, Mission, MissionCompletion, Rank, User
from questhub.errors import AlreadyCompleted, CompletionNotFound, SubmissionPending
from questhub.gamification.achievement_checker import check_and_award_achievements
from questhub.gamification.rank_manager import update_user_rank
from questhub.gamification.rewards import credit_competency_rewards, credit_points
from questhub.notifications import messages
from questhub.notifications.notifier import OutboundMessage

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    completion: MissionCompletion
    already_settled: bool = False
    achievements: list[Achievement] = field(default_factory=list)
    rank: Rank | None = None
    notifications: list[OutboundMessage] = field(default_factory=list)


async def lock_completion(db: AsyncSession, completion_id: uuid.UUID) -> MissionCompletion | None:
    """Locked read of a completion row (``SELECT ... FOR UPDATE``), refreshed from the database."""
    result = await db.execute(
        select(MissionCompletion)
        .where(MissionCompletion.id == completion_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_user_completion(
    db: AsyncSession, user_id: uuid.UUID, mission_id: uuid.UUID
) -> MissionCompletion | None:
    """Locked read of the user's completion row for a mission."""
    result = await db.execute(
        select(MissionCompletion)
        .where(MissionCompletion.user_id == user_id, MissionCompletion.mission_id == mission_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _check_resubmission(existing: MissionCompletion, *, block_pending: bool) -> None:
    if existing.status == CompletionStatus.APPROVED.value:
        raise AlreadyCompleted
    if block_pending and existing.status == CompletionStatus.PENDING_REVIEW.value:
        raise SubmissionPending


async def record_attempt(
    db: AsyncSession,
    user_id: uuid.UUID,
    mission_id: uuid.UUID,
    *,
    status: CompletionStatus,
    result_data: Any,  # noqa: ANN401
    block_pending: bool = False,
) -> MissionCompletion:
    """Write the user's attempt into their single completion row for the mission.

    A previous REJECTED (or, unless ``block_pending``, PENDING_REVIEW) row is
    overwritten in place and its moderation fields cleared. The insert of a
    first attempt runs in a SAVEPOINT; losing the race to a concurrent first
    attempt re-reads the winner's row under lock.

    Raises:
        AlreadyCompleted: An APPROVED completion exists.
        SubmissionPending: ``block_pending`` and a submission awaits review.
    """
    for _ in range(2):
        existing = await lock_user_completion(db, user_id, mission_id)
        if existing is not None:
            _check_resubmission(existing, block_pending=block_pending)
            existing.status = status.value
            existing.result_data = result_data
            existing.moderator_id = None
            existing.moderator_comment = None
            await db.flush()
            return existing

        completion = MissionCompletion(
            user_id=user_id, mission_id=mission_id, status=status.value, result_data=result_data
        )
        try:
            async with db.begin_nested():
                db.add(completion)
        except IntegrityError:
            logger.info("Concurrent first attempt for user %s mission %s", user_id, mission_id)
            continue
        return completion

    raise AlreadyCompleted("Another submission for this mission is being processed.")


async def settle_approval(
    db: AsyncSession,
    completion_id: uuid.UUID,
    *,
    moderator_id: uuid.UUID | None = None,
    message: str | None = None,
) -> SettlementResult:
    """Approve a completion and credit everything it earns, exactly once.

    1. Locked read; an already APPROVED completion is a no-op.
    2. Mark APPROVED (recording the moderator, if any).
    3. Credit the mission's experience and mana.
    4. Credit competency rewards.
    5. Grant newly satisfied achievements and recompute the rank.

    ``message`` is queued for the user ahead of achievement and rank
    messages. Nothing is committed here.
    """
    completion = await lock_completion(db, completion_id)
    if completion is None:
        raise CompletionNotFound
    if completion.status == CompletionStatus.APPROVED.value:
        logger.info("Completion %s already approved, settlement skipped", completion_id)
        return SettlementResult(completion=completion, already_settled=True)

    completion.status = CompletionStatus.APPROVED.value
    if moderator_id is not None:
        completion.moderator_id = moderator_id
        completion.moderator_comment = None
    await db.flush()

    mission = await db.get(Mission, completion.mission_id)
    if mission is None:
        raise CompletionNotFound("Completion references a missing mission.")
    user_id = completion.user_id

    await credit_points(db, user_id, experience=mission.experience_reward, mana=mission.mana_reward)
    await credit_competency_rewards(db, user_id, mission.competency_rewards, mission_id=mission.id)

    result = SettlementResult(completion=completion)
    result.achievements = await check_and_award_achievements(db, user_id, mission.id)
    if result.achievements:
        result.rank = await update_user_rank(db, user_id)

    tg_id = (await db.execute(select(User.tg_id).where(User.id == user_id))).scalar_one()
    if message:
        result.notifications.append(OutboundMessage(tg_id, message))
    for achievement in result.achievements:
        result.notifications.append(OutboundMessage(tg_id, messages.achievement_unlocked(achievement)))
    if result.rank is not None:
        result.notifications.append(OutboundMessage(tg_id, messages.rank_changed(result.rank)))

    logger.info(
        "Settled completion %s: user %s mission %s (+%d xp, +%d mana, %d achievements)",
        completion.id,
        user_id,
        mission.id,
        mission.experience_reward,
        mission.mana_reward,
        len(result.achievements),
    )
    return result
