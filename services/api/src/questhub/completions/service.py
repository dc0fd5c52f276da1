"""Submission workflows and moderation.

Each function runs inside the caller's transaction and returns what the
router needs to answer and, after commit, to notify.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.codes import normalize_completion_code
from questhub.completions.schemas import CompletionResponse, CompletionWithUser, QuizResult, QuizRewards
from questhub.completions.settlement import (
    SettlementResult,
    lock_completion,
    record_attempt,
    settle_approval,
)
from questhub.db.models import CompletionStatus, Mission, MissionCompletion, MissionQrDetails, MissionType, User
from questhub.errors import (
    AlreadyCompleted,
    CompletionAlreadyApproved,
    CompletionNotFound,
    InvalidCompletionCode,
    InvalidMissionType,
    ValidationFailed,
)
from questhub.identity.schemas import TelegramIdentity
from questhub.identity.service import resolve_user
from questhub.missions.evaluator import score_quiz
from questhub.missions.schemas import QuizSubmission, Submission, UrlSubmission
from questhub.missions.service import ensure_can_attempt, get_mission
from questhub.notifications import messages
from questhub.notifications.notifier import OutboundMessage

logger = logging.getLogger(__name__)


def _require_type(mission: Mission, expected: MissionType) -> None:
    if mission.type != expected.value:
        raise InvalidMissionType(f"This mission is not of type {expected.value}.")


async def _has_approved(db: AsyncSession, user_id: uuid.UUID, mission_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(MissionCompletion.id).where(
            MissionCompletion.user_id == user_id,
            MissionCompletion.mission_id == mission_id,
            MissionCompletion.status == CompletionStatus.APPROVED.value,
        )
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Participant submissions
# ---------------------------------------------------------------------------


async def submit_url(db: AsyncSession, user: User, body: UrlSubmission) -> MissionCompletion:
    """Record a URL for moderation. Verdict is always PENDING_REVIEW."""
    mission = await get_mission(db, body.mission_id)
    _require_type(mission, MissionType.MANUAL_URL)
    await ensure_can_attempt(db, user, mission)

    completion = await record_attempt(
        db,
        user.id,
        mission.id,
        status=CompletionStatus.PENDING_REVIEW,
        result_data={"submission_url": str(body.submission_url)},
        block_pending=True,
    )
    logger.info("URL submission %s by user %s for mission %s", completion.id, user.id, mission.id)
    return completion


async def submit_quiz(db: AsyncSession, user: User, body: QuizSubmission) -> tuple[QuizResult, SettlementResult | None]:
    """Score a quiz attempt; a pass is settled immediately, a fail is recorded as REJECTED."""
    mission = await get_mission(db, body.mission_id)
    _require_type(mission, MissionType.QUIZ)
    await ensure_can_attempt(db, user, mission)
    if await _has_approved(db, user.id, mission.id):
        raise AlreadyCompleted
    if mission.quiz_details is None:
        raise InvalidMissionType("Quiz has no questions configured.")

    verdict = score_quiz(mission.quiz_details.questions, body.answers, mission.quiz_details.pass_threshold)
    result_data = {
        "score": verdict.score,
        "correct_answers": verdict.correct,
        "total_questions": verdict.total,
        "answers": [a.model_dump() for a in body.answers],
    }

    if not verdict.passed:
        await record_attempt(db, user.id, mission.id, status=CompletionStatus.REJECTED, result_data=result_data)
        logger.info("Quiz %s failed by user %s (%d/%d)", mission.id, user.id, verdict.correct, verdict.total)
        return (
            QuizResult(
                passed=False,
                score=verdict.score,
                total_questions=verdict.total,
                correct_answers=verdict.correct,
                required_score=verdict.pass_threshold,
            ),
            None,
        )

    completion = await record_attempt(
        db, user.id, mission.id, status=CompletionStatus.PENDING_REVIEW, result_data=result_data
    )
    settlement = await settle_approval(db, completion.id, message=messages.quiz_passed(mission.title))
    return (
        QuizResult(
            passed=True,
            score=verdict.score,
            total_questions=verdict.total,
            correct_answers=verdict.correct,
            rewards=QuizRewards(experience=mission.experience_reward, mana=mission.mana_reward),
        ),
        settlement,
    )


async def find_mission_by_completion_code(db: AsyncSession, code: str) -> Mission:
    """Look up a live QR mission by its completion code (case-insensitive)."""
    result = await db.execute(
        select(Mission)
        .join(MissionQrDetails, MissionQrDetails.mission_id == Mission.id)
        .where(
            MissionQrDetails.completion_code == normalize_completion_code(code),
            Mission.type == MissionType.QR_CODE.value,
            Mission.deleted_at.is_(None),
        )
    )
    mission = result.scalar_one_or_none()
    if mission is None:
        raise InvalidCompletionCode
    return mission


async def submit_qr_code(db: AsyncSession, user: User, completion_code: str) -> SettlementResult:
    """The presented code approves its mission immediately."""
    mission = await find_mission_by_completion_code(db, completion_code)
    await ensure_can_attempt(db, user, mission)

    completion = await record_attempt(
        db,
        user.id,
        mission.id,
        status=CompletionStatus.PENDING_REVIEW,
        result_data={"completion_code": normalize_completion_code(completion_code)},
    )
    return await settle_approval(db, completion.id, message=messages.mission_completed(mission.title))


async def complete_qr_mission(db: AsyncSession, identity: TelegramIdentity, completion_code: str) -> SettlementResult:
    """Bot flow: resolve the Telegram user, then redeem the code."""
    user = await resolve_user(db, identity)
    return await submit_qr_code(db, user, completion_code)


async def submit(
    db: AsyncSession, user: User, body: Submission
) -> tuple[CompletionResponse | QuizResult, SettlementResult | None]:
    """Dispatch a typed submission to its workflow."""
    if isinstance(body, UrlSubmission):
        return CompletionResponse.model_validate(await submit_url(db, user, body)), None
    if isinstance(body, QuizSubmission):
        return await submit_quiz(db, user, body)
    settlement = await submit_qr_code(db, user, body.completion_code)
    return CompletionResponse.model_validate(settlement.completion), settlement


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


async def update_completion_status(
    db: AsyncSession,
    mission_id: uuid.UUID,
    completion_id: uuid.UUID,
    status: str,
    comment: str | None,
    moderator_id: uuid.UUID,
) -> SettlementResult:
    """Apply a moderator verdict.

    APPROVED settles the completion (a repeated approval returns it
    unchanged). REJECTED requires a comment and is refused for an approved
    completion, since credited rewards are never taken back.
    """
    if status not in (CompletionStatus.APPROVED.value, CompletionStatus.REJECTED.value):
        raise ValidationFailed("Status must be APPROVED or REJECTED.", code="INVALID_STATUS")
    comment = comment.strip() if comment else None
    if status == CompletionStatus.REJECTED.value and not comment:
        raise ValidationFailed("A comment is required when rejecting a submission.", code="COMMENT_REQUIRED")

    mission = await get_mission(db, mission_id)
    completion = await lock_completion(db, completion_id)
    if completion is None or completion.mission_id != mission.id:
        raise CompletionNotFound

    if status == CompletionStatus.APPROVED.value:
        result = await settle_approval(db, completion.id, moderator_id=moderator_id)
        if not result.already_settled:
            tg_id = (await db.execute(select(User.tg_id).where(User.id == completion.user_id))).scalar_one()
            result.notifications.insert(
                0,
                OutboundMessage(
                    tg_id,
                    messages.submission_approved(mission.title, mission.experience_reward, mission.mana_reward),
                ),
            )
        return result

    if completion.status == CompletionStatus.APPROVED.value:
        raise CompletionAlreadyApproved

    completion.status = CompletionStatus.REJECTED.value
    completion.moderator_id = moderator_id
    completion.moderator_comment = comment
    await db.flush()
    logger.info("Completion %s rejected by manager %s", completion.id, moderator_id)

    tg_id = (await db.execute(select(User.tg_id).where(User.id == completion.user_id))).scalar_one()
    return SettlementResult(
        completion=completion,
        notifications=[OutboundMessage(tg_id, messages.submission_rejected(mission.title, comment))],
    )


async def list_completions(
    db: AsyncSession,
    mission_id: uuid.UUID,
    *,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CompletionWithUser], int]:
    """Completions of a mission with submitter info, newest first."""
    await get_mission(db, mission_id)

    filters = [MissionCompletion.mission_id == mission_id]
    if status is not None:
        filters.append(MissionCompletion.status == status)

    total = (await db.execute(select(func.count()).select_from(MissionCompletion).where(*filters))).scalar_one()
    rows = await db.execute(
        select(MissionCompletion, User.tg_id, User.username, User.first_name)
        .join(User, User.id == MissionCompletion.user_id)
        .where(*filters)
        .order_by(MissionCompletion.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    items = [
        CompletionWithUser(
            id=c.id,
            user_id=c.user_id,
            mission_id=c.mission_id,
            status=c.status,
            result_data=c.result_data,
            moderator_id=c.moderator_id,
            moderator_comment=c.moderator_comment,
            created_at=c.created_at,
            updated_at=c.updated_at,
            tg_id=tg_id,
            username=username,
            first_name=first_name,
        )
        for c, tg_id, username, first_name in rows.all()
    ]
    return items, total
