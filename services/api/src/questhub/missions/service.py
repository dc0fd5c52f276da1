"""Mission lookup, visibility and console management."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.campaigns.service import is_member
from questhub.codes import completion_code_in_use, generate_unique_completion_code
from questhub.db.models import (
    Achievement,
    Campaign,
    Competency,
    CompletionStatus,
    Mission,
    MissionCompletion,
    MissionManualDetails,
    MissionQrDetails,
    MissionQuizDetails,
    MissionType,
    Rank,
    User,
    UserAchievement,
    UserCampaign,
)
from questhub.errors import (
    AchievementNotFound,
    CampaignNotFound,
    CampaignNotJoined,
    CompetencyNotFound,
    Conflict,
    MissionHasCompletions,
    MissionLocked,
    MissionNotFound,
    NotFound,
)
from questhub.missions.evaluator import is_mission_locked, sanitize_questions
from questhub.missions.schemas import (
    CampaignCompletedMissions,
    CampaignMissions,
    CompletedMission,
    ManualUrlMissionCreate,
    MissionAdminResponse,
    MissionCreate,
    MissionView,
    QrMissionCreate,
    QuizMissionCreate,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookup & gating
# ---------------------------------------------------------------------------


async def get_mission(db: AsyncSession, mission_id: uuid.UUID) -> Mission:
    """Get a live mission or raise ``MissionNotFound``."""
    result = await db.execute(select(Mission).where(Mission.id == mission_id, Mission.deleted_at.is_(None)))
    mission = result.scalar_one_or_none()
    if mission is None:
        raise MissionNotFound
    return mission


async def _rank_priority(db: AsyncSession, rank_id: uuid.UUID | None) -> int | None:
    if rank_id is None:
        return None
    return (await db.execute(select(Rank.priority).where(Rank.id == rank_id))).scalar_one_or_none()


async def is_locked_for(db: AsyncSession, user: User, mission: Mission) -> bool:
    """Whether the rank or achievement gate keeps this user out of the mission."""
    holds = False
    if mission.required_achievement_id is not None:
        result = await db.execute(
            select(UserAchievement.user_id).where(
                UserAchievement.user_id == user.id,
                UserAchievement.achievement_id == mission.required_achievement_id,
            )
        )
        holds = result.first() is not None
    return is_mission_locked(
        user_rank_priority=await _rank_priority(db, user.rank_id),
        required_rank_priority=await _rank_priority(db, mission.required_rank_id),
        requires_achievement=mission.required_achievement_id is not None,
        holds_required_achievement=holds,
    )


async def ensure_can_attempt(db: AsyncSession, user: User, mission: Mission) -> None:
    """Common preconditions for every submission type.

    Raises:
        CampaignNotJoined: The user is not a participant of the mission's campaign.
        MissionLocked: The rank or achievement gate is not met.
    """
    if not await is_member(db, user.id, mission.campaign_id):
        raise CampaignNotJoined
    if await is_locked_for(db, user, mission):
        raise MissionLocked


# ---------------------------------------------------------------------------
# Mini App views
# ---------------------------------------------------------------------------


def _participant_details(mission: Mission) -> dict[str, Any] | None:
    if mission.type == MissionType.MANUAL_URL.value and mission.manual_details is not None:
        return {
            "submission_prompt": mission.manual_details.submission_prompt,
            "placeholder_text": mission.manual_details.placeholder_text,
        }
    if mission.type == MissionType.QUIZ.value and mission.quiz_details is not None:
        return {
            "questions": sanitize_questions(mission.quiz_details.questions),
            "pass_threshold": mission.quiz_details.pass_threshold,
        }
    # QR secrets are never shown to participants
    return None


def build_mission_view(
    mission: Mission,
    *,
    is_locked: bool,
    completion_status: str | None,
    required_achievement_name: str | None = None,
    with_details: bool = True,
) -> MissionView:
    return MissionView(
        id=mission.id,
        campaign_id=mission.campaign_id,
        title=mission.title,
        description=mission.description,
        category=mission.category,
        cover_url=mission.cover_url,
        type=mission.type,
        experience_reward=mission.experience_reward,
        mana_reward=mission.mana_reward,
        competency_rewards=mission.competency_rewards or [],
        required_rank_id=mission.required_rank_id,
        required_achievement_id=mission.required_achievement_id,
        required_achievement_name=required_achievement_name,
        is_locked=is_locked,
        is_completed=completion_status == CompletionStatus.APPROVED.value,
        completion_status=completion_status,
        details=_participant_details(mission) if with_details else None,
    )


async def _completion_status(db: AsyncSession, user_id: uuid.UUID, mission_id: uuid.UUID) -> str | None:
    result = await db.execute(
        select(MissionCompletion.status).where(
            MissionCompletion.user_id == user_id, MissionCompletion.mission_id == mission_id
        )
    )
    return result.scalar_one_or_none()


async def get_mission_view(
    db: AsyncSession, user: User, campaign_id: uuid.UUID, mission_id: uuid.UUID
) -> MissionView:
    """Mission detail for a participant, quiz answer key stripped.

    Non-participants get ``MissionNotFound`` so mission ids don't leak.
    """
    mission = await get_mission(db, mission_id)
    if mission.campaign_id != campaign_id or not await is_member(db, user.id, campaign_id):
        raise MissionNotFound("Mission not found or you are not a participant of this campaign.")

    achievement_name = None
    if mission.required_achievement_id is not None:
        achievement_name = (
            await db.execute(select(Achievement.name).where(Achievement.id == mission.required_achievement_id))
        ).scalar_one_or_none()

    return build_mission_view(
        mission,
        is_locked=await is_locked_for(db, user, mission),
        completion_status=await _completion_status(db, user.id, mission.id),
        required_achievement_name=achievement_name,
    )


async def list_available_missions(db: AsyncSession, user: User) -> list[CampaignMissions]:
    """Missions not yet approved for the user, grouped by joined campaign.

    Campaigns are ordered by most recent join; campaigns with nothing left
    are omitted. Locked missions are included with ``is_locked=True`` and
    listed after the unlocked ones.
    """
    campaigns = (
        await db.execute(
            select(Campaign)
            .join(UserCampaign, UserCampaign.campaign_id == Campaign.id)
            .where(UserCampaign.user_id == user.id, Campaign.deleted_at.is_(None))
            .order_by(UserCampaign.joined_at.desc())
        )
    ).scalars().all()
    if not campaigns:
        return []

    missions = (
        await db.execute(
            select(Mission)
            .where(Mission.campaign_id.in_([c.id for c in campaigns]), Mission.deleted_at.is_(None))
            .order_by(Mission.created_at)
        )
    ).scalars().all()

    statuses: dict[uuid.UUID, str] = {
        row.mission_id: row.status
        for row in await db.execute(
            select(MissionCompletion.mission_id, MissionCompletion.status).where(MissionCompletion.user_id == user.id)
        )
    }
    held = set(
        (await db.execute(select(UserAchievement.achievement_id).where(UserAchievement.user_id == user.id))).scalars()
    )
    priorities: dict[uuid.UUID, int] = {
        row.id: row.priority for row in await db.execute(select(Rank.id, Rank.priority))
    }
    user_priority = priorities.get(user.rank_id) if user.rank_id is not None else None
    achievement_ids = {m.required_achievement_id for m in missions if m.required_achievement_id is not None}
    achievement_names: dict[uuid.UUID, str] = {}
    if achievement_ids:
        achievement_names = dict(
            (await db.execute(select(Achievement.id, Achievement.name).where(Achievement.id.in_(achievement_ids))))
            .tuples()
            .all()
        )

    grouped: dict[uuid.UUID, list[MissionView]] = {c.id: [] for c in campaigns}
    for mission in missions:
        status = statuses.get(mission.id)
        if status == CompletionStatus.APPROVED.value:
            continue
        locked = is_mission_locked(
            user_rank_priority=user_priority,
            required_rank_priority=priorities.get(mission.required_rank_id) if mission.required_rank_id else None,
            requires_achievement=mission.required_achievement_id is not None,
            holds_required_achievement=mission.required_achievement_id in held,
        )
        grouped[mission.campaign_id].append(
            build_mission_view(
                mission,
                is_locked=locked,
                completion_status=status,
                required_achievement_name=achievement_names.get(mission.required_achievement_id),
                with_details=False,
            )
        )

    # Unlocked first, then by required rank; creation order breaks ties
    for views in grouped.values():
        views.sort(key=lambda v: (v.is_locked, priorities.get(v.required_rank_id, -1)))

    return [
        CampaignMissions(
            campaign_id=c.id,
            campaign_title=c.title,
            campaign_cover_url=c.cover_url,
            missions=grouped[c.id],
        )
        for c in campaigns
        if grouped[c.id]
    ]


async def list_completed_missions(db: AsyncSession, user_id: uuid.UUID) -> list[CampaignCompletedMissions]:
    """Approved missions grouped by joined campaign, most recent completion first."""
    rows = (
        await db.execute(
            select(Mission, MissionCompletion.updated_at, Campaign.title, Campaign.cover_url)
            .join(MissionCompletion, MissionCompletion.mission_id == Mission.id)
            .join(Campaign, Campaign.id == Mission.campaign_id)
            .join(UserCampaign, (UserCampaign.campaign_id == Campaign.id) & (UserCampaign.user_id == user_id))
            .where(
                MissionCompletion.user_id == user_id,
                MissionCompletion.status == CompletionStatus.APPROVED.value,
                Mission.deleted_at.is_(None),
                Campaign.deleted_at.is_(None),
            )
            .order_by(UserCampaign.joined_at.desc(), MissionCompletion.updated_at.desc())
        )
    ).all()

    grouped: dict[uuid.UUID, CampaignCompletedMissions] = {}
    for mission, completed_at, campaign_title, campaign_cover_url in rows:
        group = grouped.get(mission.campaign_id)
        if group is None:
            group = grouped[mission.campaign_id] = CampaignCompletedMissions(
                campaign_id=mission.campaign_id,
                campaign_title=campaign_title,
                campaign_cover_url=campaign_cover_url,
                missions=[],
            )
        group.missions.append(
            CompletedMission(
                id=mission.id,
                title=mission.title,
                description=mission.description,
                category=mission.category,
                cover_url=mission.cover_url,
                type=mission.type,
                experience_reward=mission.experience_reward,
                mana_reward=mission.mana_reward,
                completed_at=completed_at,
            )
        )
    return list(grouped.values())


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


def mission_admin_response(mission: Mission) -> MissionAdminResponse:
    details: dict[str, Any] | None = None
    if mission.manual_details is not None:
        details = {
            "submission_prompt": mission.manual_details.submission_prompt,
            "placeholder_text": mission.manual_details.placeholder_text,
        }
    elif mission.quiz_details is not None:
        details = {"questions": mission.quiz_details.questions, "pass_threshold": mission.quiz_details.pass_threshold}
    elif mission.qr_details is not None:
        details = {"completion_code": mission.qr_details.completion_code}
    return MissionAdminResponse(
        id=mission.id,
        campaign_id=mission.campaign_id,
        title=mission.title,
        description=mission.description,
        category=mission.category,
        cover_url=mission.cover_url,
        type=mission.type,
        experience_reward=mission.experience_reward,
        mana_reward=mission.mana_reward,
        competency_rewards=mission.competency_rewards or [],
        required_rank_id=mission.required_rank_id,
        required_achievement_id=mission.required_achievement_id,
        details=details,
        created_at=mission.created_at,
    )


async def _check_references(db: AsyncSession, campaign_id: uuid.UUID, body: MissionCreate) -> None:
    campaign = (
        await db.execute(select(Campaign.id).where(Campaign.id == campaign_id, Campaign.deleted_at.is_(None)))
    ).first()
    if campaign is None:
        raise CampaignNotFound("Campaign not found.")
    if body.required_rank_id is not None:
        rank = (
            await db.execute(select(Rank.id).where(Rank.id == body.required_rank_id, Rank.deleted_at.is_(None)))
        ).first()
        if rank is None:
            raise NotFound("Required rank not found.", code="RANK_NOT_FOUND")
    if body.required_achievement_id is not None:
        achievement = (
            await db.execute(
                select(Achievement.id).where(
                    Achievement.id == body.required_achievement_id, Achievement.deleted_at.is_(None)
                )
            )
        ).first()
        if achievement is None:
            raise AchievementNotFound("Required achievement not found.")
    competency_ids = {r.competency_id for r in body.competency_rewards}
    if competency_ids:
        found = set(
            (
                await db.execute(
                    select(Competency.id).where(Competency.id.in_(competency_ids), Competency.deleted_at.is_(None))
                )
            ).scalars()
        )
        missing = competency_ids - found
        if missing:
            raise CompetencyNotFound(f"Competencies not found: {', '.join(sorted(str(c) for c in missing))}")


async def create_mission(db: AsyncSession, campaign_id: uuid.UUID, body: MissionCreate) -> Mission:
    """Create a mission and its type-specific detail row.

    QR missions without an explicit code get a generated one. Does not commit.
    """
    await _check_references(db, campaign_id, body)

    mission_id = uuid.uuid4()
    details: dict[str, Any] = {"manual_details": None, "quiz_details": None, "qr_details": None}
    if isinstance(body, ManualUrlMissionCreate):
        details["manual_details"] = MissionManualDetails(
            mission_id=mission_id,
            submission_prompt=body.submission_prompt,
            placeholder_text=body.placeholder_text,
        )
    elif isinstance(body, QuizMissionCreate):
        details["quiz_details"] = MissionQuizDetails(
            mission_id=mission_id,
            questions=[q.model_dump(mode="json") for q in body.questions],
            pass_threshold=body.pass_threshold,
        )
    elif isinstance(body, QrMissionCreate):
        code = body.completion_code
        if code is None:
            code = await generate_unique_completion_code(db)
        elif await completion_code_in_use(db, code):
            raise Conflict("This completion code is already used by another mission.", code="COMPLETION_CODE_IN_USE")
        details["qr_details"] = MissionQrDetails(mission_id=mission_id, completion_code=code)

    mission = Mission(
        id=mission_id,
        campaign_id=campaign_id,
        title=body.title,
        description=body.description,
        category=body.category,
        cover_url=body.cover_url,
        type=body.type,
        experience_reward=body.experience_reward,
        mana_reward=body.mana_reward,
        competency_rewards=[r.model_dump(mode="json") for r in body.competency_rewards],
        required_rank_id=body.required_rank_id,
        required_achievement_id=body.required_achievement_id,
        **details,
    )
    db.add(mission)
    await db.flush()
    logger.info("Created %s mission %s in campaign %s", mission.type, mission.id, campaign_id)
    return mission


async def delete_mission(db: AsyncSession, mission_id: uuid.UUID) -> Mission:
    """Soft-delete a mission that has no completions. Does not commit."""
    mission = await get_mission(db, mission_id)
    completions = (
        await db.execute(select(func.count()).select_from(MissionCompletion).where(MissionCompletion.mission_id == mission_id))
    ).scalar_one()
    if completions:
        raise MissionHasCompletions
    mission.deleted_at = datetime.now(timezone.utc)
    return mission


async def list_campaign_missions(db: AsyncSession, campaign_id: uuid.UUID) -> list[Mission]:
    result = await db.execute(
        select(Mission)
        .where(Mission.campaign_id == campaign_id, Mission.deleted_at.is_(None))
        .order_by(Mission.created_at)
    )
    return list(result.scalars().all())
