"""Tests for the unique-constraint backstops behind the existence checks.

Each test commits the competing row from a second session and makes the
service's own lookup miss it once, the way a concurrent request would slip
in between the check and the insert.
"""

from typing import Any

import pytest
from sqlalchemy import func, select

from questhub.campaigns import service as campaigns_service
from questhub.campaigns.service import join_campaign
from questhub.completions import settlement
from questhub.completions.settlement import record_attempt
from questhub.database import transaction
from questhub.db.models import (
    CompletionStatus,
    MissionCompletion,
    User,
    UserAchievement,
    UserCampaign,
)
from questhub.errors import AlreadyCompleted, AlreadyJoined
from questhub.gamification.achievement_checker import grant_achievement
from questhub.gamification.rewards import get_user_points
from questhub.identity import service as identity_service
from questhub.identity.schemas import TelegramIdentity
from questhub.identity.service import resolve_user


def miss_once(monkeypatch, module, name: str, result: Any) -> None:
    """Make ``module.name`` return ``result`` on its first call only."""
    real = getattr(module, name)
    calls = []

    async def lookup(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return result
        return await real(*args, **kwargs)

    monkeypatch.setattr(module, name, lookup)


async def commit_elsewhere(session_factory, obj) -> None:
    async with session_factory() as other:
        other.add(obj)
        await other.commit()


async def count(db, model, *where) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*where))).scalar_one()


class TestJoinBackstop:
    @pytest.mark.asyncio
    async def test_concurrent_membership_maps_to_already_joined(
        self, db_session, factory, session_factory, monkeypatch
    ):
        user = await factory.user()
        campaign = await factory.campaign("313131", max_participants=5)
        user_id, campaign_id = user.id, campaign.id
        await commit_elsewhere(session_factory, UserCampaign(user_id=user_id, campaign_id=campaign_id))
        miss_once(monkeypatch, campaigns_service, "is_member", False)

        with pytest.raises(AlreadyJoined):
            async with transaction(db_session):
                await join_campaign(db_session, user_id, "313131")

        assert await count(db_session, UserCampaign, UserCampaign.campaign_id == campaign_id) == 1


class TestGrantBackstop:
    @pytest.mark.asyncio
    async def test_duplicate_grant_is_skipped_without_reward(self, db_session, factory, session_factory, seeded):
        user = seeded["user"]
        mission = await factory.qr_mission(seeded["campaign"])
        achievement = await factory.achievement(seeded["campaign"], [mission], mana_reward=50, experience_reward=20)
        await commit_elsewhere(session_factory, UserAchievement(user_id=user.id, achievement_id=achievement.id))

        async with transaction(db_session):
            granted = await grant_achievement(db_session, user.id, achievement)

        assert granted is False
        assert await get_user_points(db_session, user.id) == (0, 0)
        assert await count(db_session, UserAchievement, UserAchievement.user_id == user.id) == 1


class TestRecordAttemptBackstop:
    @pytest.mark.asyncio
    async def test_concurrent_first_attempt_is_reused(self, db_session, factory, session_factory, seeded, monkeypatch):
        user = seeded["user"]
        mission = await factory.url_mission(seeded["campaign"])
        rival = MissionCompletion(
            user_id=user.id,
            mission_id=mission.id,
            status=CompletionStatus.REJECTED.value,
            result_data={"submission_url": "https://x.io/old"},
        )
        await commit_elsewhere(session_factory, rival)
        miss_once(monkeypatch, settlement, "lock_user_completion", None)

        async with transaction(db_session):
            completion = await record_attempt(
                db_session,
                user.id,
                mission.id,
                status=CompletionStatus.PENDING_REVIEW,
                result_data={"submission_url": "https://x.io/new"},
                block_pending=True,
            )

        assert completion.id == rival.id
        assert completion.status == CompletionStatus.PENDING_REVIEW.value
        assert completion.result_data == {"submission_url": "https://x.io/new"}
        assert await count(db_session, MissionCompletion, MissionCompletion.mission_id == mission.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_approval_is_refused(self, db_session, factory, session_factory, seeded, monkeypatch):
        user = seeded["user"]
        mission = await factory.qr_mission(seeded["campaign"])
        user_id, mission_id = user.id, mission.id
        await commit_elsewhere(
            session_factory,
            MissionCompletion(
                user_id=user_id, mission_id=mission_id, status=CompletionStatus.APPROVED.value, result_data={}
            ),
        )
        miss_once(monkeypatch, settlement, "lock_user_completion", None)

        with pytest.raises(AlreadyCompleted):
            async with transaction(db_session):
                await record_attempt(
                    db_session, user_id, mission_id, status=CompletionStatus.PENDING_REVIEW, result_data={}
                )

        assert await count(db_session, MissionCompletion, MissionCompletion.mission_id == mission_id) == 1
        assert await get_user_points(db_session, user_id) == (0, 0)


class TestResolveUserBackstop:
    @pytest.mark.asyncio
    async def test_concurrent_first_contact_resolves_to_winner(
        self, db_session, factory, session_factory, monkeypatch
    ):
        rank = await factory.rank()
        winner = User(tg_id=5150, first_name="First", rank_id=rank.id)
        await commit_elsewhere(session_factory, winner)
        miss_once(monkeypatch, identity_service, "get_user_by_tg_id", None)

        async with transaction(db_session):
            user = await resolve_user(db_session, TelegramIdentity(id=5150, first_name="Second"))

        assert user.id == winner.id
        assert await count(db_session, User, User.tg_id == 5150) == 1
