"""HTTP tests for URL submissions and the console moderation queue."""

import pytest
from sqlalchemy import select

from questhub.db.models import User


async def _submit_url(client, headers, mission_id, url="https://example.com/my-post"):
    return await client.post(
        "/api/tma/completions/url",
        json={"mission_id": str(mission_id), "submission_url": url},
        headers=headers,
    )


class TestUrlSubmission:
    @pytest.mark.asyncio
    async def test_submit_is_accepted_for_review(self, client, factory, seeded, user_headers):
        mission = await factory.url_mission(seeded["campaign"])
        response = await _submit_url(client, user_headers, mission.id)
        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "PENDING_REVIEW"
        assert body["result_data"] == {"submission_url": "https://example.com/my-post"}

        duplicate = await _submit_url(client, user_headers, mission.id)
        assert duplicate.status_code == 409
        assert duplicate.json()["code"] == "SUBMISSION_EXISTS"

    @pytest.mark.asyncio
    async def test_invalid_url(self, client, factory, seeded, user_headers):
        mission = await factory.url_mission(seeded["campaign"])
        response = await _submit_url(client, user_headers, mission.id, url="not a url")
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestModerationQueue:
    """Test ``/api/web/missions/{mission_id}/completions``."""

    @pytest.mark.asyncio
    async def test_list_and_approve(self, client, factory, seeded, user_headers, manager_headers, notifier, db_session):
        mission = await factory.url_mission(seeded["campaign"], title="Share a story", experience_reward=40, mana_reward=4)
        completion_id = (await _submit_url(client, user_headers, mission.id)).json()["id"]

        queue = await client.get(
            f"/api/web/missions/{mission.id}/completions", params={"status": "PENDING_REVIEW"}, headers=manager_headers
        )
        assert queue.status_code == 200
        assert queue.json()["total"] == 1
        entry = queue.json()["completions"][0]
        assert entry["id"] == completion_id
        assert entry["tg_id"] == seeded["user"].tg_id

        approved = await client.patch(
            f"/api/web/missions/{mission.id}/completions/{completion_id}",
            json={"status": "APPROVED"},
            headers=manager_headers,
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"
        assert approved.json()["moderator_id"] == str(seeded["manager"].id)
        assert notifier.sent[0][0] == seeded["user"].tg_id
        assert "Share a story" in notifier.sent[0][1]

        row = (
            await db_session.execute(
                select(User.experience_points, User.mana_points).where(User.id == seeded["user"].id)
            )
        ).one()
        assert tuple(row) == (40, 4)
        await db_session.commit()

        empty = await client.get(
            f"/api/web/missions/{mission.id}/completions", params={"status": "PENDING_REVIEW"}, headers=manager_headers
        )
        assert empty.json() == {"completions": [], "total": 0}

    @pytest.mark.asyncio
    async def test_reject_requires_comment(self, client, factory, seeded, user_headers, manager_headers, notifier):
        mission = await factory.url_mission(seeded["campaign"])
        completion_id = (await _submit_url(client, user_headers, mission.id)).json()["id"]
        url = f"/api/web/missions/{mission.id}/completions/{completion_id}"

        missing = await client.patch(url, json={"status": "REJECTED", "comment": "  "}, headers=manager_headers)
        assert missing.status_code == 400
        assert missing.json()["code"] == "COMMENT_REQUIRED"
        assert notifier.sent == []

        rejected = await client.patch(url, json={"status": "REJECTED", "comment": "Post is private"}, headers=manager_headers)
        assert rejected.status_code == 200
        assert rejected.json()["moderator_comment"] == "Post is private"
        assert "Post is private" in notifier.sent[-1][1]

    @pytest.mark.asyncio
    async def test_reject_after_approve_conflicts(self, client, factory, seeded, user_headers, manager_headers):
        mission = await factory.url_mission(seeded["campaign"])
        completion_id = (await _submit_url(client, user_headers, mission.id)).json()["id"]
        url = f"/api/web/missions/{mission.id}/completions/{completion_id}"

        await client.patch(url, json={"status": "APPROVED"}, headers=manager_headers)
        response = await client.patch(url, json={"status": "REJECTED", "comment": "oops"}, headers=manager_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "COMPLETION_ALREADY_APPROVED"

    @pytest.mark.asyncio
    async def test_completion_of_other_mission(self, client, factory, seeded, user_headers, manager_headers):
        first = await factory.url_mission(seeded["campaign"])
        second = await factory.url_mission(seeded["campaign"])
        completion_id = (await _submit_url(client, user_headers, first.id)).json()["id"]
        response = await client.patch(
            f"/api/web/missions/{second.id}/completions/{completion_id}",
            json={"status": "APPROVED"},
            headers=manager_headers,
        )
        assert response.status_code == 404
        assert response.json()["code"] == "COMPLETION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_requires_manager(self, client, factory, seeded, user_headers):
        mission = await factory.url_mission(seeded["campaign"])
        response = await client.get(f"/api/web/missions/{mission.id}/completions", headers=user_headers)
        assert response.status_code == 401
