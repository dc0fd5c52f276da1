"""HTTP tests for the Mini App surface: profile, campaigns and submissions."""

import pytest

from questhub.db.models import CampaignStatus


class TestProfile:
    @pytest.mark.asyncio
    async def test_me(self, client, seeded, user_headers):
        response = await client.get("/api/tma/users/me", headers=user_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(seeded["user"].id)
        assert body["experience_points"] == 0
        assert body["rank"]["title"] == "Novice"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/tma/users/me", headers={"Authorization": "Bearer not.a.token"})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"


class TestCampaigns:
    """Test ``/api/tma/campaigns``."""

    @pytest.mark.asyncio
    async def test_join_and_list(self, client, factory, seeded, user_headers):
        await factory.campaign("314159", title="Pi Day")

        response = await client.post("/api/tma/campaigns/join", json={"activation_code": "314159"}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["title"] == "Pi Day"

        listed = await client.get("/api/tma/campaigns", headers=user_headers)
        assert {c["title"] for c in listed.json()} == {"Pi Day", seeded["campaign"].title}

    @pytest.mark.asyncio
    async def test_join_errors_carry_codes(self, client, factory, seeded, user_headers):
        await factory.campaign("271828", status=CampaignStatus.DRAFT)
        cases = {
            "abc": (400, "INVALID_ACTIVATION_CODE"),
            "000000": (404, "CAMPAIGN_NOT_FOUND"),
            "271828": (400, "CAMPAIGN_NOT_ACTIVE"),
            seeded["campaign"].activation_code: (409, "ALREADY_JOINED"),
        }
        for code, (status, error_code) in cases.items():
            response = await client.post("/api/tma/campaigns/join", json={"activation_code": code}, headers=user_headers)
            assert (response.status_code, response.json()["code"]) == (status, error_code), code


class TestSubmissions:
    """Test ``POST /api/tma/completions`` and its typed variants."""

    @pytest.mark.asyncio
    async def test_quiz_pass_through_generic_endpoint(self, client, factory, seeded, user_headers, notifier):
        mission = await factory.quiz_mission(seeded["campaign"], questions=3, pass_threshold=1.0, title="Basics")
        answers = [{"question_index": i, "answer_index": 1} for i in range(3)]

        response = await client.post(
            "/api/tma/completions",
            json={"type": "QUIZ", "mission_id": str(mission.id), "answers": answers},
            headers=user_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["passed"] is True
        assert body["correct_answers"] == 3
        assert body["rewards"] == {"experience": 100, "mana": 10}
        assert "Basics" in notifier.sent[0][1]

        me = await client.get("/api/tma/users/me", headers=user_headers)
        assert (me.json()["experience_points"], me.json()["mana_points"]) == (100, 10)

    @pytest.mark.asyncio
    async def test_quiz_fail(self, client, factory, seeded, user_headers, notifier):
        mission = await factory.quiz_mission(seeded["campaign"], questions=2, pass_threshold=1.0)
        response = await client.post(
            "/api/tma/completions/quiz",
            json={
                "mission_id": str(mission.id),
                "answers": [{"question_index": 0, "answer_index": 1}, {"question_index": 1, "answer_index": 0}],
            },
            headers=user_headers,
        )
        assert response.status_code == 200
        assert response.json()["passed"] is False
        assert response.json()["required_score"] == 1.0
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_qr_through_generic_endpoint(self, client, factory, seeded, user_headers):
        await factory.qr_mission(seeded["campaign"])
        response = await client.post(
            "/api/tma/completions", json={"type": "QR_CODE", "completion_code": " qrcode123456 "}, headers=user_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"

        again = await client.post(
            "/api/tma/completions", json={"type": "QR_CODE", "completion_code": "QRCODE123456"}, headers=user_headers
        )
        assert again.status_code == 409
        assert again.json()["code"] == "ALREADY_COMPLETED"

    @pytest.mark.asyncio
    async def test_unknown_submission_type(self, client, seeded, user_headers):
        response = await client.post("/api/tma/completions", json={"type": "PHOTO"}, headers=user_headers)
        assert response.status_code == 422
