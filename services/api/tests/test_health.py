"""Tests for the liveness and readiness endpoints."""

import pytest

from questhub.config import get_settings


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": get_settings().app_version}

    @pytest.mark.asyncio
    async def test_ready_reports_missing_redis(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["checks"]["database"] == "ok"
        assert body["checks"]["redis"].startswith("error:")
        assert body["status"] == "degraded"
