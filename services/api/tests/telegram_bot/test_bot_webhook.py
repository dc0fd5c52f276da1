"""HTTP tests for the bot webhook service."""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from questhub.config import get_settings
from questhub.telegram_bot.app import create_app
from questhub.telegram_bot.client import TelegramClient


class RecordingHandler:
    def __init__(self, fail: bool = False) -> None:
        self.updates: list[dict] = []
        self.fail = fail

    async def handle(self, update: dict) -> None:
        self.updates.append(update)
        if self.fail:
            raise RuntimeError("handler blew up")


@pytest.fixture
def telegram_requests() -> list[httpx.Request]:
    return []


@pytest_asyncio.fixture
async def bot_app(telegram_requests):
    def telegram(request: httpx.Request) -> httpx.Response:
        telegram_requests.append(request)
        if b"blocked" in request.content:
            return httpx.Response(403, json={"ok": False, "description": "Forbidden: bot was blocked by the user"})
        return httpx.Response(200, json={"ok": True, "result": {}})

    app = create_app()
    http = httpx.AsyncClient(transport=httpx.MockTransport(telegram))
    app.state.telegram = TelegramClient("123456:TEST-BOT-TOKEN", http)
    app.state.handler = RecordingHandler()
    yield app
    await http.aclose()


@pytest_asyncio.fixture
async def bot_client(bot_app):
    async with AsyncClient(transport=ASGITransport(app=bot_app), base_url="http://bot") as ac:
        yield ac


class TestWebhook:
    """Test ``POST /webhook``."""

    @pytest.mark.asyncio
    async def test_update_is_dispatched(self, bot_app, bot_client):
        update = {"update_id": 10, "message": {"text": "/help"}}
        response = await bot_client.post("/webhook", json=update)
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert bot_app.state.handler.updates == [update]

    @pytest.mark.asyncio
    async def test_handler_failure_is_still_acknowledged(self, bot_app, bot_client):
        bot_app.state.handler = RecordingHandler(fail=True)
        response = await bot_client.post("/webhook", json={"update_id": 11})
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_invalid_json_is_acknowledged(self, bot_app, bot_client):
        response = await bot_client.post("/webhook", content=b"{not json", headers={"content-type": "application/json"})
        assert response.json() == {"ok": True}
        assert bot_app.state.handler.updates == []

    @pytest.mark.asyncio
    async def test_secret_token(self, bot_app, bot_client, monkeypatch):
        monkeypatch.setenv("QH_TELEGRAM_WEBHOOK_SECRET", "hook-secret")
        get_settings.cache_clear()
        try:
            refused = await bot_client.post("/webhook", json={"update_id": 12})
            accepted = await bot_client.post(
                "/webhook", json={"update_id": 13}, headers={"X-Telegram-Bot-Api-Secret-Token": "hook-secret"}
            )
        finally:
            monkeypatch.delenv("QH_TELEGRAM_WEBHOOK_SECRET")
            get_settings.cache_clear()
        assert refused.status_code == 401
        assert accepted.status_code == 200
        assert [u["update_id"] for u in bot_app.state.handler.updates] == [13]


class TestSendMessage:
    """Test ``POST /send-message``."""

    @pytest.mark.asyncio
    async def test_sends(self, bot_client, telegram_requests):
        response = await bot_client.post(
            "/send-message", json={"chat_id": 42, "message": "hi"}, headers={"x-api-key": "test-api-key"}
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Message sent successfully"}
        assert telegram_requests[0].url.path == "/bot123456:TEST-BOT-TOKEN/sendMessage"

    @pytest.mark.asyncio
    async def test_requires_api_key(self, bot_client, telegram_requests):
        response = await bot_client.post("/send-message", json={"chat_id": 42, "message": "hi"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: Invalid API key"
        assert telegram_requests == []

    @pytest.mark.asyncio
    async def test_telegram_error_is_502(self, bot_client):
        response = await bot_client.post(
            "/send-message", json={"chat_id": 42, "message": "blocked"}, headers={"x-api-key": "test-api-key"}
        )
        assert response.status_code == 502

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, bot_client):
        response = await bot_client.post(
            "/send-message", json={"chat_id": 42, "message": ""}, headers={"x-api-key": "test-api-key"}
        )
        assert response.status_code == 422


class TestBotHealth:
    @pytest.mark.asyncio
    async def test_health(self, bot_client):
        response = await bot_client.get("/health")
        assert response.json()["status"] == "ok"
