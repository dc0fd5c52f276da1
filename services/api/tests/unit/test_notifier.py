"""Unit tests for notification delivery."""

import json

import httpx
import pytest
from arq import Retry

from questhub.notifications.notifier import (
    BaseNotifier,
    BotGatewayNotifier,
    NullNotifier,
    OutboundMessage,
    QueuedNotifier,
    create_notifier,
    deliver_notifications,
)
from questhub.notifications.worker import MAX_TRIES, send_telegram_message


class _Exploding(BaseNotifier):
    async def send(self, chat_id: int, text: str) -> bool:
        raise RuntimeError("boom")


class TestBotGatewayNotifier:
    """Test the direct HTTP backend."""

    @pytest.mark.asyncio
    async def test_posts_chat_id_and_message_with_api_key(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = BotGatewayNotifier("http://bot.local/", "secret", client=client)
            assert await notifier.send(42, "hello") is True

        assert len(seen) == 1
        assert str(seen[0].url) == "http://bot.local/send-message"
        assert seen[0].headers["x-api-key"] == "secret"
        assert json.loads(seen[0].content) == {"chat_id": 42, "message": "hello"}

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self):
        transport = httpx.MockTransport(lambda _req: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as client:
            notifier = BotGatewayNotifier("http://bot.local", "secret", client=client)
            assert await notifier.send(42, "hello") is False

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = BotGatewayNotifier("http://bot.local", "secret", client=client)
            assert await notifier.send(42, "hello") is False


class TestQueuedNotifier:
    """Without an arq pool the enqueue fails and is reported, not raised."""

    @pytest.mark.asyncio
    async def test_enqueue_without_pool_returns_false(self):
        assert await QueuedNotifier().send(1, "x") is False


class TestDeliverNotifications:
    """Delivery never raises."""

    @pytest.mark.asyncio
    async def test_counts_delivered(self):
        messages = [OutboundMessage(1, "a"), OutboundMessage(2, "b")]
        assert await deliver_notifications(NullNotifier(), messages) == 2

    @pytest.mark.asyncio
    async def test_exception_is_swallowed(self):
        assert await deliver_notifications(_Exploding(), [OutboundMessage(1, "a")]) == 0


class TestCreateNotifier:
    """Backend selection."""

    def test_backends(self):
        assert isinstance(create_notifier("disabled"), NullNotifier)
        assert isinstance(create_notifier("queue"), QueuedNotifier)
        assert isinstance(create_notifier("direct"), BotGatewayNotifier)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_notifier("carrier-pigeon")


class _Fixed(BaseNotifier):
    def __init__(self, ok: bool) -> None:
        self.ok = ok
        self.calls = 0

    async def send(self, chat_id: int, text: str) -> bool:
        self.calls += 1
        return self.ok


class TestWorkerJob:
    """The arq job retries failed deliveries with backoff."""

    @pytest.mark.asyncio
    async def test_success(self):
        assert await send_telegram_message({"notifier": _Fixed(True), "job_try": 1}, 1, "hi") is True

    @pytest.mark.asyncio
    async def test_failure_is_retried(self):
        with pytest.raises(Retry):
            await send_telegram_message({"notifier": _Fixed(False), "job_try": 1}, 1, "hi")

    @pytest.mark.asyncio
    async def test_last_try_gives_up(self):
        notifier = _Fixed(False)
        assert await send_telegram_message({"notifier": notifier, "job_try": MAX_TRIES}, 1, "hi") is False
        assert notifier.calls == 1
