"""Shared test fixtures.

The suite runs against an in-memory SQLite database (aiosqlite) with the
schema created from the ORM metadata. SAVEPOINT handling is enabled by
taking over BEGIN from the pysqlite driver.
"""

from __future__ import annotations

import os

os.environ.setdefault("QH_API_KEY", "test-api-key")
os.environ.setdefault("QH_TELEGRAM_BOT_TOKEN", "123456:TEST-BOT-TOKEN")
os.environ.setdefault("QH_JWT_SECRET", "test-jwt-secret-with-enough-bytes-for-hs256")
os.environ.setdefault("QH_NOTIFICATION_BACKEND", "disabled")
os.environ.setdefault("QH_LOG_FORMAT", "console")
os.environ.setdefault("QH_TMA_URL", "https://t.me/questhub_test_bot/app")

import json  # noqa: E402
import time  # noqa: E402
import uuid  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402
from typing import Any  # noqa: E402
from urllib.parse import urlencode  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from questhub.auth.jwt import create_access_token  # noqa: E402
from questhub.auth.password import hash_password  # noqa: E402
from questhub.auth.telegram import compute_init_data_hash  # noqa: E402
from questhub.config import get_settings  # noqa: E402
from questhub.database import get_session  # noqa: E402
from questhub.db.base import Base  # noqa: E402
from questhub.db.models import (  # noqa: E402
    Achievement,
    Campaign,
    CampaignStatus,
    Competency,
    Manager,
    Mission,
    MissionManualDetails,
    MissionQrDetails,
    MissionQuizDetails,
    MissionType,
    Rank,
    User,
    UserAchievement,
    UserCampaign,
)
from questhub.main import create_app  # noqa: E402
from questhub.notifications.notifier import BaseNotifier, get_notifier  # noqa: E402

get_settings.cache_clear()


class RecordingNotifier(BaseNotifier):
    """Collects messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    async def send(self, chat_id: int, text: str) -> bool:
        self.sent.append((chat_id, text))
        return True


def quiz_questions(count: int = 5) -> list[dict[str, Any]]:
    """``count`` questions whose correct answer is always index 1."""
    return [
        {
            "text": f"Question {i + 1}",
            "answers": [
                {"text": "wrong", "is_correct": False},
                {"text": "right", "is_correct": True},
                {"text": "also wrong", "is_correct": False},
            ],
        }
        for i in range(count)
    ]


class Factory:
    """Builds committed rows for tests."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._tg_id = 100_000

    async def _save(self, obj: Any) -> Any:  # noqa: ANN401
        self.db.add(obj)
        await self.db.commit()
        return obj

    async def rank(self, title: str = "Novice", priority: int = 0, unlock_conditions: dict | None = None) -> Rank:
        return await self._save(Rank(title=title, priority=priority, unlock_conditions=unlock_conditions or {}))

    async def user(self, rank: Rank | None = None, **kwargs: Any) -> User:
        self._tg_id += 1
        fields: dict[str, Any] = {"tg_id": self._tg_id, "first_name": "Test", "username": f"user{self._tg_id}"}
        fields.update(kwargs)
        return await self._save(User(rank_id=rank.id if rank else None, **fields))

    async def manager(self, email: str = "admin@example.com", password: str = "S3cure-pass!") -> Manager:
        return await self._save(Manager(email=email, password_hash=hash_password(password), name="Admin"))

    async def campaign(
        self,
        activation_code: str = "123456",
        status: CampaignStatus = CampaignStatus.ACTIVE,
        **kwargs: Any,
    ) -> Campaign:
        fields: dict[str, Any] = {"title": "Spring Quest", "cover_url": "https://cdn.example.com/cover.png"}
        fields.update(kwargs)
        return await self._save(Campaign(activation_code=activation_code, status=status.value, **fields))

    async def join(self, user: User, campaign: Campaign) -> UserCampaign:
        return await self._save(UserCampaign(user_id=user.id, campaign_id=campaign.id))

    async def _mission(self, campaign: Campaign, mission_type: MissionType, details: dict[str, Any], **kwargs: Any) -> Mission:
        mission_id = uuid.uuid4()
        fields: dict[str, Any] = {
            "title": f"{mission_type.value} mission",
            "experience_reward": 100,
            "mana_reward": 10,
            "competency_rewards": [],
            "manual_details": None,
            "quiz_details": None,
            "qr_details": None,
        }
        fields.update(kwargs)
        for key, value in details.items():
            value.mission_id = mission_id
            fields[key] = value
        return await self._save(Mission(id=mission_id, campaign_id=campaign.id, type=mission_type.value, **fields))

    async def url_mission(self, campaign: Campaign, **kwargs: Any) -> Mission:
        details = {"manual_details": MissionManualDetails(submission_prompt="Paste a link to your post")}
        return await self._mission(campaign, MissionType.MANUAL_URL, details, **kwargs)

    async def quiz_mission(
        self, campaign: Campaign, questions: int = 5, pass_threshold: float = 0.8, **kwargs: Any
    ) -> Mission:
        details = {
            "quiz_details": MissionQuizDetails(questions=quiz_questions(questions), pass_threshold=pass_threshold)
        }
        return await self._mission(campaign, MissionType.QUIZ, details, **kwargs)

    async def qr_mission(self, campaign: Campaign, code: str = "QRCODE123456", **kwargs: Any) -> Mission:
        details = {"qr_details": MissionQrDetails(completion_code=code)}
        return await self._mission(campaign, MissionType.QR_CODE, details, **kwargs)

    async def achievement(
        self, campaign: Campaign, missions: list[Mission], mana_reward: int = 50, **kwargs: Any
    ) -> Achievement:
        fields: dict[str, Any] = {"name": "Completionist", "experience_reward": 0}
        fields.update(kwargs)
        return await self._save(
            Achievement(
                campaign_id=campaign.id,
                unlock_conditions={"required_missions": [str(m.id) for m in missions]},
                mana_reward=mana_reward,
                **fields,
            )
        )

    async def grant(self, user: User, achievement: Achievement) -> UserAchievement:
        return await self._save(UserAchievement(user_id=user.id, achievement_id=achievement.id))

    async def competency(self, name: str = "Communication", **kwargs: Any) -> Competency:
        return await self._save(Competency(name=name, **kwargs))


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):  # noqa: ANN001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(session_factory, db_session, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the test database.

    The setup session is committed and released before each request, so the
    single shared connection is never used by two transactions at once.
    """
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def seeded(factory: Factory) -> dict[str, Any]:
    """Default rank, one active campaign, a joined user and a manager."""
    rank = await factory.rank()
    campaign = await factory.campaign()
    user = await factory.user(rank=rank)
    await factory.join(user, campaign)
    manager = await factory.manager()
    await factory.db.commit()
    return {"rank": rank, "campaign": campaign, "user": user, "manager": manager}


@pytest.fixture
def user_headers(seeded) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(seeded['user'].id, 'user')}"}


@pytest.fixture
def manager_headers(seeded) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(seeded['manager'].id, 'manager')}"}


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    return {"x-api-key": "test-api-key"}


@pytest.fixture
def sign_init_data():
    """Build Telegram initData signed with the test bot token."""

    def _sign(user: dict[str, Any], auth_date: int | None = None) -> str:
        fields = {
            "user": json.dumps(user),
            "auth_date": str(int(time.time()) if auth_date is None else auth_date),
        }
        fields["hash"] = compute_init_data_hash(fields, get_settings().telegram_bot_token)
        return urlencode(fields)

    return _sign
