"""Identity resolver: find-or-create a user by Telegram id."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import Rank, User
from questhub.errors import NoInitialRankConfigured, UserDeactivated
from questhub.identity.schemas import RankBrief, TelegramIdentity, UserProfile

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Get a non-deleted user by internal id."""
    result = await db.execute(select(User).where(User.id == user_id, User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_user_by_tg_id(db: AsyncSession, tg_id: int) -> User | None:
    """Get a user by Telegram id, soft-deleted rows included."""
    result = await db.execute(select(User).where(User.tg_id == tg_id))
    return result.scalar_one_or_none()


async def get_initial_rank(db: AsyncSession) -> Rank | None:
    """The default rank for new users: lowest priority among non-deleted ranks."""
    result = await db.execute(
        select(Rank).where(Rank.deleted_at.is_(None)).order_by(Rank.priority.asc(), Rank.created_at.asc()).limit(1)
    )
    return result.scalar_one_or_none()


def _refresh_profile(user: User, identity: TelegramIdentity) -> None:
    if identity.username is not None:
        user.username = identity.username
    if identity.first_name is not None:
        user.first_name = identity.first_name
    if identity.last_name is not None:
        user.last_name = identity.last_name
    if identity.photo_url is not None:
        user.avatar_url = identity.photo_url


def _ensure_active(user: User) -> User:
    if user.deleted_at is not None:
        raise UserDeactivated
    return user


async def resolve_user(db: AsyncSession, identity: TelegramIdentity) -> User:
    """Return the user for a Telegram identity, creating it on first contact.

    New users get the lowest-priority rank. The insert runs in a SAVEPOINT so
    a concurrent first contact for the same ``tg_id`` resolves to the row the
    other request created instead of failing the caller's transaction.

    Does not commit; the caller owns the transaction.

    Raises:
        NoInitialRankConfigured: No rank exists to assign to a new user.
        UserDeactivated: The Telegram id belongs to a soft-deleted user.
    """
    existing = await get_user_by_tg_id(db, identity.id)
    if existing is not None:
        _ensure_active(existing)
        _refresh_profile(existing, identity)
        return existing

    rank = await get_initial_rank(db)
    if rank is None:
        logger.error("No initial rank configured, cannot create user tg_id=%s", identity.id)
        raise NoInitialRankConfigured

    user = User(
        tg_id=identity.id,
        username=identity.username,
        first_name=identity.first_name,
        last_name=identity.last_name,
        avatar_url=identity.photo_url,
        rank_id=rank.id,
    )
    try:
        async with db.begin_nested():
            db.add(user)
    except IntegrityError:
        winner = await get_user_by_tg_id(db, identity.id)
        if winner is None:
            raise
        logger.info("Concurrent first contact for tg_id=%s resolved to user %s", identity.id, winner.id)
        return _ensure_active(winner)

    logger.info("Created user %s for tg_id=%s with rank %s", user.id, identity.id, rank.title)
    return user


async def load_profile(db: AsyncSession, user: User) -> UserProfile:
    """Build the Mini App profile, rank included."""
    rank = await db.get(Rank, user.rank_id) if user.rank_id is not None else None
    return UserProfile(
        id=user.id,
        tg_id=user.tg_id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar_url=user.avatar_url,
        experience_points=user.experience_points,
        mana_points=user.mana_points,
        rank=RankBrief.model_validate(rank) if rank is not None else None,
        created_at=user.created_at,
    )
