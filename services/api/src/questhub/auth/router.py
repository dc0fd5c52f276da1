"""Authentication router: Mini App login via initData, console login via email + password."""

from __future__ import annotations

import uuid

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.jwt import Role, create_access_token, create_refresh_token, verify_token
from questhub.auth.password import check_needs_rehash, hash_password, verify_password
from questhub.auth.schemas import (
    ManagerLoginRequest,
    ManagerResponse,
    ManagerTokenResponse,
    RefreshRequest,
    TmaLoginRequest,
    TmaTokenResponse,
    TokenPair,
)
from questhub.auth.telegram import InvalidInitData, validate_init_data
from questhub.config import get_settings
from questhub.database import get_session, transaction
from questhub.db.models import Manager
from questhub.identity.service import get_user_by_id, load_profile, resolve_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/tma/auth", tags=["Mini App: Auth"])
admin_router = APIRouter(prefix="/api/web/auth", tags=["Console: Auth"])


def _token_pair(subject_id: uuid.UUID, role: Role) -> dict:
    settings = get_settings()
    return {
        "access_token": create_access_token(subject_id, role),
        "refresh_token": create_refresh_token(subject_id, role),
        "token_type": "bearer",
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
    }


def _refresh_subject(body: RefreshRequest, role: Role) -> uuid.UUID:
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh", expected_role=role)
        return uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid refresh token") from e


# ---------------------------------------------------------------------------
# Mini App
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TmaTokenResponse)
async def tma_login(body: TmaLoginRequest, db: AsyncSession = Depends(get_session)) -> TmaTokenResponse:
    """Verify Telegram initData, find or create the user, issue tokens."""
    settings = get_settings()
    try:
        identity = validate_init_data(
            body.init_data,
            settings.telegram_bot_token,
            max_age_seconds=settings.init_data_max_age_seconds,
        )
    except InvalidInitData as e:
        logger.warning("tma_login_rejected", reason=str(e))
        raise HTTPException(status_code=401, detail="Invalid Telegram initData") from e

    async with transaction(db):
        user = await resolve_user(db, identity)

    logger.info("tma_login", user_id=str(user.id), tg_id=identity.id)
    profile = await load_profile(db, user)
    return TmaTokenResponse(**_token_pair(user.id, "user"), user=profile)


@router.post("/refresh", response_model=TokenPair)
async def tma_refresh(body: RefreshRequest, db: AsyncSession = Depends(get_session)) -> TokenPair:
    """Exchange a refresh token for a new pair."""
    user_id = _refresh_subject(body, "user")
    if await get_user_by_id(db, user_id) is None:
        raise HTTPException(status_code=401, detail="User not found")
    return TokenPair(**_token_pair(user_id, "user"))


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


async def _get_manager(db: AsyncSession, **filters: object) -> Manager | None:
    stmt = select(Manager).where(Manager.deleted_at.is_(None)).filter_by(**filters)
    return (await db.execute(stmt)).scalar_one_or_none()


@admin_router.post("/login", response_model=ManagerTokenResponse)
async def manager_login(body: ManagerLoginRequest, db: AsyncSession = Depends(get_session)) -> ManagerTokenResponse:
    """Email + password login for administrators and moderators."""
    manager = await _get_manager(db, email=body.email)
    if manager is None or not verify_password(body.password, manager.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if check_needs_rehash(manager.password_hash):
        async with transaction(db):
            manager.password_hash = hash_password(body.password)

    logger.info("manager_login", manager_id=str(manager.id))
    return ManagerTokenResponse(
        **_token_pair(manager.id, "manager"),
        manager=ManagerResponse(id=manager.id, email=manager.email, name=manager.name, role=manager.role),
    )


@admin_router.post("/refresh", response_model=TokenPair)
async def manager_refresh(body: RefreshRequest, db: AsyncSession = Depends(get_session)) -> TokenPair:
    """Exchange a console refresh token for a new pair."""
    manager_id = _refresh_subject(body, "manager")
    if await _get_manager(db, id=manager_id) is None:
        raise HTTPException(status_code=401, detail="Manager not found")
    return TokenPair(**_token_pair(manager_id, "manager"))
