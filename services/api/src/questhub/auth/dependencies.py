"""FastAPI authentication dependencies."""

from __future__ import annotations

import secrets
import uuid

import jwt
from fastapi import Depends, Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.jwt import Role, verify_token
from questhub.config import get_settings
from questhub.database import get_session
from questhub.db.models import Manager, User
from questhub.identity.service import get_user_by_id

_bearer = HTTPBearer()


def _subject_id(credentials: HTTPAuthorizationCredentials, role: Role) -> uuid.UUID:
    try:
        payload = verify_token(credentials.credentials, expected_type="access", expected_role=role)
        return uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Verify a Mini App access token and return the user. 401 on failure."""
    user = await get_user_by_id(db, _subject_id(credentials, "user"))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_manager(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> Manager:
    """Verify a console access token and return the manager. 401 on failure."""
    manager_id = _subject_id(credentials, "manager")
    result = await db.execute(select(Manager).where(Manager.id == manager_id, Manager.deleted_at.is_(None)))
    manager = result.scalar_one_or_none()
    if manager is None:
        raise HTTPException(status_code=401, detail="Manager not found")
    return manager


async def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    """Guard for service-to-service calls between the bot and the backend."""
    expected = get_settings().api_key
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid API Key")
