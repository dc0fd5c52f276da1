"""Mini App profile endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import get_current_user
from questhub.database import get_session
from questhub.db.models import User
from questhub.identity.schemas import UserProfile
from questhub.identity.service import load_profile

router = APIRouter(prefix="/api/tma/users", tags=["Mini App: Users"])


@router.get("/me", response_model=UserProfile)
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserProfile:
    """Current user with points and rank."""
    return await load_profile(db, user)
