"""Server-side code generation.

Activation codes are 6 decimal digits, typed by users into the Mini App or
embedded in a ``join_<code>`` deep link. QR completion codes are 12
characters of A-Z0-9, embedded in a ``qr_<code>`` deep link. Both come from
a cryptographic random source and are unique among live rows.
"""

from __future__ import annotations

import re
import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.db.models import Campaign, MissionQrDetails

ACTIVATION_CODE_LENGTH = 6
ACTIVATION_CODE_RE = re.compile(r"^[0-9]{6}$")

COMPLETION_CODE_CHARSET = string.ascii_uppercase + string.digits
COMPLETION_CODE_LENGTH = 12

_MAX_ATTEMPTS = 10


def generate_activation_code() -> str:
    """Generate a random 6-digit activation code (leading zeros allowed)."""
    return "".join(secrets.choice(string.digits) for _ in range(ACTIVATION_CODE_LENGTH))


def is_valid_activation_code(code: str | None) -> bool:
    return bool(code) and ACTIVATION_CODE_RE.fullmatch(code) is not None


def generate_completion_code() -> str:
    """Generate a random 12-character QR completion code."""
    return "".join(secrets.choice(COMPLETION_CODE_CHARSET) for _ in range(COMPLETION_CODE_LENGTH))


def normalize_completion_code(code: str) -> str:
    """Completion codes match case-insensitively; storage is upper case."""
    return code.strip().upper()


async def activation_code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(Campaign.id).where(Campaign.activation_code == code, Campaign.deleted_at.is_(None))
    )
    return result.first() is not None


async def completion_code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(MissionQrDetails.mission_id).where(MissionQrDetails.completion_code == code))
    return result.first() is not None


async def generate_unique_activation_code(db: AsyncSession) -> str:
    """Generate an activation code no live campaign uses."""
    for _ in range(_MAX_ATTEMPTS):
        code = generate_activation_code()
        if not await activation_code_in_use(db, code):
            return code
    raise RuntimeError(f"Failed to generate unique activation code after {_MAX_ATTEMPTS} attempts")


async def generate_unique_completion_code(db: AsyncSession) -> str:
    """Generate a QR completion code no mission uses."""
    for _ in range(_MAX_ATTEMPTS):
        code = generate_completion_code()
        if not await completion_code_in_use(db, code):
            return code
    raise RuntimeError(f"Failed to generate unique completion code after {_MAX_ATTEMPTS} attempts")
