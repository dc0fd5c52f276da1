"""Completion endpoints: Mini App submissions, console moderation.

Notifications are delivered only after the transaction has committed.
"""

from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import get_current_manager, get_current_user
from questhub.completions.schemas import (
    CompletionListResponse,
    CompletionResponse,
    CompletionStatusUpdate,
    QuizResult,
)
from questhub.completions.service import (
    list_completions,
    submit,
    submit_qr_code,
    submit_quiz,
    submit_url,
    update_completion_status,
)
from questhub.database import get_session, transaction
from questhub.db.models import Manager, User
from questhub.missions.schemas import QrSubmission, QuizSubmission, Submission, UrlSubmission
from questhub.notifications.notifier import BaseNotifier, deliver_notifications, get_notifier

router = APIRouter(prefix="/api/tma/completions", tags=["Mini App: Completions"])
admin_router = APIRouter(prefix="/api/web/missions", tags=["Console: Moderation"])


# ── Mini App ──


@router.post("", response_model=CompletionResponse | QuizResult)
async def submit_endpoint(
    body: Submission,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: BaseNotifier = Depends(get_notifier),
):
    """Any submission type, selected by ``type``."""
    async with transaction(db):
        result, settlement = await submit(db, user, body)
    if settlement is not None:
        await deliver_notifications(notifier, settlement.notifications)
    return result


@router.post("/url", response_model=CompletionResponse, status_code=202)
async def submit_url_endpoint(
    body: UrlSubmission,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submit a URL for moderation."""
    async with transaction(db):
        completion = await submit_url(db, user, body)
    return CompletionResponse.model_validate(completion)


@router.post("/quiz", response_model=QuizResult)
async def submit_quiz_endpoint(
    body: QuizSubmission,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: BaseNotifier = Depends(get_notifier),
):
    """Score a quiz attempt. A pass is approved and rewarded immediately."""
    async with transaction(db):
        result, settlement = await submit_quiz(db, user, body)
    if settlement is not None:
        await deliver_notifications(notifier, settlement.notifications)
    return result


@router.post("/qr", response_model=CompletionResponse)
async def submit_qr_endpoint(
    body: QrSubmission,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: BaseNotifier = Depends(get_notifier),
):
    """Redeem a QR completion code scanned inside the Mini App."""
    async with transaction(db):
        settlement = await submit_qr_code(db, user, body.completion_code)
    await deliver_notifications(notifier, settlement.notifications)
    return CompletionResponse.model_validate(settlement.completion)


# ── Console ──


@admin_router.get("/{mission_id}/completions", response_model=CompletionListResponse)
async def list_completions_endpoint(
    mission_id: uuid.UUID,
    status: Literal["PENDING_REVIEW", "APPROVED", "REJECTED"] | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
):
    """Moderation queue for one mission."""
    items, total = await list_completions(db, mission_id, status=status, limit=limit, offset=offset)
    return CompletionListResponse(completions=items, total=total)


@admin_router.patch("/{mission_id}/completions/{completion_id}", response_model=CompletionResponse)
async def update_completion_status_endpoint(
    mission_id: uuid.UUID,
    completion_id: uuid.UUID,
    body: CompletionStatusUpdate,
    manager: Manager = Depends(get_current_manager),
    db: AsyncSession = Depends(get_session),
    notifier: BaseNotifier = Depends(get_notifier),
):
    """Approve or reject a submission. Rejecting requires a comment."""
    async with transaction(db):
        result = await update_completion_status(
            db, mission_id, completion_id, body.status, body.comment, moderator_id=manager.id
        )
    await deliver_notifications(notifier, result.notifications)
    return CompletionResponse.model_validate(result.completion)
