"""Bot-facing API: deep-link actions performed on behalf of a Telegram user.

Every endpoint requires the shared ``x-api-key``.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questhub.auth.dependencies import require_api_key
from questhub.bot.schemas import CompleteQrMissionRequest, PingResponse
from questhub.campaigns.schemas import BotJoinRequest, BotJoinResponse
from questhub.campaigns.service import join_campaign_by_code
from questhub.completions.service import complete_qr_mission
from questhub.database import get_session, transaction
from questhub.notifications.notifier import BaseNotifier, deliver_notifications, get_notifier

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/bot", tags=["Bot"], dependencies=[Depends(require_api_key)])


@router.get("/ping", response_model=PingResponse)
async def ping_endpoint() -> PingResponse:
    return PingResponse()


@router.post("/join-campaign", response_model=BotJoinResponse)
async def join_campaign_endpoint(
    body: BotJoinRequest,
    db: AsyncSession = Depends(get_session),
):
    """Resolve the Telegram user and admit them by activation code."""
    async with transaction(db):
        result = await join_campaign_by_code(db, body.tg_user, body.activation_code)
    logger.info("bot_join_campaign", tg_id=body.tg_user.id, campaign_id=str(result.campaign_id))
    return result


@router.post("/complete-qr-mission")
async def complete_qr_mission_endpoint(
    body: CompleteQrMissionRequest,
    db: AsyncSession = Depends(get_session),
    notifier: BaseNotifier = Depends(get_notifier),
) -> dict:
    """Approve a QR mission for the user presenting its completion code."""
    async with transaction(db):
        settlement = await complete_qr_mission(db, body.tg_user, body.completion_code)
    logger.info(
        "bot_complete_qr_mission",
        tg_id=body.tg_user.id,
        mission_id=str(settlement.completion.mission_id),
        achievements=len(settlement.achievements),
    )
    await deliver_notifications(notifier, settlement.notifications)
    return {}
