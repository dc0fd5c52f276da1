"""Client for the backend's ``/api/bot`` surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

UNAVAILABLE_MESSAGE = "An error occurred while contacting the server. Please try again later."


@dataclass
class BackendResult:
    ok: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)


def _tg_user(user: dict[str, Any]) -> dict[str, Any]:
    return {k: user.get(k) for k in ("id", "username", "first_name", "last_name")}


class BackendClient:
    def __init__(self, api_url: str, api_key: str, http: httpx.AsyncClient) -> None:
        self._base = f"{api_url.rstrip('/')}/api/bot"
        self._headers = {"x-api-key": api_key}
        self._http = http

    async def _post(self, path: str, payload: dict[str, Any]) -> BackendResult:
        try:
            response = await self._http.post(f"{self._base}{path}", json=payload, headers=self._headers)
        except httpx.HTTPError:
            logger.exception("backend_request_failed", path=path)
            return BackendResult(ok=False, message=UNAVAILABLE_MESSAGE)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.is_success:
            return BackendResult(ok=True, data=body)

        detail = body.get("detail")
        if not isinstance(detail, str):
            detail = f"Request failed. Status: {response.status_code}."
        logger.info("backend_request_rejected", path=path, status=response.status_code, code=body.get("code"))
        return BackendResult(ok=False, message=detail)

    async def join_campaign(self, user: dict[str, Any], activation_code: str) -> BackendResult:
        return await self._post("/join-campaign", {"tg_user": _tg_user(user), "activation_code": activation_code})

    async def complete_qr_mission(self, user: dict[str, Any], completion_code: str) -> BackendResult:
        return await self._post(
            "/complete-qr-mission", {"tg_user": _tg_user(user), "completion_code": completion_code}
        )

    async def ping(self) -> BackendResult:
        try:
            response = await self._http.get(f"{self._base}/ping", headers=self._headers)
        except httpx.HTTPError:
            logger.exception("backend_ping_failed")
            return BackendResult(ok=False, message="An error occurred while trying to ping the server.")
        if response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            message = body.get("message", "") if isinstance(body, dict) else body
            return BackendResult(ok=True, message=str(message))
        return BackendResult(ok=False, message=f"Status: {response.status_code}\nDetails: {response.text}")
