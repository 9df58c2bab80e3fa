"""Proxy mode: one bearer-token server fronts both the planner and the image jobs"""

import logging
from typing import Optional

import httpx

from mdillustrate.api.base import BaseApiClient, plan_from_items
from mdillustrate.config import Settings
from mdillustrate.core.models import Plan, PollableJob
from mdillustrate.errors import ApiError


logger = logging.getLogger(__name__)


class ProxyClient(BaseApiClient):
    """Client for POST /v1/plan, POST /v1/image/create and GET /v1/image/status/{jobId}."""

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None) -> None:
        if not settings.proxy_token:
            raise ValueError("Proxy mode needs proxy_token")
        super().__init__(settings, http)
        self._base_url = settings.proxy_url.rstrip('/')

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.proxy_token}"}

    def _error_from(self, response: httpx.Response) -> ApiError:
        """Decode {"error": {code, message, retryable, retryAfter}}; fall back to the raw body."""
        try:
            err = response.json()["error"]
            return ApiError(
                err["message"],
                code=err.get("code"),
                status_code=response.status_code,
                retryable=bool(err.get("retryable", False)),
                retry_after=err.get("retryAfter"),
            )
        except (ValueError, KeyError, TypeError):
            return ApiError(
                f"HTTP {response.status_code}: {response.text or 'Unknown error'}",
                code="UNKNOWN_ERROR",
                status_code=response.status_code,
            )

    async def generate_plan(self, excerpt: str, settings: Settings) -> Plan:
        response = await self._send(
            "POST", f"{self._base_url}/v1/plan",
            headers=self._headers(),
            json={
                "noteContent": excerpt,
                "settings": {
                    "imageCount": settings.image_count,
                    "style": settings.image_style,
                    "language": settings.language,
                },
            },
        )
        plan = plan_from_items(self._json(response).get("items"))
        logger.info("Planned %d image(s)", len(plan.items))
        return plan

    async def create_job(self, prompt: str, settings: Settings) -> str:
        response = await self._send(
            "POST", f"{self._base_url}/v1/image/create",
            headers=self._headers(),
            json={
                "prompt": prompt,
                "style": settings.image_style,
                "aspectRatio": settings.aspect_ratio,
                "resolution": settings.resolution,
                "outputFormat": "png",
            },
        )
        job_id = self._json(response).get("jobId")
        if not job_id:
            raise ApiError("No jobId in response")
        return job_id

    async def get_job(self, job_id: str) -> PollableJob:
        response = await self._send(
            "GET", f"{self._base_url}/v1/image/status/{job_id}", headers=self._headers(),
        )
        data = self._json(response)
        return self._job(job_id, data, result_ref=data.get("imageUrl"), error_message=data.get("errorMessage"))
