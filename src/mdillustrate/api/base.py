"""Shared httpx plumbing for the planner / image-job API clients"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from mdillustrate.config import Settings
from mdillustrate.core.models import JobStatus, Plan, PollableJob
from mdillustrate.errors import ApiError


logger = logging.getLogger(__name__)


def plan_from_items(items: Any) -> Plan:
    """Validate planner items; a malformed plan is reported like any other bad response."""
    try:
        return Plan.model_validate({"items": items or []})
    except ValidationError as e:
        raise ApiError(f"Malformed plan in response ({e.error_count()} invalid field(s))") from e


class BaseApiClient:
    """Owns an httpx.AsyncClient (unless one is injected) and maps failures to ApiError."""

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings
        self._http = http or httpx.AsyncClient(timeout=settings.http_timeout)
        self._owns_http = http is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _error_from(self, response: httpx.Response) -> ApiError:
        return ApiError(
            f"HTTP {response.status_code}: {response.text or 'Unknown error'}",
            status_code=response.status_code,
            retryable=response.status_code in (429, 503),
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"Network error: {e}", code="NETWORK_ERROR", retryable=True) from e
        if response.status_code >= 400:
            raise self._error_from(response)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {response.request.url}: {e}") from e
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected response from {response.request.url}: expected an object")
        return data

    async def download(self, url: str) -> bytes:
        """Fetch a finished image."""
        response = await self._send("GET", url)
        logger.debug("Downloaded %s (%d bytes)", url, len(response.content))
        return response.content

    @staticmethod
    def _job(job_id: str, data: dict[str, Any], **fields: Any) -> PollableJob:
        """Build a PollableJob from a status response plus the mode-specific fields."""
        try:
            status = JobStatus(data.get("status"))
        except (ValueError, TypeError) as e:
            raise ApiError(f"Unknown job status {data.get('status')!r} for job {job_id}") from e
        try:
            return PollableJob(job_id=job_id, status=status, progress_percent=data.get("progress"), **fields)
        except ValidationError as e:
            raise ApiError(f"Malformed status for job {job_id} ({e.error_count()} invalid field(s))") from e
