"""API client protocol, factory, and the create -> poll -> download composition"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

import httpx

from mdillustrate.api.direct import DirectApiClient
from mdillustrate.api.proxy import ProxyClient
from mdillustrate.config import Settings
from mdillustrate.core.models import Plan, PollableJob
from mdillustrate.core.poller import ProgressCallback, await_completion


logger = logging.getLogger(__name__)


class ImageApiClient(Protocol):
    """What the pipeline needs from an external planner / image-job service."""

    async def generate_plan(self, excerpt: str, settings: Settings) -> Plan: ...

    async def create_job(self, prompt: str, settings: Settings) -> str: ...

    async def get_job(self, job_id: str) -> PollableJob: ...

    async def download(self, url: str) -> bytes: ...

    async def aclose(self) -> None: ...


def create_api_client(settings: Settings, http: Optional[httpx.AsyncClient] = None):
    """Return the client for settings.connection_mode. Raises ValueError on missing credentials."""
    if settings.connection_mode == "direct":
        return DirectApiClient(settings, http)
    if settings.connection_mode == "proxy":
        return ProxyClient(settings, http)
    raise ValueError(f"Unknown connection mode: {settings.connection_mode}")


async def generate_image(
    client: ImageApiClient,
    prompt: str,
    settings: Settings,
    on_progress: Optional[ProgressCallback] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> bytes:
    """Create an image job, wait for it, and download the result."""
    url = await await_completion(
        lambda: client.create_job(prompt, settings),
        client.get_job,
        on_progress,
        max_attempts=settings.poll_max_attempts,
        interval=settings.poll_interval,
        sleep=sleep,
    )
    logger.debug("Downloading %s", url)
    return await client.download(url)
