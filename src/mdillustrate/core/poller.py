"""Bounded, fixed-interval polling of long-running external jobs

`await_completion` turns a create-job / get-status API pair into one awaited
result reference:

    Created -> (pending | processing)* -> completed | failed
                                       -> timed out (attempt budget exhausted)

Exactly one poll is outstanding at a time. The sleep between polls is the only
suspension point of the loop; cancelling the awaiting task there abandons the
external job without any cleanup call.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from mdillustrate.core.models import JobStatus, PollableJob, PollProgress
from mdillustrate.errors import JobFailedError, JobTimeoutError, MissingResultError


logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_INTERVAL = 5.0

STATUS_MESSAGES = {
    JobStatus.pending: "Waiting in queue...",
    JobStatus.processing: "Generating image...",
}

ProgressCallback = Callable[[PollProgress], None]


async def await_completion(
    create: Callable[[], Awaitable[str]],
    poll: Callable[[str], Awaitable[PollableJob]],
    on_progress: Optional[ProgressCallback] = None,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> str:
    """Create a job, then sleep-and-poll up to max_attempts times.

    Returns the completed job's result reference. Raises JobFailedError on a
    terminal failure, MissingResultError when completion carries no reference,
    and JobTimeoutError when attempts run out.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    handle = await create()
    logger.info("Created job %s", handle)

    for attempt in range(1, max_attempts + 1):
        await sleep(interval)
        job = await poll(handle)

        if job.status == JobStatus.completed:
            if not job.result_ref:
                raise MissingResultError(f"Job {handle} completed without a result reference")
            logger.info("Job %s completed after %d poll(s)", handle, attempt)
            return job.result_ref

        if job.status == JobStatus.failed:
            raise JobFailedError(f"Image generation failed: {job.error_message or 'Unknown error'}")

        logger.debug("Job %s %s (%d/%d)", handle, job.status.value, attempt, max_attempts)
        if on_progress is not None:
            on_progress(PollProgress(
                attempt=attempt,
                max_attempts=max_attempts,
                percent=attempt / max_attempts * 100,
                status=job.status,
                message=f"{STATUS_MESSAGES[job.status]} ({attempt}/{max_attempts})",
            ))

    raise JobTimeoutError(
        f"Job {handle} timed out after {max_attempts} attempts ({max_attempts * interval:g}s)"
    )
