"""Submit-then-poll helper for job based vendor APIs."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ...domain.exceptions import (
    GenerationTimeoutError,
    MalformedProviderResponseError,
    ProviderError,
)

logger = logging.getLogger(__name__)


async def submit_then_poll(
    submit: Callable[[], Awaitable[str]],
    poll: Callable[[str], Awaitable[Any]],
    is_terminal: Callable[[Any], bool],
    *,
    provider: str,
    interval: float,
    max_attempts: int,
    is_failed: Optional[Callable[[Any], Optional[str]]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """Start a job, then poll it until it reaches a terminal status.

    Args:
        submit: starts the job and returns its id
        poll: fetches the status payload of a job id
        is_terminal: True once the payload holds the finished result
        provider: provider name used in errors and logs
        interval: seconds to wait between polls
        max_attempts: number of polls before giving up
        is_failed: returns a failure description for a failed payload, else None
        sleep: awaitable used for waiting

    Returns:
        The first terminal payload.

    Raises:
        ProviderError: the job reported failure
        MalformedProviderResponseError: a status payload is not a JSON object
        GenerationTimeoutError: ``max_attempts`` polls without a terminal status
    """
    if max_attempts <= 0:
        raise ValueError("max_attempts must be positive")

    job_id = await submit()
    logger.info(f"{provider} job {job_id} submitted, polling every {interval}s (max {max_attempts})")

    for attempt in range(1, max_attempts + 1):
        payload = await poll(job_id)
        if not isinstance(payload, dict):
            raise MalformedProviderResponseError(
                provider, f"Job {job_id} status is not an object: {payload!r:.200}"
            )

        if is_terminal(payload):
            logger.info(f"{provider} job {job_id} finished after {attempt} poll(s)")
            return payload

        if is_failed is not None:
            failure = is_failed(payload)
            if failure:
                raise ProviderError(provider, f"Job {job_id} failed: {failure}")

        logger.debug(f"{provider} job {job_id} still running (poll {attempt}/{max_attempts})")
        if attempt < max_attempts:
            await sleep(interval)

    raise GenerationTimeoutError(provider, max_attempts)
