"""Scheduled jobs for the Glimpse matching service."""

import asyncio
from typing import Awaitable, Callable

import sentry_sdk

from glimpse.services.match_service import MatchService
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)


async def cleanup_expired_matches_job(match_service: MatchService) -> int:
    """Job to expire active matches that never exchanged a message.

    The sweep itself is one bulk UPDATE run in a worker thread so the event
    loop keeps serving requests. Failures are logged and reported; the next
    run simply tries again.

    Returns:
        int: Number of matches expired, 0 when the run failed.
    """
    logger.info("Running expired matches cleanup job")

    with sentry_sdk.start_span(op="job.cleanup_matches", name="cleanup_expired_matches") as span:
        try:
            count = await asyncio.to_thread(match_service.cleanup_expired_matches)
            span.set_data("expired_count", count)
            return count
        except Exception as e:
            logger.error("Error in expired matches cleanup job", error=str(e))
            sentry_sdk.capture_exception(e)
            span.set_status("internal_error")
            span.set_data("error", str(e))
            return 0


async def run_periodic(job: Callable[[], Awaitable[object]], interval_seconds: float) -> None:
    """
    Run a job now and then every ``interval_seconds`` until cancelled.

    Args:
        job (Callable[[], Awaitable[object]]): Coroutine factory to run.
        interval_seconds (float): Pause between the end of one run and the next.
    """
    while True:
        await job()
        await asyncio.sleep(interval_seconds)
