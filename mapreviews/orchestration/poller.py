"""Job poller: drives an external job to a terminal state.

One status check per tick at a fixed interval, no backoff. A failed status
check is not retried; it ends the polling session immediately.

Usage:
    poller = JobPoller(events=bus)
    records = await poller.poll_until_terminal(
        handle.job_id,
        fetch_status=lambda job_id: client.get_job_status(job_id, JobKind.SCRAPE),
        fetch_results=client.fetch_job_results,
        schedule=SCRAPE_SCHEDULE,
    )
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from mapreviews.core.exceptions import (
    JobFailedError,
    JobStatusCheckError,
    PollCancelledError,
    PollTimeoutError,
)
from mapreviews.models.schemas import JobState, JobStatus
from mapreviews.orchestration.events import ProgressBus

logger = structlog.get_logger(__name__)

StatusFetcher = Callable[[str], Awaitable[JobStatus]]
ResultsFetcher = Callable[[JobStatus], Awaitable[list[dict[str, Any]]]]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class PollSchedule:
    """Cadence and progress mapping of one polling session.

    Progress on tick n is ``min(ceiling, floor + n / max_attempts * span)``.
    """

    interval_seconds: float
    max_attempts: int
    progress_floor: float = 10.0
    progress_span: float = 40.0
    progress_ceiling: float = 45.0
    label: str = "Job"
    stage: Optional[str] = None

    def progress_for(self, attempts: int) -> float:
        return min(
            self.progress_ceiling,
            self.progress_floor + (attempts / self.max_attempts) * self.progress_span,
        )

    def with_overrides(
        self,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> "PollSchedule":
        """Copy with a different cadence (settings or tests)."""
        return PollSchedule(
            interval_seconds=interval_seconds if interval_seconds is not None else self.interval_seconds,
            max_attempts=max_attempts if max_attempts is not None else self.max_attempts,
            progress_floor=self.progress_floor,
            progress_span=self.progress_span,
            progress_ceiling=self.progress_ceiling,
            label=self.label,
            stage=self.stage,
        )


DISCOVERY_SCHEDULE = PollSchedule(
    interval_seconds=2.0,
    max_attempts=150,
    progress_floor=10.0,
    progress_span=40.0,
    progress_ceiling=45.0,
    label="Search",
    stage="DISCOVERING",
)

SCRAPE_SCHEDULE = PollSchedule(
    interval_seconds=3.0,
    max_attempts=200,
    progress_floor=10.0,
    progress_span=80.0,
    progress_ceiling=90.0,
    label="Scrape",
    stage="SCRAPING",
)


def format_elapsed(seconds: float) -> str:
    """Format elapsed seconds as ``"Xm Ys"``, or ``"Ys"`` under a minute."""
    total = int(round(seconds))
    minutes, secs = divmod(total, 60)
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class JobPoller:
    """Polls one job at a time until it succeeds, fails or runs out of attempts.

    Attributes:
        sleep: Awaitable sleep, injected so tests can run without waiting.
        events: Optional progress bus receiving one event per tick.
    """

    def __init__(
        self,
        sleep: Sleeper = asyncio.sleep,
        events: Optional[ProgressBus] = None,
    ):
        self.sleep = sleep
        self.events = events

    async def _publish(self, schedule: PollSchedule, attempts: int) -> None:
        if self.events is None:
            return
        elapsed = format_elapsed(attempts * schedule.interval_seconds)
        await self.events.publish(
            schedule.progress_for(attempts),
            f"{schedule.label} in progress... {elapsed}",
            stage=schedule.stage,
        )

    async def poll_until_terminal(
        self,
        job_id: str,
        fetch_status: StatusFetcher,
        fetch_results: ResultsFetcher,
        schedule: PollSchedule,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[dict[str, Any]]:
        """
        Poll a job until it reaches a terminal state.

        Args:
            job_id: Provider job identifier
            fetch_status: Coroutine returning the job's current JobStatus
            fetch_results: Coroutine returning the result set of a succeeded job
            schedule: Interval, attempt budget and progress mapping
            cancel_event: When set, polling stops before the next check

        Returns:
            The job's full result set

        Raises:
            JobFailedError: The provider reported the job as failed
            JobStatusCheckError: A status check raised
            PollTimeoutError: max_attempts checks without a terminal state
            PollCancelledError: cancel_event was set
        """
        attempts = 0
        log = logger.bind(job_id=job_id, label=schedule.label)
        log.info(
            "poll_started",
            interval=schedule.interval_seconds,
            max_attempts=schedule.max_attempts,
        )

        while True:
            if cancel_event is not None and cancel_event.is_set():
                log.info("poll_cancelled", attempts=attempts)
                raise PollCancelledError(job_id, f"{schedule.label} cancelled")

            attempts += 1
            await self._publish(schedule, attempts)

            try:
                status = await fetch_status(job_id)
            except Exception as e:
                log.error("poll_status_check_failed", attempts=attempts, error=str(e))
                raise JobStatusCheckError(
                    job_id,
                    f"{schedule.label} status check failed: {e}",
                    {"attempts": attempts},
                ) from e

            log.debug("poll_tick", attempts=attempts, state=status.state.value)

            if status.state == JobState.SUCCEEDED:
                log.info("poll_succeeded", attempts=attempts)
                return await fetch_results(status)

            if status.state == JobState.FAILED:
                message = status.error or f"{schedule.label} failed"
                log.warning("poll_job_failed", attempts=attempts, error=message)
                raise JobFailedError(job_id, message, {"attempts": attempts})

            if attempts >= schedule.max_attempts:
                log.warning("poll_timeout", attempts=attempts)
                raise PollTimeoutError(job_id, attempts, label=schedule.label)

            await self.sleep(schedule.interval_seconds)
