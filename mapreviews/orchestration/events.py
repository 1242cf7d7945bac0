"""Progress events published by the pipeline.

Observers subscribe to a ProgressBus; the poller, the enrichment
orchestrator and the pipeline controller publish to it. A failing observer
is logged and never interrupts the pipeline.

Usage:
    bus = ProgressBus()
    unsubscribe = bus.subscribe(lambda event: print(event.percent, event.message))
    await bus.publish(40, "Scraping... 12s", stage="SCRAPING")
    unsubscribe()
"""

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """A progress notification: percent in 0..100 plus a human message."""

    percent: int
    message: str
    stage: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "percent": self.percent,
            "message": self.message,
            "stage": self.stage,
            "timestamp": self.timestamp.isoformat(),
        }


ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class ProgressBus:
    """Fan-out of progress events to sync or async callbacks."""

    def __init__(self):
        self._callbacks: list[ProgressCallback] = []
        self.last: Optional[ProgressEvent] = None

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """
        Register a callback for every future event.

        Args:
            callback: Function or coroutine function taking a ProgressEvent

        Returns:
            A function removing the subscription
        """
        self._callbacks.append(callback)
        callback_name = getattr(callback, "__name__", repr(callback))
        logger.debug("progress_callback_added", callback=callback_name)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    async def publish(
        self, percent: float, message: str, stage: Optional[str] = None
    ) -> ProgressEvent:
        """Build an event, remember it as ``last`` and deliver it to every observer."""
        event = ProgressEvent(
            percent=max(0, min(100, int(round(percent)))),
            message=message,
            stage=stage,
        )
        self.last = event

        for callback in list(self._callbacks):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                callback_name = getattr(callback, "__name__", repr(callback))
                logger.error(
                    "progress_callback_error",
                    callback=callback_name,
                    error=str(e),
                )
        return event
