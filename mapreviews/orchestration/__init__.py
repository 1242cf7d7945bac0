"""
Run orchestration.

- events: progress events and the bus observers subscribe to
- poller: drives one external job to a terminal state
- pipeline: stage machine for a whole run (import from
  ``mapreviews.orchestration.pipeline``; it depends on the services layer)
"""

from mapreviews.orchestration.events import ProgressBus, ProgressEvent
from mapreviews.orchestration.poller import (
    DISCOVERY_SCHEDULE,
    SCRAPE_SCHEDULE,
    JobPoller,
    PollSchedule,
    format_elapsed,
)

__all__ = [
    "DISCOVERY_SCHEDULE",
    "SCRAPE_SCHEDULE",
    "JobPoller",
    "PollSchedule",
    "ProgressBus",
    "ProgressEvent",
    "format_elapsed",
]
