"""FastAPI dependency injection providers.

This module provides dependency functions for injecting the pipeline
controller, the run registry and the history store into route handlers.
"""

import asyncio
from typing import Coroutine, Optional

import structlog

from mapreviews.config.settings import get_settings
from mapreviews.core.exceptions import MapReviewsError
from mapreviews.delivery.history import HistoryStore
from mapreviews.orchestration.pipeline import PipelineController, RunContext

logger = structlog.get_logger(__name__)


class RunRegistry:
    """In-memory store of runs and the background tasks driving them.

    Holds at most ``max_runs`` contexts; adding past the cap evicts the
    oldest runs that have no step in flight.
    """

    def __init__(self, max_runs: int = 50):
        self.max_runs = max_runs
        self._runs: dict[str, RunContext] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def add(self, ctx: RunContext) -> RunContext:
        self._runs[ctx.run_id] = ctx
        self._evict(keep=ctx.run_id)
        return ctx

    def _evict(self, keep: str) -> None:
        excess = len(self._runs) - self.max_runs
        if excess <= 0:
            return
        idle = [run_id for run_id in self._runs if run_id != keep and not self.is_busy(run_id)]
        for run_id in idle[:excess]:
            del self._runs[run_id]
            self._tasks.pop(run_id, None)
            logger.debug("run_evicted", run_id=run_id)

    def get(self, run_id: str) -> Optional[RunContext]:
        return self._runs.get(run_id)

    def list_runs(self) -> list[RunContext]:
        return list(self._runs.values())

    def is_busy(self, run_id: str) -> bool:
        task = self._tasks.get(run_id)
        return task is not None and not task.done()

    def spawn(self, run_id: str, coro: Coroutine) -> asyncio.Task:
        """Run a pipeline step in the background, logging its outcome."""

        async def _runner() -> None:
            try:
                await coro
            except MapReviewsError as e:
                # The controller already recorded the failure on the context.
                logger.warning("run_step_failed", run_id=run_id, error=str(e))
            except Exception as e:
                logger.error("run_step_crashed", run_id=run_id, error=str(e), error_type=type(e).__name__)
                ctx = self._runs.get(run_id)
                if ctx is not None and ctx.error is None:
                    ctx.error = str(e)

        task = asyncio.create_task(_runner())
        self._tasks[run_id] = task
        return task

    async def cancel_all(self) -> None:
        for ctx in self._runs.values():
            ctx.cancel_event.set()
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._runs.clear()


# Global instances for singleton pattern
_controller: Optional[PipelineController] = None
_registry: Optional[RunRegistry] = None
_history_store: Optional[HistoryStore] = None


def get_history_store() -> HistoryStore:
    """
    Get the history store.

    Returns:
        HistoryStore backed by the file configured in settings.
    """
    global _history_store

    if _history_store is None:
        settings = get_settings()
        _history_store = HistoryStore(
            settings.history_path,
            max_entries=settings.history_max_entries,
            dedupe_window_seconds=settings.history_dedupe_seconds,
        )

    return _history_store


def get_controller() -> PipelineController:
    """
    Get the pipeline controller.

    Uses a singleton pattern; completed runs are recorded in the history store.
    """
    global _controller

    if _controller is None:
        _controller = PipelineController(history=get_history_store())

    return _controller


def get_registry() -> RunRegistry:
    global _registry

    if _registry is None:
        _registry = RunRegistry(max_runs=get_settings().api_max_runs)

    return _registry


def set_controller(controller: PipelineController) -> None:
    """
    Set the global controller instance.

    Args:
        controller: Controller to use for every request (tests inject fakes here).
    """
    global _controller
    _controller = controller


def set_history_store(store: HistoryStore) -> None:
    global _history_store
    _history_store = store


def reset_dependencies() -> None:
    """
    Reset all global dependency instances.

    Useful for testing or application shutdown.
    """
    global _controller, _registry, _history_store
    _controller = None
    _registry = None
    _history_store = None
