"""Unit tests for the API run registry."""

import asyncio

import pytest

from mapreviews.api.dependencies import RunRegistry
from mapreviews.orchestration.pipeline import RunContext


class TestRunRegistryEviction:
    """Test that the registry stays bounded."""

    def test_oldest_runs_are_evicted_past_the_cap(self):
        registry = RunRegistry(max_runs=2)
        runs = [registry.add(RunContext()) for _ in range(4)]

        assert [ctx.run_id for ctx in registry.list_runs()] == [runs[2].run_id, runs[3].run_id]
        assert registry.get(runs[0].run_id) is None

    def test_under_the_cap_nothing_is_evicted(self):
        registry = RunRegistry(max_runs=3)
        runs = [registry.add(RunContext()) for _ in range(3)]

        assert len(registry.list_runs()) == 3
        assert all(registry.get(ctx.run_id) is ctx for ctx in runs)

    @pytest.mark.asyncio
    async def test_busy_runs_are_kept(self):
        registry = RunRegistry(max_runs=1)
        release = asyncio.Event()
        busy = registry.add(RunContext())
        task = registry.spawn(busy.run_id, release.wait())

        newest = registry.add(RunContext())

        assert registry.get(busy.run_id) is busy
        assert registry.get(newest.run_id) is newest

        release.set()
        await asyncio.wait_for(task, timeout=1)
        third = registry.add(RunContext())

        assert registry.get(busy.run_id) is None
        assert registry.get(newest.run_id) is None
        assert [ctx.run_id for ctx in registry.list_runs()] == [third.run_id]

    @pytest.mark.asyncio
    async def test_cancel_all_drops_runs(self):
        registry = RunRegistry()
        ctx = registry.add(RunContext())
        registry.spawn(ctx.run_id, asyncio.Event().wait())

        await registry.cancel_all()

        assert ctx.cancel_event.is_set()
        assert registry.list_runs() == []
