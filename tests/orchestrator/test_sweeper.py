"""Tests for MaintenanceSweeper."""

from datetime import timedelta

import pytest

from orchestrator import MaintenanceSweeper
from research import DecisionCache, Reason, WebSearchDecision


@pytest.fixture
def decision_cache(clock):
    return DecisionCache(ttl=300, clock=clock)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_runs_every_step(self, lexical_store, dt_clock, health, clock, decision_cache):
        await lexical_store.store("u1", "expires soon", ttl=timedelta(minutes=1))
        dt_clock.advance(hours=30)
        health.record_failure("completion:a", "boom")
        decision_cache.set("u1", "q", WebSearchDecision(False, Reason.NOT_NEEDED))
        clock.advance(1000)

        sweeper = MaintenanceSweeper(
            memory=lexical_store,
            health=health,
            decision_cache=decision_cache,
            grace_period=timedelta(hours=24),
        )
        summary = sweeper.run_once()

        assert summary == {
            "memory_removed": 1,
            "circuits_reset": ["completion:a"],
            "decisions_expired": 1,
        }

    def test_missing_collaborators_are_skipped(self):
        assert MaintenanceSweeper().run_once() == {
            "memory_removed": 0,
            "circuits_reset": [],
            "decisions_expired": 0,
        }


class TestScheduling:
    def test_start_registers_interval_job(self):
        sweeper = MaintenanceSweeper(interval_minutes=15)
        sweeper.start()
        try:
            job = sweeper.scheduler.get_job("maintenance_sweep")
            assert job is not None
            assert job.trigger.interval == timedelta(minutes=15)
            assert job.coalesce is True
            assert job.max_instances == 1
        finally:
            sweeper.stop()
        assert not sweeper.scheduler.running

    def test_stop_without_start(self):
        MaintenanceSweeper().stop()
