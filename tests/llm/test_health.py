"""Tests for HealthTable cool-down arithmetic and stale reset."""

from llm import HealthTable


class TestCooldown:
    def test_exponential_with_cap(self, health):
        assert health.cooldown_for(0) == 0.0
        assert health.cooldown_for(1) == 30
        assert health.cooldown_for(2) == 60
        assert health.cooldown_for(3) == 120
        assert health.cooldown_for(5) == 480
        assert health.cooldown_for(6) == 600
        assert health.cooldown_for(20) == 600

    def test_record_failure_opens_circuit(self, health, clock):
        applied = health.record_failure("completion:a", "boom")
        assert applied == 30
        assert not health.is_available("completion:a")

        clock.advance(29)
        assert not health.is_available("completion:a")
        clock.advance(2)
        assert health.is_available("completion:a")

    def test_consecutive_failures_grow_cooldown(self, health, clock):
        health.record_failure("k", "1")
        clock.advance(31)
        second = health.record_failure("k", "2")
        assert second == 60
        assert health.get("k").consecutive_failures == 2

    def test_success_resets(self, health):
        health.record_failure("k", "boom")
        health.record_success("k")
        entry = health.get("k")
        assert entry.consecutive_failures == 0
        assert entry.circuit_open_until is None
        assert entry.last_success_at is not None
        assert health.is_available("k")

    def test_unknown_key_is_available(self, health):
        assert health.is_available("completion:never-seen")


class TestSnapshotAndReset:
    def test_snapshot_is_a_copy(self, health):
        health.record_failure("k", "boom")
        snap = health.snapshot()
        snap["k"].consecutive_failures = 99
        assert health.get("k").consecutive_failures == 1

    def test_reset_stale_after_max_cooldown(self, clock):
        table = HealthTable(base_cooldown=10, max_cooldown=100, clock=clock)
        table.record_failure("k", "boom")

        clock.advance(50)  # circuit expired but failure is recent
        assert table.reset_stale() == []
        assert table.get("k").consecutive_failures == 1

        clock.advance(60)
        assert table.reset_stale() == ["k"]
        assert table.get("k").consecutive_failures == 0

    def test_reset_stale_leaves_open_circuits(self, clock):
        table = HealthTable(base_cooldown=500, max_cooldown=600, clock=clock)
        table.record_failure("k", "boom")
        clock.advance(100)
        assert table.reset_stale() == []
