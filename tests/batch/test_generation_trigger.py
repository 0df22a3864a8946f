"""
Tests for GenerationTrigger and ScheduledGenerationRunner.

The runner is driven through tick() with a DeterministicClock; one test
exercises the background thread with a short tick interval.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from inventory_batch.trigger import GenerationTrigger, ScheduledGenerationRunner
from inventory_config import settings_from_dict
from inventory_config.schema import AutomationSettings, RetentionSettings, TrackingSettings
from inventory_kernel.domain.dtos import VersionSource
from inventory_services.factory import build_lifecycle_manager
from inventory_services.lifecycle import SnapshotLifecycleManager

UTC = timezone.utc
DUE = datetime(2024, 3, 1, 2, 0, tzinfo=UTC)
NO_TRACKING = TrackingSettings(record_update_history=False)


class _BrokenInventory:
    def read_current(self):
        raise OSError("inventory host unreachable")


def _automation(**overrides):
    values = {"enabled": True, "day_of_month": 1, "time_of_day": "02:00", "tick_interval_seconds": 0.05}
    values.update(overrides)
    return AutomationSettings(**values)


@pytest.fixture
def due_clock(clock):
    clock.set_time(DUE)
    return clock


@pytest.fixture
def trigger(manager, due_clock):
    return GenerationTrigger(manager, clock=due_clock, tracking=NO_TRACKING)


# =============================================================================
# On-demand trigger
# =============================================================================


class TestGenerationTrigger:
    def test_defaults_to_current_period(self, trigger, inventory, make_components):
        inventory.replace(make_components({"a": "1"}))

        info = trigger.run()

        assert info.period_key == "2024-03"

    def test_trigger_in_log_context(self, trigger, captured_logs):
        trigger.run("2024-02")

        record = next(r for r in captured_logs() if r["message"] == "snapshot_generated")
        assert record["trigger"] == "on_demand"
        assert record["period_key"] == "2024-02"

    def test_history_feeds_internal_event_log(self, engine, clock, inventory, make_components, lock_registry):
        settings = settings_from_dict({"event_log": {"source": "internal"}})
        manager = build_lifecycle_manager(
            settings, engine, clock=clock, inventory_source=inventory, lock_registry=lock_registry
        )
        trigger = GenerationTrigger(manager, clock=clock, tracking=settings.tracking)

        inventory.replace(make_components({"akismet": "5.0", "jetpack": "12.0"}))
        trigger.run("2024-02")
        inventory.replace(make_components({"akismet": "5.3", "jetpack": "12.0"}))

        first = trigger.run("2024-03")
        rows = {row.slug: row for row in manager.get_rows("2024-03")}

        assert first.event_source_status == "ok"
        assert rows["akismet"].version_source == VersionSource.EVENT_LOG
        assert (rows["akismet"].version_from, rows["akismet"].version_to) == ("5.0", "5.3")
        assert rows["jetpack"].version_source == VersionSource.DIFF

        second = trigger.run("2024-03")
        assert second.content_hash == first.content_hash
        assert len(manager.get_update_history("2024-03")) == 1


# =============================================================================
# Scheduled runner
# =============================================================================


class TestScheduledGenerationRunner:
    def test_fires_and_locks(self, trigger, due_clock, inventory, make_components):
        inventory.replace(make_components({"a": "1"}))
        runner = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock)

        info = runner.tick()

        assert info.period_key == "2024-03"
        assert info.locked is True
        assert runner.last_run_at == DUE

    def test_once_per_period(self, trigger, due_clock):
        runner = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock)
        assert runner.tick() is not None

        due_clock.advance(3600)
        assert runner.tick() is None

    def test_next_period(self, trigger, due_clock, manager):
        runner = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock)
        runner.tick()

        due_clock.set_time(datetime(2024, 4, 1, 2, 30, tzinfo=UTC))
        info = runner.tick()

        assert info.period_key == "2024-04"
        assert [s.period_key for s in manager.list_snapshots()] == ["2024-04", "2024-03"]

    def test_not_due_yet(self, trigger, due_clock, manager):
        due_clock.set_time(DUE - timedelta(minutes=1))
        runner = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock)

        assert runner.tick() is None
        assert manager.get_snapshot("2024-03") is None

    def test_disabled(self, trigger, due_clock, manager):
        runner = ScheduledGenerationRunner(trigger, _automation(enabled=False), clock=due_clock)
        assert runner.tick() is None
        assert manager.list_snapshots() == []

    def test_restart_does_not_run_twice(self, trigger, due_clock, manager):
        ScheduledGenerationRunner(trigger, _automation(), clock=due_clock).tick()
        due_clock.advance(600)

        restarted = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock)

        assert restarted.tick() is None
        assert restarted.last_run_at == DUE
        assert manager.get_snapshot("2024-03").generation_count == 1

    def test_earlier_manual_generation_does_not_count(self, trigger, due_clock, manager):
        due_clock.set_time(DUE - timedelta(hours=1))
        trigger.run("2024-03")
        due_clock.set_time(DUE)

        info = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock).tick()

        assert info.generation_count == 2

    def test_without_lock(self, trigger, due_clock):
        runner = ScheduledGenerationRunner(
            trigger, _automation(lock_after_generation=False), clock=due_clock
        )
        assert runner.tick().locked is False

    def test_failure_logged_and_retried(
        self, session_factory, due_clock, lock_registry, captured_logs
    ):
        broken = SnapshotLifecycleManager(
            session_factory=session_factory,
            inventory_source=_BrokenInventory(),
            clock=due_clock,
            lock_registry=lock_registry,
        )
        runner = ScheduledGenerationRunner(
            GenerationTrigger(broken, clock=due_clock, tracking=NO_TRACKING),
            _automation(),
            clock=due_clock,
        )

        assert runner.tick() is None
        assert runner.last_run_at is None
        failure = next(r for r in captured_logs() if r["message"] == "scheduled_generation_failed")
        assert failure["exc_code"] == "SOURCE_UNAVAILABLE"
        assert failure["exc_source"] == "inventory"

    def test_prunes_history(self, trigger, due_clock, manager):
        manager.record_update("old", "Old", "1", "2", updated_on=DUE - timedelta(days=90))
        runner = ScheduledGenerationRunner(
            trigger,
            _automation(),
            clock=due_clock,
            retention=RetentionSettings(update_history_days=30),
        )

        runner.tick()

        assert manager.get_update_history("2023-12") == []

    def test_background_thread(self, trigger, due_clock):
        fired = threading.Event()
        seen = []

        def on_fired(info):
            seen.append(info.period_key)
            fired.set()

        runner = ScheduledGenerationRunner(trigger, _automation(), clock=due_clock, on_fired=on_fired)
        runner.start()
        try:
            assert fired.wait(timeout=10)
            assert runner.is_running
        finally:
            runner.stop(timeout=5)

        assert not runner.is_running
        assert seen == ["2024-03"]
