"""
GenerationTrigger and ScheduledGenerationRunner -- invoking generation.

Contract:
    GenerationTrigger.run() generates a period on demand (current period
    by default).  ScheduledGenerationRunner polls on an interval, evaluates
    ``should_fire()`` and, when due, generates the current period and
    optionally locks it.

Architecture: inventory_batch.  Uses inventory_batch.schedule for pure
    evaluation and the lifecycle manager for every write.

Invariants enforced:
    - All timestamps from the injected Clock.
    - A scheduled run happens at most once per period, including across
      restarts: a snapshot generated at or after the due time counts as
      the period's run.
    - Graceful shutdown: stop() lets the current tick finish.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable
from uuid import UUID

from inventory_config.schema import AutomationSettings, RetentionSettings, TrackingSettings
from inventory_kernel.domain.clock import Clock, SystemClock, ensure_utc
from inventory_kernel.domain.dtos import SnapshotInfo
from inventory_kernel.domain.periods import current_period_key, period_key_for
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_batch.schedule import scheduled_fire_time, should_fire
from inventory_services.lifecycle import SnapshotLifecycleManager

logger = get_logger("batch.trigger")


class GenerationTrigger:
    """
    On-demand entry point for snapshot generation.

    When update history tracking is on, the inventory's version moves are
    recorded before the snapshot is generated, so an internal event log
    source sees them on the first run.
    """

    def __init__(
        self,
        manager: SnapshotLifecycleManager,
        clock: Clock | None = None,
        tracking: TrackingSettings | None = None,
    ):
        self.manager = manager
        self._clock = clock or SystemClock()
        self._tracking = tracking or TrackingSettings()

    def run(
        self,
        period_key: str | None = None,
        force: bool = False,
        actor_id: UUID | None = None,
        trigger: str = "on_demand",
        wait: bool = True,
    ) -> SnapshotInfo:
        period_key = period_key or current_period_key(self._clock)
        with LogContext.bind(trigger=trigger, period_key=period_key):
            if self._tracking.record_update_history:
                recorded = self.manager.capture_update_history(period_key)
                if recorded:
                    logger.info("update_history_captured", extra={"count": len(recorded)})
            return self.manager.generate_or_refresh(
                period_key, force=force, actor_id=actor_id, wait=wait
            )


class ScheduledGenerationRunner:
    """In-process polling runner for monthly automation.

    Contract:
        - ``tick()`` evaluates the schedule and fires when due.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler.  Cross-process double runs are
          prevented by the period lock and the locked-snapshot no-op, not
          by leader election.
    """

    def __init__(
        self,
        trigger: GenerationTrigger,
        automation: AutomationSettings,
        clock: Clock | None = None,
        retention: RetentionSettings | None = None,
        actor_id: UUID | None = None,
        on_fired: Callable[[SnapshotInfo], None] | None = None,
    ):
        self._trigger = trigger
        self._automation = automation
        self._clock = clock or SystemClock()
        self._retention = retention or RetentionSettings()
        self._actor_id = actor_id
        self._on_fired = on_fired
        self._last_run_at: datetime | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def last_run_at(self) -> datetime | None:
        return self._last_run_at

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> SnapshotInfo | None:
        """Evaluate and fire if due (public for testing).

        Returns the generated snapshot, or None if nothing fired.
        """
        now = self._clock.now()
        if not should_fire(self._automation, now, self._last_run_at):
            return None

        period_key = period_key_for(now)
        manager = self._trigger.manager
        try:
            existing = manager.get_snapshot(period_key)
            due_at = scheduled_fire_time(period_key, self._automation)
            if existing is not None and existing.generated_at is not None:
                if ensure_utc(existing.generated_at) >= due_at:
                    self._last_run_at = existing.generated_at
                    logger.info(
                        "scheduled_generation_already_done",
                        extra={"period_key": period_key},
                    )
                    return None

            info = self._trigger.run(
                period_key,
                force=False,
                actor_id=self._actor_id,
                trigger="scheduled",
            )
            if self._automation.lock_after_generation:
                info = manager.lock(period_key, actor_id=self._actor_id)
            if self._retention.update_history_days > 0:
                manager.prune_update_history(self._retention.update_history_days)
        except Exception:
            logger.exception("scheduled_generation_failed", extra={"period_key": period_key})
            return None

        self._last_run_at = now
        logger.info(
            "scheduled_generation_fired",
            extra={
                "period_key": period_key,
                "locked": info.locked,
                "summary": info.summary.as_dict(),
            },
        )
        if self._on_fired is not None:
            self._on_fired(info)
        return info

    def start(self) -> None:
        """Start the runner in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="inventory-snapshot-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"tick_interval": self._automation.tick_interval_seconds},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the runner to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._automation.tick_interval_seconds)
