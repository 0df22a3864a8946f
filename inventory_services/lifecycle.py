"""
inventory_services.lifecycle -- Snapshot lifecycle manager.

Responsibility:
    Owns the NoSnapshot -> Draft -> Locked state machine of period
    snapshots.  ``generate_or_refresh`` reads the inventory, diffs it
    against the comparison period, enriches version pairs from the event
    log, carries annotations forward and replaces the period's rows in one
    transaction.  Lock, unlock, annotation and notes edits are the only
    other writes.

Architecture position:
    Services -- stateful orchestration over engines, sources and kernel.
    Owns transaction boundaries (commit/rollback); the kernel store and
    selector it composes only flush.

Invariants enforced:
    - At most one writer per period: every write path runs inside
      PeriodLockRegistry.hold(period_key), and on PostgreSQL additionally
      under pg_advisory_xact_lock and SELECT ... FOR UPDATE.  State is read
      only after the lock is held.
    - A locked snapshot is left untouched by non-forced generation; a
      forced regeneration rewrites its rows and keeps it locked.
    - Generation is all-or-nothing: an inventory or persistence failure
      rolls back every row change and creates no snapshot.
    - Event log problems never abort generation; diff-derived versions
      stand unless the log reports OK with a matching event.
    - Annotations come only from the same period's pre-regeneration rows.

Failure modes:
    - SourceUnavailableError(source="inventory")    -- inventory unreadable.
    - SourceUnavailableError(source="persistence")  -- database failure in
      any read or write.
    - ConcurrentGenerationInProgressError           -- period lock not
      acquired within the configured wait.
    - SnapshotLockedError     -- annotation/notes edit on a locked snapshot.
    - SnapshotNotFoundError   -- lock/unlock/edit on a missing snapshot.
    - InvalidPeriodKeyError   -- period_key is not YYYY-MM.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Mapping, Protocol
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_engines.annotations import merge_annotations
from inventory_engines.diff import diff_inventories
from inventory_engines.enrichment import apply_events
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    Classification,
    EventFetchResult,
    SnapshotInfo,
    SnapshotRowInfo,
    SnapshotSummary,
    TimeRange,
    UpdateRecord,
    VersionSource,
)
from inventory_kernel.domain.periods import period_title, period_window, validate_period_key
from inventory_kernel.exceptions import (
    ConcurrentGenerationInProgressError,
    SnapshotNotFoundError,
    SourceUnavailableError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.snapshot import InventorySnapshot
from inventory_kernel.models.update_history import UpdateSource
from inventory_kernel.selectors.snapshot_selector import (
    PreviousPeriodStrategy,
    SnapshotSelector,
)
from inventory_kernel.services.period_lock import PeriodLockRegistry, acquire_advisory_lock
from inventory_kernel.services.snapshot_store import SnapshotStore
from inventory_kernel.services.update_history_service import UpdateHistoryService
from inventory_sources.events.adapter import NullEventLogAdapter
from inventory_sources.inventory.base import InventorySource, read_inventory

logger = get_logger("services.lifecycle")

PERSISTENCE_SOURCE = "persistence"


class EventSource(Protocol):
    """Anything that can produce an EventFetchResult for a window."""

    def fetch_events(self, window: TimeRange) -> EventFetchResult: ...


class SnapshotLifecycleManager:
    """
    Generates, locks and edits period snapshots.

    Contract:
        Receives its collaborators by constructor injection: a session
        factory for the snapshot store, an inventory source, an optional
        event source, a clock and a lock registry.  Instances are safe to
        share between threads; each call opens its own session.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        inventory_source: InventorySource,
        event_source: EventSource | None = None,
        clock: Clock | None = None,
        lock_registry: PeriodLockRegistry | None = None,
        previous_period_strategy: PreviousPeriodStrategy | str = PreviousPeriodStrategy.LATEST_PRIOR,
        include_inactive: bool = True,
        lock_timeout_seconds: float | None = 30.0,
    ):
        self._session_factory = session_factory
        self._inventory = inventory_source
        self._events = event_source or NullEventLogAdapter()
        self._clock = clock or SystemClock()
        self._locks = lock_registry or PeriodLockRegistry(default_timeout=lock_timeout_seconds)
        self._strategy = PreviousPeriodStrategy(previous_period_strategy)
        self._include_inactive = include_inactive
        self._lock_timeout = lock_timeout_seconds

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _persistence_errors(self, period_key: str | None = None) -> Iterator[None]:
        """
        Map SQLAlchemy failures onto the kernel taxonomy.

        A unique-constraint conflict on a period write means another
        process created the period first.  Anything else is the store
        being unavailable.
        """
        try:
            yield
        except IntegrityError as exc:
            if period_key is None:
                raise SourceUnavailableError(PERSISTENCE_SOURCE, str(exc)) from exc
            logger.warning(
                "snapshot_write_conflict",
                extra={"error": str(exc.orig) if exc.orig else str(exc)},
            )
            raise ConcurrentGenerationInProgressError(period_key, 0.0) from exc
        except SQLAlchemyError as exc:
            logger.error("persistence_failed", exc_info=True)
            raise SourceUnavailableError(PERSISTENCE_SOURCE, str(exc)) from exc

    @contextmanager
    def _transaction(self, period_key: str | None = None) -> Iterator[Session]:
        with self._persistence_errors(period_key):
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def _read_session(self) -> Iterator[Session]:
        with self._persistence_errors():
            session = self._session_factory()
            try:
                yield session
            finally:
                session.rollback()
                session.close()

    @contextmanager
    def _locked_write(self, period_key: str, wait: bool = True) -> Iterator[Session]:
        """Period lock, then a transaction holding the advisory lock."""
        with self._locks.hold(period_key, timeout=self._lock_timeout, wait=wait):
            with self._transaction(period_key) as session:
                acquire_advisory_lock(session, period_key)
                yield session

    @staticmethod
    def _require(store: SnapshotStore, period_key: str) -> InventorySnapshot:
        snapshot = store.get_for_update(period_key)
        if snapshot is None:
            raise SnapshotNotFoundError(period_key)
        return snapshot

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_or_refresh(
        self,
        period_key: str,
        force: bool = False,
        actor_id: UUID | None = None,
        wait: bool = True,
    ) -> SnapshotInfo:
        """
        Create or regenerate the snapshot for ``period_key``.

        Args:
            period_key: "YYYY-MM".
            force: Regenerate even if the snapshot is locked.
            actor_id: Recorded in log context.
            wait: When False, fail immediately if the period is busy.

        Returns:
            The snapshot's metadata after the call.  For a locked snapshot
            and ``force=False`` this is the unchanged existing snapshot.
        """
        validate_period_key(period_key)
        run_id = uuid4()

        with LogContext.bind(period_key=period_key, run_id=str(run_id), actor_id=actor_id):
            logger.info("snapshot_generation_started", extra={"force": force})
            try:
                with self._locked_write(period_key, wait=wait) as session:
                    info = self._generate(session, period_key, force)
            except SourceUnavailableError as exc:
                logger.error(
                    "snapshot_generation_aborted",
                    extra={"source": exc.source, "reason": exc.reason},
                )
                raise

        return info

    def _generate(self, session: Session, period_key: str, force: bool) -> SnapshotInfo:
        store = SnapshotStore(session)
        selector = SnapshotSelector(session)

        snapshot = store.get_for_update(period_key)
        if snapshot is not None and snapshot.locked and not force:
            logger.info("snapshot_generation_skipped_locked")
            return SnapshotInfo.from_model(snapshot)

        current = read_inventory(self._inventory, include_inactive=self._include_inactive)
        prior_key, previous = selector.previous_rows(period_key, self._strategy)

        results = diff_inventories(current, previous)

        fetch = self._events.fetch_events(period_window(period_key))
        results = apply_events(results, fetch)

        existing = {row.slug: row for row in store.load_rows(snapshot)} if snapshot else {}
        merged = merge_annotations(results, existing, period_key=period_key)

        if snapshot is None:
            snapshot = store.create_snapshot(period_key, period_title(period_key))

        rows = store.replace_rows(snapshot, merged.values())
        info = store.record_generation(
            snapshot,
            rows,
            event_source_status=fetch.status.value,
            generated_at=self._clock.now(),
        )

        logger.info(
            "snapshot_generated",
            extra={
                "comparison_period": prior_key,
                "row_count": len(rows),
                "summary": info.summary.as_dict(),
                "event_source_status": fetch.status.value,
                "event_count": len(fetch.events),
                "event_versions_applied": sum(
                    1 for row in rows if row.version_source == VersionSource.EVENT_LOG
                ),
                "locked": info.locked,
                "generation_count": info.generation_count,
                "content_hash": info.content_hash,
            },
        )
        return info

    # ------------------------------------------------------------------
    # Lock / unlock
    # ------------------------------------------------------------------

    def lock(self, period_key: str, actor_id: UUID | None = None) -> SnapshotInfo:
        """Freeze the snapshot.  Idempotent."""
        validate_period_key(period_key)
        with LogContext.bind(period_key=period_key, actor_id=actor_id):
            with self._locked_write(period_key) as session:
                store = SnapshotStore(session)
                snapshot = self._require(store, period_key)
                return store.lock(snapshot, locked_at=self._clock.now(), actor_id=actor_id)

    def unlock(self, period_key: str, actor_id: UUID | None = None) -> SnapshotInfo:
        """Return the snapshot to Draft.  Idempotent."""
        validate_period_key(period_key)
        with LogContext.bind(period_key=period_key, actor_id=actor_id):
            with self._locked_write(period_key) as session:
                store = SnapshotStore(session)
                snapshot = self._require(store, period_key)
                return store.unlock(snapshot)

    # ------------------------------------------------------------------
    # Human edits
    # ------------------------------------------------------------------

    def set_annotation(
        self,
        period_key: str,
        slug: str,
        fields: Mapping[str, str],
        actor_id: UUID | None = None,
    ) -> SnapshotRowInfo:
        """
        Edit category/notes/comments on one row.

        Raises:
            SnapshotLockedError: the snapshot is locked.
        """
        validate_period_key(period_key)
        with LogContext.bind(period_key=period_key, actor_id=actor_id):
            with self._locked_write(period_key) as session:
                store = SnapshotStore(session)
                snapshot = self._require(store, period_key)
                return store.set_annotation(snapshot, slug, fields)

    def set_snapshot_notes(
        self,
        period_key: str,
        notes: str,
        actor_id: UUID | None = None,
    ) -> SnapshotInfo:
        """Edit the report-level notes.  Rejected while locked."""
        validate_period_key(period_key)
        with LogContext.bind(period_key=period_key, actor_id=actor_id):
            with self._locked_write(period_key) as session:
                store = SnapshotStore(session)
                snapshot = self._require(store, period_key)
                return store.set_notes(snapshot, notes)

    # ------------------------------------------------------------------
    # Reads (no period lock)
    # ------------------------------------------------------------------

    def get_snapshot(self, period_key: str) -> SnapshotInfo | None:
        validate_period_key(period_key)
        with self._read_session() as session:
            return SnapshotSelector(session).get_snapshot(period_key)

    def get_rows(
        self,
        period_key: str,
        classification: Classification | None = None,
    ) -> list[SnapshotRowInfo]:
        validate_period_key(period_key)
        with self._read_session() as session:
            return SnapshotSelector(session).get_rows(period_key, classification)

    def get_summary(self, period_key: str) -> SnapshotSummary | None:
        validate_period_key(period_key)
        with self._read_session() as session:
            return SnapshotSelector(session).get_summary(period_key)

    def list_snapshots(self, limit: int | None = None) -> list[SnapshotInfo]:
        with self._read_session() as session:
            return SnapshotSelector(session).list_snapshots(limit)

    # ------------------------------------------------------------------
    # Update history
    # ------------------------------------------------------------------

    def capture_update_history(self, period_key: str) -> list[UpdateRecord]:
        """
        Record version moves of the current inventory in the update history.

        Old versions come from the comparison period's rows.  Runs in its
        own transaction, outside the period lock; it touches no snapshot.
        """
        validate_period_key(period_key)
        with LogContext.bind(period_key=period_key):
            current = read_inventory(self._inventory, include_inactive=self._include_inactive)
            with self._transaction() as session:
                _, previous = SnapshotSelector(session).previous_rows(period_key, self._strategy)
                service = UpdateHistoryService(session, clock=self._clock)
                return service.capture_updates(
                    current.values(),
                    {slug: row.current_version for slug, row in previous.items()},
                )

    def record_update(
        self,
        slug: str,
        name: str,
        previous_version: str,
        new_version: str,
        updated_on: datetime | None = None,
        source: UpdateSource | str = UpdateSource.MANUAL,
    ) -> UpdateRecord | None:
        """Add one history entry.  Returns None for an exact duplicate."""
        with self._transaction() as session:
            return UpdateHistoryService(session, clock=self._clock).record_update(
                slug=slug,
                name=name,
                previous_version=previous_version,
                new_version=new_version,
                updated_on=updated_on,
                source=source,
            )

    def get_update_history(self, period_key: str) -> list[UpdateRecord]:
        validate_period_key(period_key)
        with self._read_session() as session:
            return UpdateHistoryService(session, clock=self._clock).get_updates_for_period(period_key)

    def prune_update_history(self, older_than_days: int) -> int:
        with self._transaction() as session:
            return UpdateHistoryService(session, clock=self._clock).prune(older_than_days)
