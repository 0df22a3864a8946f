"""
Module: inventory_kernel.selectors.snapshot_selector
Responsibility: Read-only snapshot queries: snapshot metadata, rows,
    summaries, and the prior-period lookup the lifecycle manager diffs
    against.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/dtos.py and selectors/base.py.

Invariants enforced:
    - Previous-period rows exclude components already reported as deleted,
      so a removal is reported exactly once.
    - Period keys are compared as strings; YYYY-MM sorts chronologically.

Failure modes:
    - Returns None / empty lists when the period has no snapshot.
"""

from enum import Enum

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import (
    Classification,
    PreviousRow,
    SnapshotInfo,
    SnapshotRowInfo,
    SnapshotSummary,
)
from inventory_kernel.domain.periods import previous_calendar_period
from inventory_kernel.models.snapshot import InventorySnapshot, SnapshotRow
from inventory_kernel.selectors.base import BaseSelector


class PreviousPeriodStrategy(str, Enum):
    """How the comparison period for a diff is chosen."""

    # Most recent snapshot whose period_key sorts before the target
    LATEST_PRIOR = "latest_prior"
    # Strictly the preceding calendar month; a gap means everything is new
    CALENDAR = "calendar"


class SnapshotSelector(BaseSelector[InventorySnapshot]):
    """
    Selector for snapshot reads.

    Guarantees:
        - Returned rows are ordered by name then slug (report order).
        - All datetimes on returned DTOs are UTC-aware.
    """

    def _snapshot(self, period_key: str) -> InventorySnapshot | None:
        return self.session.execute(
            select(InventorySnapshot).where(InventorySnapshot.period_key == period_key)
        ).scalar_one_or_none()

    def exists(self, period_key: str) -> bool:
        count = self.session.execute(
            select(func.count())
            .select_from(InventorySnapshot)
            .where(InventorySnapshot.period_key == period_key)
        ).scalar_one()
        return count > 0

    def get_snapshot(self, period_key: str) -> SnapshotInfo | None:
        snapshot = self._snapshot(period_key)
        if snapshot is None:
            return None
        return SnapshotInfo.from_model(snapshot)

    def get_summary(self, period_key: str) -> SnapshotSummary | None:
        info = self.get_snapshot(period_key)
        return info.summary if info is not None else None

    def get_rows(
        self,
        period_key: str,
        classification: Classification | None = None,
    ) -> list[SnapshotRowInfo]:
        """Rows of a period, optionally filtered to one classification."""
        query = select(SnapshotRow).where(SnapshotRow.period_key == period_key)
        if classification is not None:
            query = query.where(
                SnapshotRow.classification == Classification(classification).value
            )
        query = query.order_by(SnapshotRow.name, SnapshotRow.slug)
        rows = self.session.execute(query).scalars().all()
        return [SnapshotRowInfo.from_model(row) for row in rows]

    def list_snapshots(self, limit: int | None = None) -> list[SnapshotInfo]:
        """All snapshots, newest period first."""
        query = select(InventorySnapshot).order_by(InventorySnapshot.period_key.desc())
        if limit is not None:
            query = query.limit(limit)
        snapshots = self.session.execute(query).scalars().all()
        return [SnapshotInfo.from_model(snapshot) for snapshot in snapshots]

    def latest_prior_period_key(self, period_key: str) -> str | None:
        """The greatest snapshot period_key strictly before ``period_key``."""
        return self.session.execute(
            select(func.max(InventorySnapshot.period_key)).where(
                InventorySnapshot.period_key < period_key
            )
        ).scalar_one_or_none()

    def comparison_period_key(
        self,
        period_key: str,
        strategy: PreviousPeriodStrategy | str = PreviousPeriodStrategy.LATEST_PRIOR,
    ) -> str | None:
        strategy = PreviousPeriodStrategy(strategy)
        if strategy == PreviousPeriodStrategy.CALENDAR:
            candidate = previous_calendar_period(period_key)
            return candidate if self.exists(candidate) else None
        return self.latest_prior_period_key(period_key)

    def previous_rows(
        self,
        period_key: str,
        strategy: PreviousPeriodStrategy | str = PreviousPeriodStrategy.LATEST_PRIOR,
    ) -> tuple[str | None, dict[str, PreviousRow]]:
        """
        Rows the diff engine compares ``period_key`` against.

        Returns:
            (comparison period key or None, live rows keyed by slug).
        """
        prior_key = self.comparison_period_key(period_key, strategy)
        if prior_key is None:
            return None, {}

        rows = self.session.execute(
            select(SnapshotRow).where(
                SnapshotRow.period_key == prior_key,
                SnapshotRow.classification != Classification.DELETED.value,
            )
        ).scalars().all()

        return prior_key, {
            row.slug: PreviousRow(
                slug=row.slug,
                name=row.name,
                current_version=row.current_version or "",
                description=row.description or "",
                active=bool(row.active),
            )
            for row in rows
        }
