"""
Module: inventory_kernel.models.snapshot
Responsibility: ORM persistence for period snapshots and their per-component
    rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one InventorySnapshot per period_key (uq_snapshot_period_key).
    - slug unique within a snapshot (uq_snapshot_row_slug).
    - Rows are owned by their snapshot (ON DELETE CASCADE); a period's rows
      are only ever replaced as a whole by SnapshotStore.replace_rows().

Failure modes:
    - IntegrityError on a second snapshot for the same period_key (the
      losing side of a cross-process creation race).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString


class SnapshotState(str, Enum):
    """Lifecycle state of a snapshot.

    Contract: NO_SNAPSHOT -> DRAFT -> LOCKED; LOCKED -> DRAFT via unlock.
    NO_SNAPSHOT is never stored; it is the absence of a row.
    """

    NO_SNAPSHOT = "no_snapshot"
    DRAFT = "draft"
    LOCKED = "locked"


class InventorySnapshot(TrackedBase):
    """
    One inventory snapshot per reporting period.

    Guarantees:
        - period_key is unique.
        - summary counts always describe the current row set (rewritten in
          the same transaction as the rows).
    """

    __tablename__ = "inventory_snapshots"

    __table_args__ = (
        UniqueConstraint("period_key", name="uq_snapshot_period_key"),
        Index("idx_snapshot_locked", "locked"),
    )

    # Period identifier, "YYYY-MM"
    period_key: Mapped[str] = mapped_column(String(7), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    locked_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Summary counts per classification
    count_new: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_deleted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_unchanged: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # SHA-256 over the canonical row set
    content_hash: Mapped[str] = mapped_column(String(64), default="", nullable=False)

    # Last SourceStatus reported by the event log adapter
    event_source_status: Mapped[str] = mapped_column(
        String(20), default="", nullable=False
    )

    generation_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Human-entered report notes, preserved across regeneration
    summary_notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    rows: Mapped[list["SnapshotRow"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SnapshotRow.slug",
    )

    def __repr__(self) -> str:
        state = SnapshotState.LOCKED if self.locked else SnapshotState.DRAFT
        return f"<InventorySnapshot {self.period_key}: {state.value}>"

    @property
    def state(self) -> SnapshotState:
        return SnapshotState.LOCKED if self.locked else SnapshotState.DRAFT


class SnapshotRow(TrackedBase):
    """
    One component's row within a snapshot.

    Derived fields (classification, versions, name, active) are written by
    the lifecycle manager.  Annotation fields (category, notes, comments)
    are written only by annotation edits and carried forward on
    regeneration of the same period.
    """

    __tablename__ = "snapshot_rows"

    __table_args__ = (
        UniqueConstraint("snapshot_id", "slug", name="uq_snapshot_row_slug"),
        Index("idx_snapshot_row_period", "period_key"),
        Index("idx_snapshot_row_classification", "classification"),
    )

    snapshot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_snapshots.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Denormalised for period-scoped queries
    period_key: Mapped[str] = mapped_column(String(7), nullable=False)

    slug: Mapped[str] = mapped_column(String(191), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    classification: Mapped[str] = mapped_column(String(20), nullable=False)

    version_from: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    version_to: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    current_version: Mapped[str] = mapped_column(String(50), default="", nullable=False)

    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # "diff" or "event_log"
    version_source: Mapped[str] = mapped_column(
        String(20), default="diff", nullable=False
    )

    # Manual annotation fields
    category: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    comments: Mapped[str] = mapped_column(Text, default="", nullable=False)

    snapshot: Mapped[InventorySnapshot] = relationship(back_populates="rows")

    def __repr__(self) -> str:
        return f"<SnapshotRow {self.period_key}/{self.slug}: {self.classification}>"
