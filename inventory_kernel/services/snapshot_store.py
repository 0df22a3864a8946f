"""
SnapshotStore -- write side of snapshot persistence.

Responsibility:
    Creates snapshots, replaces a period's row set wholesale, rewrites the
    summary and content hash, and applies metadata edits (lock, unlock,
    annotations, report notes).

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the lifecycle
    manager owns the transaction.

Invariants enforced:
    - replace_rows() deletes every existing row of the snapshot before the
      new rows are inserted, inside the caller's transaction.  Readers see
      either the old set or the new set.
    - Summary counts and content_hash are recomputed from the rows just
      written, never carried over.
    - Annotation and notes edits on a locked snapshot raise
      SnapshotLockedError.  Only category/notes/comments may be annotated.

Failure modes:
    - SnapshotRowNotFoundError for an annotation on an unknown slug.
    - UnknownAnnotationFieldError for fields outside the annotation set.
    - IntegrityError propagates from flush (e.g. a concurrent creator).
"""

from collections import Counter
from datetime import datetime
from typing import Iterable, Mapping
from uuid import UUID

from sqlalchemy import delete, select

from inventory_kernel.domain.dtos import (
    ANNOTATION_FIELDS,
    Classification,
    MergedRow,
    SnapshotInfo,
    SnapshotRowInfo,
    SnapshotSummary,
)
from inventory_kernel.exceptions import (
    SnapshotLockedError,
    SnapshotRowNotFoundError,
    UnknownAnnotationFieldError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.snapshot import InventorySnapshot, SnapshotRow
from inventory_kernel.services.base import BaseService
from inventory_kernel.utils.hashing import hash_rows

logger = get_logger("services.snapshot_store")


class SnapshotStore(BaseService[InventorySnapshot]):
    """
    Flush-only writer for snapshots and snapshot rows.

    Contract:
        Methods receive ORM snapshots obtained through ``get_for_update`` or
        ``create_snapshot`` in the same session.
    """

    def get_for_update(self, period_key: str) -> InventorySnapshot | None:
        """Load the period's snapshot with a row lock (FOR UPDATE where supported)."""
        return self.session.execute(
            select(InventorySnapshot)
            .where(InventorySnapshot.period_key == period_key)
            .with_for_update()
        ).scalar_one_or_none()

    def create_snapshot(self, period_key: str, title: str) -> InventorySnapshot:
        snapshot = InventorySnapshot(
            period_key=period_key,
            title=title,
            locked=False,
            count_new=0,
            count_updated=0,
            count_deleted=0,
            count_unchanged=0,
            content_hash="",
            event_source_status="",
            generation_count=0,
            summary_notes="",
        )
        self.session.add(snapshot)
        self.session.flush()

        logger.info(
            "snapshot_created",
            extra={"period_key": period_key, "snapshot_id": str(snapshot.id)},
        )
        return snapshot

    def load_rows(self, snapshot: InventorySnapshot) -> list[SnapshotRowInfo]:
        rows = self.session.execute(
            select(SnapshotRow).where(SnapshotRow.snapshot_id == snapshot.id)
        ).scalars().all()
        return [SnapshotRowInfo.from_model(row) for row in rows]

    def replace_rows(
        self,
        snapshot: InventorySnapshot,
        merged_rows: Iterable[MergedRow],
    ) -> list[SnapshotRowInfo]:
        """
        Replace the snapshot's entire row set.

        Postconditions:
            - The snapshot has exactly one row per merged row.
            - Prior rows of this snapshot no longer exist.
        """
        self.session.execute(
            delete(SnapshotRow).where(SnapshotRow.snapshot_id == snapshot.id)
        )
        self.session.expire(snapshot, ["rows"])

        new_rows: list[SnapshotRow] = []
        for merged in sorted(merged_rows, key=lambda m: m.slug):
            diff = merged.diff
            new_rows.append(
                SnapshotRow(
                    snapshot_id=snapshot.id,
                    period_key=snapshot.period_key,
                    slug=diff.slug,
                    name=diff.name,
                    description=diff.description or "",
                    classification=Classification(diff.classification).value,
                    version_from=diff.version_from or "",
                    version_to=diff.version_to or "",
                    current_version=diff.current_version or "",
                    active=bool(diff.active),
                    version_source=diff.version_source.value,
                    category=merged.annotations.category,
                    notes=merged.annotations.notes,
                    comments=merged.annotations.comments,
                )
            )

        self.session.add_all(new_rows)
        self.session.flush()

        logger.debug(
            "snapshot_rows_replaced",
            extra={"period_key": snapshot.period_key, "row_count": len(new_rows)},
        )
        return [SnapshotRowInfo.from_model(row) for row in new_rows]

    def record_generation(
        self,
        snapshot: InventorySnapshot,
        rows: list[SnapshotRowInfo],
        *,
        event_source_status: str,
        generated_at: datetime,
    ) -> SnapshotInfo:
        """Rewrite summary, content hash and generation metadata from ``rows``."""
        counts = Counter(row.classification for row in rows)
        summary = SnapshotSummary.from_counts(counts)

        snapshot.count_new = summary.new
        snapshot.count_updated = summary.updated
        snapshot.count_deleted = summary.deleted
        snapshot.count_unchanged = summary.unchanged
        snapshot.content_hash = hash_rows(row.content() for row in rows)
        snapshot.event_source_status = event_source_status
        snapshot.generated_at = generated_at
        snapshot.generation_count = (snapshot.generation_count or 0) + 1
        self.session.flush()

        return SnapshotInfo.from_model(snapshot)

    def lock(
        self,
        snapshot: InventorySnapshot,
        locked_at: datetime,
        actor_id: UUID | None = None,
    ) -> SnapshotInfo:
        """Mark locked.  Locking an already locked snapshot changes nothing."""
        if snapshot.locked:
            return SnapshotInfo.from_model(snapshot)

        snapshot.locked = True
        snapshot.locked_at = locked_at
        snapshot.locked_by_id = actor_id
        self.session.flush()

        logger.info(
            "snapshot_locked",
            extra={"period_key": snapshot.period_key},
        )
        return SnapshotInfo.from_model(snapshot)

    def unlock(self, snapshot: InventorySnapshot) -> SnapshotInfo:
        if not snapshot.locked:
            return SnapshotInfo.from_model(snapshot)

        snapshot.locked = False
        snapshot.locked_at = None
        snapshot.locked_by_id = None
        self.session.flush()

        logger.info(
            "snapshot_unlocked",
            extra={"period_key": snapshot.period_key},
        )
        return SnapshotInfo.from_model(snapshot)

    def set_annotation(
        self,
        snapshot: InventorySnapshot,
        slug: str,
        fields: Mapping[str, str],
    ) -> SnapshotRowInfo:
        """
        Write annotation fields on one row.

        Raises:
            SnapshotLockedError: snapshot is locked.
            UnknownAnnotationFieldError: a key outside category/notes/comments.
            SnapshotRowNotFoundError: no row for ``slug`` in this snapshot.
        """
        if snapshot.locked:
            raise SnapshotLockedError(snapshot.period_key, "set_annotation")

        unknown = sorted(set(fields) - set(ANNOTATION_FIELDS))
        if unknown:
            raise UnknownAnnotationFieldError(unknown, ANNOTATION_FIELDS)

        row = self.session.execute(
            select(SnapshotRow).where(
                SnapshotRow.snapshot_id == snapshot.id,
                SnapshotRow.slug == slug,
            )
        ).scalar_one_or_none()
        if row is None:
            raise SnapshotRowNotFoundError(snapshot.period_key, slug)

        for name, value in fields.items():
            setattr(row, name, "" if value is None else str(value))
        self.session.flush()

        snapshot.content_hash = hash_rows(r.content() for r in self.load_rows(snapshot))
        self.session.flush()

        logger.info(
            "snapshot_row_annotated",
            extra={
                "period_key": snapshot.period_key,
                "slug": slug,
                "fields": sorted(fields),
            },
        )
        return SnapshotRowInfo.from_model(row)

    def set_notes(self, snapshot: InventorySnapshot, notes: str) -> SnapshotInfo:
        if snapshot.locked:
            raise SnapshotLockedError(snapshot.period_key, "set_snapshot_notes")

        snapshot.summary_notes = notes or ""
        self.session.flush()

        logger.info(
            "snapshot_notes_updated",
            extra={"period_key": snapshot.period_key, "length": len(snapshot.summary_notes)},
        )
        return SnapshotInfo.from_model(snapshot)
