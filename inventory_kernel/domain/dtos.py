"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the snapshot
    pipeline: ComponentRecord (inventory input), DiffResult (diff engine
    output), MergedRow (annotation merger output), ExternalEvent (event log
    input) and the SnapshotInfo / SnapshotRowInfo / SnapshotSummary read
    DTOs handed to report consumers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ``from_model()`` class methods are boundary
    converters invoked only from selectors and services.

Invariants enforced:
    - Domain logic accepts/returns DTOs, never ORM entities.
    - DiffResult version pairs follow the classification rules
      (checked in ``__post_init__``).

Data flow:
    ComponentRecord -> DiffResult -> (enrichment) DiffResult -> MergedRow
        -> SnapshotRow (ORM) -> SnapshotRowInfo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Mapping
from uuid import UUID

from inventory_kernel.domain.clock import ensure_utc

if TYPE_CHECKING:
    from inventory_kernel.models.snapshot import InventorySnapshot, SnapshotRow
    from inventory_kernel.models.update_history import UpdateHistoryEntry


ANNOTATION_FIELDS: tuple[str, ...] = ("category", "notes", "comments")


class Classification(str, Enum):
    """How a component changed relative to the prior snapshot."""

    NEW = "new"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


class VersionSource(str, Enum):
    """Where a row's version_from/version_to pair came from."""

    DIFF = "diff"
    EVENT_LOG = "event_log"


class EventOrigin(str, Enum):
    """How an ExternalEvent was extracted from its raw row."""

    STRUCTURED = "structured"
    HEURISTIC = "heuristic"


class SourceStatus(str, Enum):
    """
    Outcome of an event log fetch.

    Contract: UNAVAILABLE, SCHEMA_INVALID and OK_EMPTY are equivalent for
    the caller; only OK carries events that may override diff versions.
    """

    UNAVAILABLE = "unavailable"
    SCHEMA_INVALID = "schema-invalid"
    OK_EMPTY = "ok-empty"
    OK = "ok"


@dataclass(frozen=True)
class TimeRange:
    """Half-open time window ``[start, end)`` in UTC."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"TimeRange end {self.end} precedes start {self.start}")

    def contains(self, moment: datetime) -> bool:
        moment = ensure_utc(moment)
        return ensure_utc(self.start) <= moment < ensure_utc(self.end)


@dataclass(frozen=True)
class ComponentRecord:
    """Present-moment state of one monitored component."""

    slug: str
    name: str
    current_version: str
    active: bool
    observed_at: datetime
    description: str = ""

    def __post_init__(self) -> None:
        if not self.slug or not self.slug.strip():
            raise ValueError("ComponentRecord.slug must be non-empty")


@dataclass(frozen=True)
class PreviousRow:
    """
    The slice of a prior-period SnapshotRow the diff engine needs.

    Decoupled from the ORM so the diff engine stays pure.
    """

    slug: str
    name: str
    current_version: str
    description: str = ""
    active: bool = False


@dataclass(frozen=True)
class DiffResult:
    """Classification and version transition for one slug."""

    slug: str
    name: str
    description: str
    classification: Classification
    version_from: str
    version_to: str
    current_version: str
    active: bool
    version_source: VersionSource = VersionSource.DIFF

    def __post_init__(self) -> None:
        if self.classification == Classification.NEW and self.version_from:
            raise ValueError(f"New component {self.slug} cannot have version_from")
        if self.classification == Classification.DELETED and self.version_to:
            raise ValueError(f"Deleted component {self.slug} cannot have version_to")


@dataclass(frozen=True)
class Annotations:
    """Human-entered fields carried forward across regeneration."""

    category: str = ""
    notes: str = ""
    comments: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"category": self.category, "notes": self.notes, "comments": self.comments}


@dataclass(frozen=True)
class MergedRow:
    """A diff result plus the annotations it will be persisted with."""

    diff: DiffResult
    annotations: Annotations = field(default_factory=Annotations)

    @property
    def slug(self) -> str:
        return self.diff.slug


@dataclass(frozen=True)
class ExternalEvent:
    """A normalised component-update event from an event log."""

    slug: str
    version_from: str
    version_to: str
    occurred_at: datetime
    origin: EventOrigin

    @property
    def dedupe_key(self) -> tuple[str, str, datetime]:
        return (self.slug, self.version_to, ensure_utc(self.occurred_at))


@dataclass(frozen=True)
class EventFetchResult:
    """Tagged result of EventLogAdapter.fetch_events."""

    status: SourceStatus
    events: tuple[ExternalEvent, ...] = ()
    detail: str = ""
    skipped: int = 0

    @property
    def usable(self) -> bool:
        return self.status == SourceStatus.OK and bool(self.events)


@dataclass(frozen=True)
class SnapshotSummary:
    """Counts per classification."""

    new: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.new + self.updated + self.deleted + self.unchanged

    def as_dict(self) -> dict[str, int]:
        return {
            Classification.NEW.value: self.new,
            Classification.UPDATED.value: self.updated,
            Classification.DELETED.value: self.deleted,
            Classification.UNCHANGED.value: self.unchanged,
        }

    @classmethod
    def from_counts(cls, counts: Mapping[Classification, int]) -> SnapshotSummary:
        return cls(
            new=counts.get(Classification.NEW, 0),
            updated=counts.get(Classification.UPDATED, 0),
            deleted=counts.get(Classification.DELETED, 0),
            unchanged=counts.get(Classification.UNCHANGED, 0),
        )


@dataclass(frozen=True)
class SnapshotRowInfo:
    """Read DTO for one persisted snapshot row."""

    period_key: str
    slug: str
    name: str
    description: str
    classification: Classification
    version_from: str
    version_to: str
    current_version: str
    active: bool
    version_source: VersionSource
    annotations: Annotations

    @classmethod
    def from_model(cls, row: SnapshotRow) -> SnapshotRowInfo:
        return cls(
            period_key=row.period_key,
            slug=row.slug,
            name=row.name,
            description=row.description or "",
            classification=Classification(row.classification),
            version_from=row.version_from or "",
            version_to=row.version_to or "",
            current_version=row.current_version or "",
            active=bool(row.active),
            version_source=VersionSource(row.version_source),
            annotations=Annotations(
                category=row.category or "",
                notes=row.notes or "",
                comments=row.comments or "",
            ),
        )

    def content(self) -> dict[str, object]:
        """Row content used for the snapshot content hash."""
        return {
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "classification": self.classification.value,
            "version_from": self.version_from,
            "version_to": self.version_to,
            "current_version": self.current_version,
            "active": self.active,
            "version_source": self.version_source.value,
            **self.annotations.as_dict(),
        }


@dataclass(frozen=True)
class SnapshotInfo:
    """Read DTO for snapshot metadata."""

    id: UUID
    period_key: str
    title: str
    locked: bool
    summary: SnapshotSummary
    content_hash: str
    event_source_status: str
    generation_count: int
    summary_notes: str
    created_at: datetime | None
    updated_at: datetime | None
    generated_at: datetime | None
    locked_at: datetime | None
    locked_by_id: UUID | None

    @classmethod
    def from_model(cls, snapshot: InventorySnapshot) -> SnapshotInfo:
        return cls(
            id=snapshot.id,
            period_key=snapshot.period_key,
            title=snapshot.title,
            locked=bool(snapshot.locked),
            summary=SnapshotSummary(
                new=snapshot.count_new,
                updated=snapshot.count_updated,
                deleted=snapshot.count_deleted,
                unchanged=snapshot.count_unchanged,
            ),
            content_hash=snapshot.content_hash or "",
            event_source_status=snapshot.event_source_status or "",
            generation_count=snapshot.generation_count,
            summary_notes=snapshot.summary_notes or "",
            created_at=ensure_utc(snapshot.created_at),
            updated_at=ensure_utc(snapshot.updated_at),
            generated_at=ensure_utc(snapshot.generated_at),
            locked_at=ensure_utc(snapshot.locked_at),
            locked_by_id=snapshot.locked_by_id,
        )


@dataclass(frozen=True)
class UpdateRecord:
    """Read DTO for one component update history entry."""

    id: UUID
    component_slug: str
    component_name: str
    previous_version: str
    new_version: str
    updated_on: datetime
    source: str
    message: str

    @classmethod
    def from_model(cls, entry: UpdateHistoryEntry) -> UpdateRecord:
        return cls(
            id=entry.id,
            component_slug=entry.component_slug,
            component_name=entry.component_name,
            previous_version=entry.previous_version or "",
            new_version=entry.new_version or "",
            updated_on=ensure_utc(entry.updated_on),
            source=entry.source,
            message=entry.message or "",
        )
