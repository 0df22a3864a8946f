"""Pure domain layer: clock, period keys and DTOs. Zero I/O."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock, ensure_utc
from inventory_kernel.domain.dtos import (
    ANNOTATION_FIELDS,
    Annotations,
    Classification,
    ComponentRecord,
    DiffResult,
    EventFetchResult,
    EventOrigin,
    ExternalEvent,
    MergedRow,
    PreviousRow,
    SnapshotInfo,
    SnapshotRowInfo,
    SnapshotSummary,
    SourceStatus,
    TimeRange,
    UpdateRecord,
    VersionSource,
)
from inventory_kernel.domain.periods import (
    current_period_key,
    next_calendar_period,
    period_key_for,
    period_title,
    period_window,
    previous_calendar_period,
    validate_period_key,
)

__all__ = [
    "ANNOTATION_FIELDS",
    "Annotations",
    "Classification",
    "Clock",
    "ComponentRecord",
    "DeterministicClock",
    "DiffResult",
    "EventFetchResult",
    "EventOrigin",
    "ExternalEvent",
    "MergedRow",
    "PreviousRow",
    "SnapshotInfo",
    "SnapshotRowInfo",
    "SnapshotSummary",
    "SourceStatus",
    "SystemClock",
    "TimeRange",
    "UpdateRecord",
    "VersionSource",
    "current_period_key",
    "ensure_utc",
    "next_calendar_period",
    "period_key_for",
    "period_title",
    "period_window",
    "previous_calendar_period",
    "validate_period_key",
]
