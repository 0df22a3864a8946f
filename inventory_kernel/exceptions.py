"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the snapshot engine (schedulers, CLIs, report exporters) need to
decide between "retry later", "tell the operator the snapshot is frozen" and
"ignore, enrichment only".  Parsing messages for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        manager.set_annotation("2024-01", "akismet", {"notes": "renewed"})
    except SnapshotLockedError as e:
        log.warning(f"Snapshot {e.period_key} is locked")
        api_response(code=e.code, period=e.period_key)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- SourceError
    |   +-- SourceUnavailableError
    |   +-- SchemaInvalidError
    |   +-- EventParseSkippedError
    |
    +-- SnapshotError
    |   +-- SnapshotNotFoundError
    |   +-- SnapshotRowNotFoundError
    |   +-- SnapshotLockedError
    |   +-- InvalidPeriodKeyError
    |   +-- UnknownAnnotationFieldError
    |
    +-- ConcurrencyError
        +-- ConcurrentGenerationInProgressError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                              | When Raised
-------------|-----------------------------------|------------------------------------
Source       | SOURCE_UNAVAILABLE                | Inventory or persistence unreachable
             | SCHEMA_INVALID                    | Event log lacks required fields
             | EVENT_PARSE_SKIPPED               | One event row could not be normalised
-------------|-----------------------------------|------------------------------------
Snapshot     | SNAPSHOT_NOT_FOUND                | No snapshot for period_key
             | SNAPSHOT_ROW_NOT_FOUND            | No row for slug in the snapshot
             | LOCKED                            | Mutation on a locked snapshot
             | INVALID_PERIOD_KEY                | period_key is not YYYY-MM
             | UNKNOWN_ANNOTATION_FIELD          | Edit names a non-annotation field
-------------|-----------------------------------|------------------------------------
Concurrency  | CONCURRENT_GENERATION_IN_PROGRESS | Per-period lock not acquired in time

===============================================================================
PROPAGATION
===============================================================================

Structural failures (inventory reader, persistence store, transaction commit)
abort generation and surface to the caller.  SchemaInvalidError and
EventParseSkippedError are raised inside the event log adapter and absorbed
there; they never escape ``generate_or_refresh``.

"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Source-related exceptions


class SourceError(InventoryKernelError):
    """Base exception for collaborator (source/store) errors."""

    code: str = "SOURCE_ERROR"


class SourceUnavailableError(SourceError):
    """
    Inventory reader or persistence store could not be reached.

    Fatal to the current generation attempt; retryable by the caller.
    """

    code: str = "SOURCE_UNAVAILABLE"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Source '{source}' unavailable: {reason}")


class SchemaInvalidError(SourceError):
    """Event log exists but does not expose the required fields."""

    code: str = "SCHEMA_INVALID"

    def __init__(self, source: str, missing_fields: list[str]):
        self.source = source
        self.missing_fields = missing_fields
        super().__init__(
            f"Event log '{source}' is missing required field(s): "
            f"{', '.join(missing_fields)}"
        )


class EventParseSkippedError(SourceError):
    """A single event row could not be normalised and was skipped."""

    code: str = "EVENT_PARSE_SKIPPED"

    def __init__(self, row_ref: str, reason: str):
        self.row_ref = row_ref
        self.reason = reason
        super().__init__(f"Event row {row_ref} skipped: {reason}")


# Snapshot-related exceptions


class SnapshotError(InventoryKernelError):
    """Base exception for snapshot lifecycle errors."""

    code: str = "SNAPSHOT_ERROR"


class SnapshotNotFoundError(SnapshotError):
    """No snapshot exists for the period."""

    code: str = "SNAPSHOT_NOT_FOUND"

    def __init__(self, period_key: str):
        self.period_key = period_key
        super().__init__(f"Snapshot not found for period: {period_key}")


class SnapshotRowNotFoundError(SnapshotError):
    """The snapshot has no row for the component slug."""

    code: str = "SNAPSHOT_ROW_NOT_FOUND"

    def __init__(self, period_key: str, slug: str):
        self.period_key = period_key
        self.slug = slug
        super().__init__(f"No row for '{slug}' in snapshot {period_key}")


class SnapshotLockedError(SnapshotError):
    """
    Mutation attempted on a locked snapshot.

    Rejected with no state change.  Unlock first, or regenerate with force.
    """

    code: str = "LOCKED"

    def __init__(self, period_key: str, operation: str):
        self.period_key = period_key
        self.operation = operation
        super().__init__(
            f"Snapshot {period_key} is locked; '{operation}' rejected"
        )


class InvalidPeriodKeyError(SnapshotError):
    """period_key does not have the YYYY-MM shape."""

    code: str = "INVALID_PERIOD_KEY"

    def __init__(self, period_key: str):
        self.period_key = period_key
        super().__init__(f"Invalid period key '{period_key}', expected YYYY-MM")


class UnknownAnnotationFieldError(SnapshotError):
    """An annotation edit named a field that is not an annotation field."""

    code: str = "UNKNOWN_ANNOTATION_FIELD"

    def __init__(self, fields: list[str], allowed: tuple[str, ...]):
        self.fields = fields
        self.allowed = allowed
        super().__init__(
            f"Unknown annotation field(s) {', '.join(fields)}; "
            f"allowed: {', '.join(allowed)}"
        )


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentGenerationInProgressError(ConcurrencyError):
    """
    Another caller holds the per-period generation lock.

    The caller should retry or wait.
    """

    code: str = "CONCURRENT_GENERATION_IN_PROGRESS"

    def __init__(self, period_key: str, waited_seconds: float):
        self.period_key = period_key
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Generation for {period_key} already in progress "
            f"(waited {waited_seconds:.1f}s)"
        )
