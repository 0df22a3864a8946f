"""
Inventory audit settings schema.

Human-authored YAML is parsed into these frozen dataclasses by the loader.
Every constructor in the system that needs configuration receives one of
these objects explicitly; nothing reads configuration files, environment
variables or other ambient state behind the caller's back.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Allowed values
# ---------------------------------------------------------------------------

EVENT_LOG_SOURCES = ("none", "internal", "external")
INVENTORY_KINDS = ("distributions", "manifest")
PREVIOUS_PERIOD_STRATEGIES = ("latest_prior", "calendar")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

INTERNAL_EVENT_TABLE = "component_update_history"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Snapshot store connection."""

    url: str = "sqlite:///inventory.db"
    echo: bool = False


@dataclass(frozen=True)
class InventorySettings:
    """Where the current component list comes from."""

    kind: str = "distributions"
    manifest_path: str = ""
    manifest_format: str = "array"  # "array" or "jsonl"
    json_path: str = ""


@dataclass(frozen=True)
class TrackingSettings:
    include_inactive: bool = True
    record_update_history: bool = True
    previous_period_strategy: str = "latest_prior"


@dataclass(frozen=True)
class ContextTableSettings:
    table: str
    event_id_field: str = "history_id"
    key_field: str = "key"
    value_field: str = "value"


@dataclass(frozen=True)
class EventLogSettings:
    """
    Optional event log used to recover exact version transitions.

    ``source``: "none" disables it, "internal" reads the component update
    history table, "external" reads ``table`` (optionally in another
    database given by ``database_url``).
    """

    source: str = "none"
    table: str = ""
    timestamp_field: str = "date"
    message_field: str = "message"
    context_field: str = ""
    id_field: str = "id"
    action_field: str = ""
    action_values: tuple[str, ...] = ()
    message_keyword: str = "updat"
    context_table: ContextTableSettings | None = None
    database_url: str = ""
    statement_timeout_ms: int | None = None

    @property
    def enabled(self) -> bool:
        return self.source != "none"


@dataclass(frozen=True)
class GenerationSettings:
    # Seconds a caller waits for a period already being generated
    lock_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class AutomationSettings:
    """Scheduled monthly generation."""

    enabled: bool = False
    day_of_month: int = 1
    time_of_day: str = "00:00"
    lock_after_generation: bool = True
    tick_interval_seconds: float = 60.0

    @property
    def hour(self) -> int:
        return int(self.time_of_day.split(":", 1)[0])

    @property
    def minute(self) -> int:
        return int(self.time_of_day.split(":", 1)[1])


@dataclass(frozen=True)
class RetentionSettings:
    # 0 keeps everything
    update_history_days: int = 0
    log_retention_days: int = 30


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    file: str = ""


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditSettings:
    """Root settings object."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    event_log: EventLogSettings = field(default_factory=EventLogSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    automation: AutomationSettings = field(default_factory=AutomationSettings)
    retention: RetentionSettings = field(default_factory=RetentionSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
