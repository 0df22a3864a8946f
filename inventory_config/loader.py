"""
Settings loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses each section into the frozen
dataclasses of ``inventory_config.schema``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a message naming the offending
  key; unknown keys in a section are rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    EVENT_LOG_SOURCES,
    INTERNAL_EVENT_TABLE,
    INVENTORY_KINDS,
    LOG_LEVELS,
    PREVIOUS_PERIOD_STRATEGIES,
    AuditSettings,
    AutomationSettings,
    ContextTableSettings,
    DatabaseSettings,
    EventLogSettings,
    GenerationSettings,
    InventorySettings,
    LoggingSettings,
    RetentionSettings,
    TrackingSettings,
)

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings document must be a mapping")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    return section


def _check_keys(section: dict[str, Any], cls: type, name: str) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(section) - allowed)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(unknown)}")


def _choice(value: Any, allowed: tuple[str, ...], key: str) -> str:
    value = str(value)
    if value not in allowed:
        raise ValueError(f"'{key}' must be one of {', '.join(allowed)}; got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    _check_keys(data, DatabaseSettings, "database")
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
    )


def parse_inventory(data: dict[str, Any]) -> InventorySettings:
    _check_keys(data, InventorySettings, "inventory")
    defaults = InventorySettings()
    kind = _choice(data.get("kind", defaults.kind), INVENTORY_KINDS, "inventory.kind")
    manifest_path = str(data.get("manifest_path") or "")
    if kind == "manifest" and not manifest_path:
        raise ValueError("'inventory.manifest_path' is required when kind is 'manifest'")
    return InventorySettings(
        kind=kind,
        manifest_path=manifest_path,
        manifest_format=_choice(
            data.get("manifest_format", defaults.manifest_format),
            ("array", "jsonl"),
            "inventory.manifest_format",
        ),
        json_path=str(data.get("json_path") or ""),
    )


def parse_tracking(data: dict[str, Any]) -> TrackingSettings:
    _check_keys(data, TrackingSettings, "tracking")
    defaults = TrackingSettings()
    return TrackingSettings(
        include_inactive=bool(data.get("include_inactive", defaults.include_inactive)),
        record_update_history=bool(
            data.get("record_update_history", defaults.record_update_history)
        ),
        previous_period_strategy=_choice(
            data.get("previous_period_strategy", defaults.previous_period_strategy),
            PREVIOUS_PERIOD_STRATEGIES,
            "tracking.previous_period_strategy",
        ),
    )


def parse_context_table(data: dict[str, Any] | None) -> ContextTableSettings | None:
    if not data:
        return None
    _check_keys(data, ContextTableSettings, "event_log.context_table")
    return ContextTableSettings(
        table=data["table"],
        event_id_field=data.get("event_id_field", "history_id"),
        key_field=data.get("key_field", "key"),
        value_field=data.get("value_field", "value"),
    )


def parse_event_log(data: dict[str, Any]) -> EventLogSettings:
    """
    Parse the event_log section.

    ``source: internal`` fills in the component update history table's
    field names unless they are given explicitly.
    """
    _check_keys(data, EventLogSettings, "event_log")
    source = _choice(data.get("source", "none"), EVENT_LOG_SOURCES, "event_log.source")

    if source == "internal":
        defaults = EventLogSettings(
            source="internal",
            table=INTERNAL_EVENT_TABLE,
            timestamp_field="updated_on",
            message_field="message",
            context_field="",
            message_keyword="",
        )
    else:
        defaults = EventLogSettings(source=source)

    table = str(data.get("table") or defaults.table)
    if source == "external" and not table:
        raise ValueError("'event_log.table' is required when source is 'external'")

    timeout = data.get("statement_timeout_ms")
    return EventLogSettings(
        source=source,
        table=table,
        timestamp_field=str(data.get("timestamp_field", defaults.timestamp_field)),
        message_field=str(data.get("message_field", defaults.message_field) or ""),
        context_field=str(data.get("context_field", defaults.context_field) or ""),
        id_field=str(data.get("id_field", defaults.id_field)),
        action_field=str(data.get("action_field", defaults.action_field) or ""),
        action_values=tuple(str(v) for v in data.get("action_values") or ()),
        message_keyword=str(data.get("message_keyword", defaults.message_keyword) or ""),
        context_table=parse_context_table(data.get("context_table")),
        database_url=str(data.get("database_url") or ""),
        statement_timeout_ms=int(timeout) if timeout is not None else None,
    )


def parse_generation(data: dict[str, Any]) -> GenerationSettings:
    _check_keys(data, GenerationSettings, "generation")
    timeout = float(data.get("lock_timeout_seconds", GenerationSettings().lock_timeout_seconds))
    if timeout < 0:
        raise ValueError("'generation.lock_timeout_seconds' must be >= 0")
    return GenerationSettings(lock_timeout_seconds=timeout)


def parse_automation(data: dict[str, Any]) -> AutomationSettings:
    _check_keys(data, AutomationSettings, "automation")
    defaults = AutomationSettings()

    day = int(data.get("day_of_month", defaults.day_of_month))
    if not 1 <= day <= 31:
        raise ValueError(f"'automation.day_of_month' must be 1-31; got {day}")

    time_of_day = str(data.get("time_of_day", defaults.time_of_day))
    if not _TIME_OF_DAY.match(time_of_day):
        raise ValueError(f"'automation.time_of_day' must be HH:MM; got {time_of_day!r}")

    interval = float(data.get("tick_interval_seconds", defaults.tick_interval_seconds))
    if interval <= 0:
        raise ValueError("'automation.tick_interval_seconds' must be > 0")

    return AutomationSettings(
        enabled=bool(data.get("enabled", defaults.enabled)),
        day_of_month=day,
        time_of_day=time_of_day,
        lock_after_generation=bool(
            data.get("lock_after_generation", defaults.lock_after_generation)
        ),
        tick_interval_seconds=interval,
    )


def parse_retention(data: dict[str, Any]) -> RetentionSettings:
    _check_keys(data, RetentionSettings, "retention")
    defaults = RetentionSettings()
    history_days = int(data.get("update_history_days", defaults.update_history_days))
    log_days = int(data.get("log_retention_days", defaults.log_retention_days))
    if history_days < 0 or log_days < 0:
        raise ValueError("retention days must be >= 0")
    return RetentionSettings(update_history_days=history_days, log_retention_days=log_days)


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    _check_keys(data, LoggingSettings, "logging")
    return LoggingSettings(
        level=_choice(str(data.get("level", "INFO")).upper(), LOG_LEVELS, "logging.level"),
        file=str(data.get("file") or ""),
    )


def parse_settings(data: dict[str, Any]) -> AuditSettings:
    """Parse a whole settings document."""
    _check_keys(data, AuditSettings, "root")
    return AuditSettings(
        database=parse_database(_section(data, "database")),
        inventory=parse_inventory(_section(data, "inventory")),
        tracking=parse_tracking(_section(data, "tracking")),
        event_log=parse_event_log(_section(data, "event_log")),
        generation=parse_generation(_section(data, "generation")),
        automation=parse_automation(_section(data, "automation")),
        retention=parse_retention(_section(data, "retention")),
        logging=parse_logging(_section(data, "logging")),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
