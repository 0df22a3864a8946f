"""
inventory_config -- settings for the snapshot engine.

Responsibility:
    Builds the single frozen ``AuditSettings`` object the rest of the
    system is constructed from: ``load_settings(path)`` for YAML files,
    ``settings_from_dict`` for embedded callers and tests,
    ``default_settings()`` when nothing is configured.

Architecture position:
    Configuration -- sits above ``inventory_kernel``.  The kernel MUST
    NEVER import from ``inventory_config``; inventory_services translates
    settings into kernel and source constructor arguments.

Failure modes:
    - ``FileNotFoundError`` for a missing settings file.
    - ``ValueError`` for invalid or unknown keys.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from inventory_config.loader import compute_checksum, load_yaml_file, parse_settings
from inventory_config.schema import (
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

_logger = logging.getLogger("inventory_kernel.config")

EXAMPLE_SETTINGS_PATH = Path(__file__).parent / "example.yaml"


def settings_fingerprint(settings: AuditSettings) -> str:
    """Deterministic checksum of a settings object."""
    return compute_checksum(asdict(settings))


def settings_from_dict(data: dict[str, Any]) -> AuditSettings:
    return parse_settings(data or {})


def default_settings() -> AuditSettings:
    return AuditSettings()


def load_settings(path: str | Path) -> AuditSettings:
    """Load, parse and trace a YAML settings file."""
    path = Path(path)
    settings = parse_settings(load_yaml_file(path))

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "path": str(path),
            "fingerprint": settings_fingerprint(settings),
            "event_log_source": settings.event_log.source,
            "inventory_kind": settings.inventory.kind,
            "automation_enabled": settings.automation.enabled,
        },
    )
    return settings


__all__ = [
    "AuditSettings",
    "AutomationSettings",
    "ContextTableSettings",
    "DatabaseSettings",
    "EXAMPLE_SETTINGS_PATH",
    "EventLogSettings",
    "GenerationSettings",
    "InventorySettings",
    "LoggingSettings",
    "RetentionSettings",
    "TrackingSettings",
    "default_settings",
    "load_settings",
    "settings_fingerprint",
    "settings_from_dict",
]
