"""Event log access: sources, extractors and the status-tagging adapter."""

from inventory_sources.events.adapter import EventLogAdapter, NullEventLogAdapter
from inventory_sources.events.base import (
    ActionFilter,
    ContextTableSpec,
    EventLogSchema,
    EventLogSource,
    RowEventLogSource,
)
from inventory_sources.events.extractors import (
    DEFAULT_PHRASINGS,
    Candidate,
    EventExtractor,
    RegexExtractor,
    RowView,
    StructuredFieldExtractor,
    build_view,
    default_extractors,
    interpolate,
)
from inventory_sources.events.sql_source import SqlEventLogSource
from inventory_sources.events.timestamps import parse_timestamp

__all__ = [
    "ActionFilter",
    "Candidate",
    "ContextTableSpec",
    "DEFAULT_PHRASINGS",
    "EventExtractor",
    "EventLogAdapter",
    "EventLogSchema",
    "EventLogSource",
    "NullEventLogAdapter",
    "RegexExtractor",
    "RowEventLogSource",
    "RowView",
    "SqlEventLogSource",
    "StructuredFieldExtractor",
    "build_view",
    "default_extractors",
    "interpolate",
    "parse_timestamp",
]
