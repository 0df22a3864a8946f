"""
Event log source protocol and schema description.

Contract:
    EventLogSource.exists() says whether the log can be read at all.
    EventLogSource.field_names() lists the fields a row can carry.  A source
        that joins a key/value context table reports the schema's
        context_field among them.
    EventLogSource.fetch_rows() yields raw row dicts inside a time window,
        restricted by an ActionFilter.

Architecture: inventory_sources/events.  Read-only access to the log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Protocol, runtime_checkable

from inventory_kernel.domain.dtos import TimeRange
from inventory_sources.events.timestamps import parse_timestamp


@dataclass(frozen=True)
class ContextTableSpec:
    """Key/value table holding per-event context (one row per key)."""

    table: str
    event_id_field: str = "history_id"
    key_field: str = "key"
    value_field: str = "value"


@dataclass(frozen=True)
class EventLogSchema:
    """
    Field names of an event log.

    Required: timestamp_field, plus a payload in message_field or
    context_field.  Nothing outside this description is assumed.
    """

    table: str
    timestamp_field: str = "date"
    message_field: str = "message"
    context_field: str = ""
    id_field: str = "id"
    action_field: str = ""
    action_values: tuple[str, ...] = ()
    message_keyword: str = "updat"
    context_table: ContextTableSpec | None = None

    def payload_fields(self) -> tuple[str, ...]:
        return tuple(f for f in (self.message_field, self.context_field) if f)


@dataclass(frozen=True)
class ActionFilter:
    """
    Restriction to component-update actions.

    ``field``/``values`` filter on an action column.  Without one,
    ``keyword`` is matched case-insensitively inside ``message_field``.
    An empty filter passes every row.
    """

    field: str = ""
    values: tuple[str, ...] = ()
    message_field: str = ""
    keyword: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.field and self.values) and not (self.message_field and self.keyword)

    def matches(self, row: dict[str, Any]) -> bool:
        if self.field and self.values:
            return str(row.get(self.field, "")) in self.values
        if self.message_field and self.keyword:
            return self.keyword.lower() in str(row.get(self.message_field) or "").lower()
        return True


@runtime_checkable
class EventLogSource(Protocol):
    """Protocol for a readable event log."""

    name: str

    def exists(self) -> bool:
        ...

    def field_names(self) -> set[str]:
        ...

    def fetch_rows(self, window: TimeRange, action_filter: ActionFilter) -> Iterator[dict[str, Any]]:
        ...


@dataclass
class RowEventLogSource:
    """
    In-memory event log.

    ``rows=None`` models a log that does not exist.  ``fields`` overrides
    the field set derived from the rows (useful to model an empty log with
    a known schema).
    """

    rows: list[dict[str, Any]] | None = None
    fields: set[str] | None = None
    timestamp_field: str = "date"
    name: str = "memory"
    fetch_calls: int = field(default=0, init=False)

    def exists(self) -> bool:
        return self.rows is not None

    def field_names(self) -> set[str]:
        if self.fields is not None:
            return set(self.fields)
        names: set[str] = set()
        for row in self.rows or []:
            names.update(row.keys())
        return names

    def fetch_rows(self, window: TimeRange, action_filter: ActionFilter) -> Iterator[dict[str, Any]]:
        self.fetch_calls += 1
        for row in self.rows or []:
            occurred_at = parse_timestamp(row.get(self.timestamp_field))
            if occurred_at is None or not window.contains(occurred_at):
                continue
            if action_filter.matches(row):
                yield dict(row)
