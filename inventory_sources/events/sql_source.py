"""
SQL event log source.

Reads an audit log table through SQLAlchemy reflection, so any database
SQLAlchemy can reach works without a model for the table.  Context can
live in a JSON column on the event table or in a separate key/value
table; either way it is delivered as a dict under the schema's
context_field.

The component update history table is read the same way, with its
structured columns (component_slug, previous_version, new_version) picked
up directly by the structured extractor.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterator

from sqlalchemy import MetaData, Table, and_, func, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql import sqltypes

from inventory_kernel.domain.dtos import TimeRange
from inventory_kernel.logging_config import get_logger
from inventory_sources.events.base import ActionFilter, EventLogSchema

logger = get_logger("sources.events.sql")

_CONTEXT_BATCH = 500


def _decode_context(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return decoded if isinstance(decoded, dict) else {}


class SqlEventLogSource:
    """Event log backed by a database table."""

    def __init__(
        self,
        engine: Engine,
        schema: EventLogSchema,
        name: str = "sql",
        statement_timeout_ms: int | None = None,
    ):
        self._engine = engine
        self.schema = schema
        self.name = name
        self.statement_timeout_ms = statement_timeout_ms

    def _has_table(self, table: str) -> bool:
        return inspect(self._engine).has_table(table)

    def exists(self) -> bool:
        return self._has_table(self.schema.table)

    def _columns(self, table: str) -> set[str]:
        return {column["name"] for column in inspect(self._engine).get_columns(table)}

    def _context_table_usable(self) -> bool:
        spec = self.schema.context_table
        if spec is None or not self._has_table(spec.table):
            return False
        required = {spec.event_id_field, spec.key_field, spec.value_field}
        return required <= self._columns(spec.table)

    def field_names(self) -> set[str]:
        names = self._columns(self.schema.table)
        if self.schema.context_field and self._context_table_usable():
            names.add(self.schema.context_field)
        return names

    def _bind_time(self, table: Table, moment: datetime) -> Any:
        naive = moment.astimezone(timezone.utc).replace(tzinfo=None)
        column = table.c[self.schema.timestamp_field]
        if isinstance(column.type, sqltypes.DateTime):
            return naive
        if isinstance(column.type, (sqltypes.Integer, sqltypes.Numeric)):
            return int(moment.timestamp())
        return naive.strftime("%Y-%m-%d %H:%M:%S")

    def fetch_rows(self, window: TimeRange, action_filter: ActionFilter) -> Iterator[dict[str, Any]]:
        schema = self.schema
        metadata = MetaData()
        table = Table(schema.table, metadata, autoload_with=self._engine)
        timestamp = table.c[schema.timestamp_field]

        conditions = [
            timestamp >= self._bind_time(table, window.start),
            timestamp < self._bind_time(table, window.end),
        ]
        if action_filter.field and action_filter.values and action_filter.field in table.c:
            conditions.append(table.c[action_filter.field].in_(action_filter.values))
        elif action_filter.message_field and action_filter.keyword and action_filter.message_field in table.c:
            conditions.append(
                func.lower(table.c[action_filter.message_field]).contains(
                    action_filter.keyword.lower()
                )
            )

        query = select(table).where(and_(*conditions)).order_by(timestamp)

        with self._engine.connect() as conn:
            if self.statement_timeout_ms and conn.dialect.name == "postgresql":
                conn.execute(text(f"SET LOCAL statement_timeout = {int(self.statement_timeout_ms)}"))

            rows = [dict(row._mapping) for row in conn.execute(query)]

            context_by_id: dict[Any, dict[str, Any]] = {}
            if schema.context_field and schema.context_field not in table.c and self._context_table_usable():
                context_by_id = self._load_context(conn, metadata, [row.get(schema.id_field) for row in rows])

        logger.debug(
            "event_log_rows_fetched",
            extra={"source": self.name, "table": schema.table, "row_count": len(rows)},
        )

        for row in rows:
            if schema.context_field:
                if schema.context_field in row:
                    row[schema.context_field] = _decode_context(row[schema.context_field])
                else:
                    row[schema.context_field] = context_by_id.get(row.get(schema.id_field), {})
            yield row

    def _load_context(self, conn, metadata: MetaData, event_ids: list[Any]) -> dict[Any, dict[str, Any]]:
        spec = self.schema.context_table
        assert spec is not None
        context_table = Table(spec.table, metadata, autoload_with=self._engine)
        event_col = context_table.c[spec.event_id_field]
        key_col = context_table.c[spec.key_field]
        value_col = context_table.c[spec.value_field]

        ids = [event_id for event_id in event_ids if event_id is not None]
        context: dict[Any, dict[str, Any]] = {}
        for start in range(0, len(ids), _CONTEXT_BATCH):
            batch = ids[start:start + _CONTEXT_BATCH]
            result = conn.execute(
                select(event_col, key_col, value_col).where(event_col.in_(batch))
            )
            for event_id, key, value in result:
                context.setdefault(event_id, {})[str(key)] = value
        return context
