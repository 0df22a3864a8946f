"""
Tests for EventLogAdapter status handling, against in-memory and SQL logs.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text

from inventory_kernel.db.engine import build_engine
from inventory_kernel.domain.dtos import EventOrigin, SourceStatus
from inventory_kernel.domain.periods import period_window
from inventory_kernel.exceptions import EventParseSkippedError, SchemaInvalidError
from inventory_kernel.services.update_history_service import UpdateHistoryService
from inventory_sources.events.adapter import EventLogAdapter, NullEventLogAdapter
from inventory_sources.events.base import (
    ActionFilter,
    ContextTableSpec,
    EventLogSchema,
    RowEventLogSource,
)
from inventory_sources.events.extractors import RegexExtractor, StructuredFieldExtractor
from inventory_sources.events.sql_source import SqlEventLogSource

MARCH = period_window("2024-03")
MEMORY_SCHEMA = EventLogSchema(
    table="memory",
    timestamp_field="date",
    message_field="message",
    context_field="context",
)


def _adapter(rows, fields=None, schema=MEMORY_SCHEMA, **kwargs) -> EventLogAdapter:
    return EventLogAdapter(RowEventLogSource(rows=rows, fields=fields), schema, **kwargs)


class _ExplodingSource(RowEventLogSource):
    def fetch_rows(self, window, action_filter):
        raise ConnectionError("connection reset")


# =============================================================================
# Status tagging
# =============================================================================


class TestFetchStatus:
    def test_missing_log_is_unavailable(self):
        result = _adapter(rows=None).fetch_events(MARCH)

        assert result.status == SourceStatus.UNAVAILABLE
        assert result.events == ()

    def test_missing_timestamp_field_is_schema_invalid(self):
        result = _adapter(rows=[], fields={"message", "context"}).fetch_events(MARCH)
        assert result.status == SourceStatus.SCHEMA_INVALID

    def test_missing_payload_fields_is_schema_invalid(self):
        result = _adapter(rows=[], fields={"date", "user"}).fetch_events(MARCH)
        assert result.status == SourceStatus.SCHEMA_INVALID

    def test_empty_log_is_ok_empty(self):
        result = _adapter(rows=[], fields={"date", "message"}).fetch_events(MARCH)
        assert result.status == SourceStatus.OK_EMPTY

    def test_query_failure_is_unavailable(self):
        source = _ExplodingSource(rows=[], fields={"date", "message"})
        result = EventLogAdapter(source, MEMORY_SCHEMA).fetch_events(MARCH)

        assert result.status == SourceStatus.UNAVAILABLE
        assert "connection reset" in result.detail

    def test_events_found_is_ok(self):
        rows = [{"id": 1, "date": "2024-03-10T09:00:00Z", "message": "Updated plugin Akismet from 5.0 to 5.3"}]

        result = _adapter(rows).fetch_events(MARCH)

        assert result.status == SourceStatus.OK
        assert len(result.events) == 1
        event = result.events[0]
        assert (event.slug, event.version_from, event.version_to) == ("akismet", "5.0", "5.3")
        assert event.origin == EventOrigin.HEURISTIC

    def test_null_adapter(self):
        assert NullEventLogAdapter().fetch_events(MARCH).status == SourceStatus.UNAVAILABLE

    def test_schema_failure_logged(self, captured_logs):
        _adapter(rows=[], fields={"message"}).fetch_events(MARCH)
        logs = captured_logs()
        record = next(r for r in logs if r["message"] == "event_log_schema_invalid")
        assert record["missing_fields"] == ["date"]


# =============================================================================
# Row handling
# =============================================================================


class TestRowHandling:
    def test_unparseable_rows_skipped_and_counted(self):
        rows = [
            {"id": 1, "date": "2024-03-02T00:00:00Z", "message": "Updated settings page"},
            {"id": 2, "date": "2024-03-03T00:00:00Z", "message": "Jetpack was updated from 12.0 to 12.1"},
            {"id": 3, "date": "2024-03-04T00:00:00Z", "message": "Updated plugin X"},
        ]
        result = _adapter(rows).fetch_events(MARCH)

        assert result.status == SourceStatus.OK
        assert result.skipped == 2
        assert [e.slug for e in result.events] == ["jetpack"]

    def test_only_skipped_rows_is_ok_empty(self):
        rows = [{"id": 1, "date": "2024-03-02T00:00:00Z", "message": "Updated settings page"}]

        result = _adapter(rows).fetch_events(MARCH)

        assert result.status == SourceStatus.OK_EMPTY
        assert result.skipped == 1

    def test_window_boundaries(self):
        rows = [
            {"date": "2024-02-29T23:59:59Z", "message": "Updated plugin A from 1 to 2"},
            {"date": "2024-03-01T00:00:00Z", "message": "Updated plugin B from 1 to 2"},
            {"date": "2024-04-01T00:00:00Z", "message": "Updated plugin C from 1 to 2"},
        ]
        result = _adapter(rows).fetch_events(MARCH)
        assert [e.slug for e in result.events] == ["b"]

    def test_duplicates_collapse(self):
        row = {"date": "2024-03-05T10:00:00Z", "message": "Updated plugin Akismet from 5.0 to 5.3"}
        result = _adapter([dict(row, id=1), dict(row, id=2)]).fetch_events(MARCH)
        assert len(result.events) == 1

    def test_structured_context_preferred(self):
        rows = [
            {
                "id": 7,
                "date": "2024-03-05T10:00:00Z",
                "message": "Updated plugin Something Else from 1 to 2",
                "context": {
                    "plugin_slug": "akismet/akismet.php",
                    "plugin_prev_version": "5.2",
                    "plugin_new_version": "5.3",
                },
            }
        ]
        event = _adapter(rows).fetch_events(MARCH).events[0]

        assert (event.slug, event.version_from, event.version_to) == ("akismet", "5.2", "5.3")
        assert event.origin == EventOrigin.STRUCTURED

    def test_slug_hint_fills_missing_name(self):
        adapter = _adapter(
            [],
            extractors=[
                StructuredFieldExtractor(),
                RegexExtractor("bare_to", r"to (?P<to>[0-9][\w.]*)"),
            ],
        )
        row = {"date": "2024-03-05T10:00:00Z", "message": "upgraded to 5.3", "context": {"plugin": "akismet/akismet.php"}}

        event = adapter.parse_row(row, "r1")

        assert (event.slug, event.version_to) == ("akismet", "5.3")

    def test_no_identifier_raises_skip(self):
        adapter = _adapter([], extractors=[RegexExtractor("bare_to", r"to (?P<to>[0-9][\w.]*)")])
        with pytest.raises(EventParseSkippedError) as exc_info:
            adapter.parse_row({"date": "2024-03-05T10:00:00Z", "message": "upgraded to 5.3"}, "r9")
        assert exc_info.value.row_ref == "r9"

    def test_validate_schema_raises(self):
        adapter = _adapter([])
        with pytest.raises(SchemaInvalidError) as exc_info:
            adapter.validate_schema({"message"})
        assert exc_info.value.missing_fields == ["date"]


class TestActionFilter:
    def test_action_column_preferred(self):
        schema = EventLogSchema(
            table="memory",
            message_field="message",
            action_field="action",
            action_values=("plugin_updated",),
        )
        adapter = _adapter([], schema=schema)
        assert adapter.action_filter({"date", "message", "action"}) == ActionFilter(
            field="action", values=("plugin_updated",)
        )

    def test_falls_back_to_keyword(self):
        schema = EventLogSchema(table="memory", action_field="action", action_values=("x",))
        assert _adapter([], schema=schema).action_filter({"date", "message"}).keyword == "updat"

    def test_filter_applied_to_rows(self):
        schema = EventLogSchema(
            table="memory",
            message_field="message",
            action_field="action",
            action_values=("plugin_updated",),
        )
        rows = [
            {"date": "2024-03-05T10:00:00Z", "action": "plugin_updated", "message": "Updated plugin A from 1 to 2"},
            {"date": "2024-03-05T11:00:00Z", "action": "user_login", "message": "Updated plugin B from 1 to 2"},
        ]
        result = _adapter(rows, schema=schema).fetch_events(MARCH)
        assert [e.slug for e in result.events] == ["a"]

    def test_probe(self):
        assert _adapter(rows=None).probe() == SourceStatus.UNAVAILABLE
        assert _adapter(rows=[], fields={"user"}).probe() == SourceStatus.SCHEMA_INVALID
        assert _adapter(rows=[], fields={"date", "message"}).probe() is None


# =============================================================================
# SQL sources
# =============================================================================


@pytest.fixture
def audit_engine(tmp_path):
    """A separate database holding an audit log and its context table."""
    engine = build_engine(f"sqlite:///{tmp_path / 'audit.db'}")
    metadata = MetaData()
    history = Table(
        "simple_history",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("date", DateTime),
        Column("message", Text),
    )
    contexts = Table(
        "simple_history_contexts",
        metadata,
        Column("context_id", Integer, primary_key=True),
        Column("history_id", Integer),
        Column("key", String(255)),
        Column("value", Text),
    )
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(
            history.insert(),
            [
                {"id": 1, "date": datetime(2024, 3, 4, 8, 0), "message": "Updated plugin {plugin_name}"},
                {"id": 2, "date": datetime(2024, 3, 6, 8, 0), "message": "Jetpack was updated from 12.0 to 12.1"},
                {"id": 3, "date": datetime(2024, 3, 7, 8, 0), "message": "Logged in"},
                {"id": 4, "date": datetime(2024, 2, 20, 8, 0), "message": "Updated plugin Old from 1 to 2"},
            ],
        )
        conn.execute(
            contexts.insert(),
            [
                {"history_id": 1, "key": "plugin_name", "value": "Akismet"},
                {"history_id": 1, "key": "plugin_slug", "value": "akismet/akismet.php"},
                {"history_id": 1, "key": "plugin_prev_version", "value": "5.2"},
                {"history_id": 1, "key": "plugin_new_version", "value": "5.3"},
            ],
        )
    yield engine
    engine.dispose()


SQL_SCHEMA = EventLogSchema(
    table="simple_history",
    timestamp_field="date",
    message_field="message",
    context_field="context",
    context_table=ContextTableSpec(table="simple_history_contexts"),
)


class TestSqlEventLogSource:
    def test_field_names_include_context(self, audit_engine):
        source = SqlEventLogSource(audit_engine, SQL_SCHEMA)
        assert source.field_names() == {"id", "date", "message", "context"}

    def test_context_table_joined(self, audit_engine):
        result = EventLogAdapter(SqlEventLogSource(audit_engine, SQL_SCHEMA), SQL_SCHEMA).fetch_events(MARCH)

        assert result.status == SourceStatus.OK
        by_slug = {e.slug: e for e in result.events}
        assert set(by_slug) == {"akismet", "jetpack"}
        assert (by_slug["akismet"].version_from, by_slug["akismet"].version_to) == ("5.2", "5.3")
        assert by_slug["akismet"].origin == EventOrigin.STRUCTURED
        assert by_slug["jetpack"].origin == EventOrigin.HEURISTIC
        assert by_slug["akismet"].occurred_at == datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)

    def test_missing_table_unavailable(self, audit_engine):
        schema = EventLogSchema(table="no_such_table")
        result = EventLogAdapter(SqlEventLogSource(audit_engine, schema), schema).fetch_events(MARCH)
        assert result.status == SourceStatus.UNAVAILABLE

    def test_wrong_columns_schema_invalid(self, audit_engine):
        schema = EventLogSchema(table="simple_history", timestamp_field="created", message_field="body")
        result = EventLogAdapter(SqlEventLogSource(audit_engine, schema), schema).fetch_events(MARCH)
        assert result.status == SourceStatus.SCHEMA_INVALID

    def test_string_timestamps(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'text_log.db'}")
        metadata = MetaData()
        log = Table(
            "audit_log",
            metadata,
            Column("id", Integer, primary_key=True),
            Column("created", String(32)),
            Column("message", Text),
        )
        metadata.create_all(engine)
        with engine.begin() as conn:
            conn.execute(
                log.insert(),
                [
                    {"id": 1, "created": "2024-03-09 10:00:00", "message": "Updated plugin Akismet from 5.0 to 5.3"},
                    {"id": 2, "created": "2024-04-01 00:00:00", "message": "Updated plugin Akismet from 5.3 to 5.4"},
                ],
            )
        schema = EventLogSchema(table="audit_log", timestamp_field="created", message_field="message")

        result = EventLogAdapter(SqlEventLogSource(engine, schema), schema).fetch_events(MARCH)
        engine.dispose()

        assert [(e.slug, e.version_to) for e in result.events] == [("akismet", "5.3")]

    def test_epoch_timestamps(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'epoch_log.db'}")
        metadata = MetaData()
        log = Table(
            "log",
            metadata,
            Column("id", Integer, primary_key=True),
            Column("created", Integer),
            Column("message", Text),
        )
        metadata.create_all(engine)
        inside = int(datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc).timestamp())
        after = int(datetime(2024, 4, 1, tzinfo=timezone.utc).timestamp())
        with engine.begin() as conn:
            conn.execute(
                log.insert(),
                [
                    {"id": 1, "created": inside, "message": "Updated plugin Akismet from 5.0 to 5.3"},
                    {"id": 2, "created": after, "message": "Updated plugin Akismet from 5.3 to 5.4"},
                ],
            )
        schema = EventLogSchema(table="log", timestamp_field="created", message_field="message")

        result = EventLogAdapter(SqlEventLogSource(engine, schema), schema).fetch_events(MARCH)
        engine.dispose()

        assert result.status == SourceStatus.OK
        assert [(e.slug, e.version_from, e.version_to) for e in result.events] == [("akismet", "5.0", "5.3")]
        assert result.events[0].occurred_at == datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_update_history_table_as_source(self, session, clock):
        service = UpdateHistoryService(session, clock=clock)
        service.record_update(
            "akismet", "Akismet", "5.2", "5.3", updated_on=datetime(2024, 3, 3, tzinfo=timezone.utc)
        )
        session.commit()

        schema = EventLogSchema(
            table="component_update_history",
            timestamp_field="updated_on",
            message_field="message",
            message_keyword="",
        )
        source = SqlEventLogSource(session.get_bind(), schema, name="internal")
        result = EventLogAdapter(source, schema).fetch_events(MARCH)

        assert result.status == SourceStatus.OK
        event = result.events[0]
        assert (event.slug, event.version_from, event.version_to) == ("akismet", "5.2", "5.3")
        assert event.origin == EventOrigin.STRUCTURED
