"""
EventLogAdapter -- schema-validated, failure-tolerant event retrieval.

Responsibility:
    Turns an optional external event log into a tagged EventFetchResult.
    The log may be absent, have an unexpected schema, be empty, or fail
    mid-query; none of these abort snapshot generation.

Architecture position:
    Sources -- the only component that touches the event log.  Consumed by
    the lifecycle manager; its output feeds inventory_engines.enrichment.

Invariants enforced:
    - Required fields come from the configured EventLogSchema; nothing is
      guessed from the data.
    - Rows yielding no component identifier are skipped and counted, never
      fatal.
    - Events are deduplicated on (slug, version_to, occurred_at) and lie
      inside the requested window.

Failure modes:
    - Source missing                -> SourceStatus.UNAVAILABLE
    - Required fields missing       -> SourceStatus.SCHEMA_INVALID
    - Any exception while probing or querying -> SourceStatus.UNAVAILABLE
    - Query ok, no usable events    -> SourceStatus.OK_EMPTY
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from inventory_engines.enrichment import dedupe_events
from inventory_kernel.domain.dtos import (
    EventFetchResult,
    ExternalEvent,
    SourceStatus,
    TimeRange,
)
from inventory_kernel.exceptions import EventParseSkippedError, SchemaInvalidError
from inventory_kernel.logging_config import get_logger
from inventory_sources.events.base import ActionFilter, EventLogSchema, EventLogSource
from inventory_sources.events.extractors import EventExtractor, build_view, default_extractors
from inventory_sources.events.timestamps import parse_timestamp

logger = get_logger("sources.events.adapter")


class EventLogAdapter:
    """
    Adapter from a raw event log to normalised ExternalEvents.

    Contract:
        ``fetch_events(window)`` never raises.  Callers branch on
        ``result.status``.
    """

    def __init__(
        self,
        source: EventLogSource,
        schema: EventLogSchema,
        extractors: Sequence[EventExtractor] | None = None,
    ):
        self.source = source
        self.schema = schema
        self.extractors = list(extractors) if extractors is not None else default_extractors()

    def validate_schema(self, fields: set[str]) -> None:
        """
        Raises:
            SchemaInvalidError: timestamp or every payload field is missing.
        """
        missing: list[str] = []
        if self.schema.timestamp_field not in fields:
            missing.append(self.schema.timestamp_field)
        payload = self.schema.payload_fields()
        if not payload:
            missing.append("message_field|context_field")
        elif not any(name in fields for name in payload):
            missing.append("|".join(payload))
        if missing:
            raise SchemaInvalidError(self.source.name, missing)

    def action_filter(self, fields: set[str]) -> ActionFilter:
        """Action column filter when the column exists, else message keyword."""
        schema = self.schema
        if schema.action_field and schema.action_values and schema.action_field in fields:
            return ActionFilter(field=schema.action_field, values=tuple(schema.action_values))
        if schema.message_field and schema.message_keyword and schema.message_field in fields:
            return ActionFilter(message_field=schema.message_field, keyword=schema.message_keyword)
        return ActionFilter()

    def probe(self) -> SourceStatus | None:
        """
        Existence and schema check without querying rows.

        Returns None when the log looks usable.
        """
        try:
            if not self.source.exists():
                return SourceStatus.UNAVAILABLE
            self.validate_schema(self.source.field_names())
        except SchemaInvalidError:
            return SourceStatus.SCHEMA_INVALID
        except Exception:
            logger.warning("event_log_probe_failed", exc_info=True)
            return SourceStatus.UNAVAILABLE
        return None

    def parse_row(self, row: Mapping[str, Any], row_ref: str) -> ExternalEvent:
        """
        Run the extractors over one row.

        Raises:
            EventParseSkippedError: no timestamp, no versions, or no
                component identifier.
        """
        occurred_at = parse_timestamp(row.get(self.schema.timestamp_field))
        if occurred_at is None:
            raise EventParseSkippedError(row_ref, "unparseable timestamp")

        view = build_view(row, self.schema.message_field, self.schema.context_field)

        slug_hint = ""
        for extractor in self.extractors:
            candidate = extractor.extract(view)
            if candidate is None:
                continue
            if not candidate.version_to:
                slug_hint = slug_hint or candidate.slug
                continue
            slug = candidate.slug or slug_hint
            if not slug:
                raise EventParseSkippedError(row_ref, f"{extractor.name}: no component identifier")
            return ExternalEvent(
                slug=slug,
                version_from=candidate.version_from,
                version_to=candidate.version_to,
                occurred_at=occurred_at,
                origin=extractor.origin,
            )

        raise EventParseSkippedError(row_ref, "no extractor matched")

    def fetch_events(self, window: TimeRange) -> EventFetchResult:
        """Events inside ``window``, tagged with the source status."""
        source_name = self.source.name
        try:
            if not self.source.exists():
                logger.info("event_log_unavailable", extra={"source": source_name, "reason": "missing"})
                return EventFetchResult(SourceStatus.UNAVAILABLE, detail="event log not found")

            fields = self.source.field_names()
            try:
                self.validate_schema(fields)
            except SchemaInvalidError as exc:
                logger.warning(
                    "event_log_schema_invalid",
                    extra={"source": source_name, "missing_fields": exc.missing_fields},
                )
                return EventFetchResult(SourceStatus.SCHEMA_INVALID, detail=str(exc))

            rows = list(self.source.fetch_rows(window, self.action_filter(fields)))
        except Exception as exc:
            logger.warning(
                "event_log_unavailable",
                extra={"source": source_name, "reason": type(exc).__name__, "error": str(exc)},
            )
            return EventFetchResult(SourceStatus.UNAVAILABLE, detail=str(exc))

        events: list[ExternalEvent] = []
        skipped = 0
        for index, row in enumerate(rows):
            row_ref = str(row.get(self.schema.id_field, index))
            try:
                event = self.parse_row(row, row_ref)
            except EventParseSkippedError as exc:
                skipped += 1
                logger.debug(
                    "event_parse_skipped",
                    extra={"source": source_name, "row_ref": row_ref, "reason": exc.reason},
                )
                continue
            if window.contains(event.occurred_at):
                events.append(event)

        unique = dedupe_events(events)
        status = SourceStatus.OK if unique else SourceStatus.OK_EMPTY

        logger.info(
            "event_log_fetched",
            extra={
                "source": source_name,
                "status": status.value,
                "row_count": len(rows),
                "event_count": len(unique),
                "duplicates": len(events) - len(unique),
                "skipped": skipped,
            },
        )
        return EventFetchResult(status=status, events=unique, skipped=skipped)


class NullEventLogAdapter:
    """Stand-in when no event log is configured."""

    def fetch_events(self, window: TimeRange) -> EventFetchResult:
        return EventFetchResult(SourceStatus.UNAVAILABLE, detail="event log disabled")
