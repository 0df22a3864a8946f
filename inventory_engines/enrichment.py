"""
inventory_engines.enrichment -- Prefer event log version pairs over diffs.

Responsibility:
    Fold externally observed update events into diff results.  When the
    event log is usable and holds an event that explains an updated
    component's current version, the event's before/after pair replaces
    the diff-derived one.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Classification is never changed; only version_from / version_to and
      version_source of updated rows may move.
    - Any status other than OK leaves every diff result untouched.
    - An event matches a slug only if its version_to equals the slug's
      current version, ignoring a leading "v"; among matches the latest
      occurred_at wins.
    - Duplicate events (same slug, version_to, occurred_at) collapse to one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.clock import ensure_utc
from inventory_kernel.domain.dtos import (
    Classification,
    DiffResult,
    EventFetchResult,
    ExternalEvent,
    SourceStatus,
    VersionSource,
)


def dedupe_events(events: Iterable[ExternalEvent]) -> tuple[ExternalEvent, ...]:
    """
    Drop events sharing (slug, version_to, occurred_at).

    Ordered by occurred_at then slug.  The first event seen for a key wins,
    which keeps a structured extraction over a later heuristic duplicate.
    """
    seen: dict[tuple, ExternalEvent] = {}
    for event in events:
        seen.setdefault(event.dedupe_key, event)
    return tuple(
        sorted(seen.values(), key=lambda e: (ensure_utc(e.occurred_at), e.slug, e.version_to))
    )


def comparable_version(version: str) -> str:
    """Version text with surrounding space and a ``v`` prefix removed."""
    version = (version or "").strip()
    if len(version) > 1 and version[0] in "vV" and version[1].isdigit():
        return version[1:]
    return version


def latest_matching_events(
    events: Iterable[ExternalEvent],
) -> dict[tuple[str, str], ExternalEvent]:
    """Latest event per (slug, comparable version_to)."""
    latest: dict[tuple[str, str], ExternalEvent] = {}
    for event in events:
        key = (event.slug, comparable_version(event.version_to))
        current = latest.get(key)
        if current is None or ensure_utc(event.occurred_at) >= ensure_utc(current.occurred_at):
            latest[key] = event
    return latest


@traced_engine("enrichment", "1.0")
def apply_events(
    results: Mapping[str, DiffResult],
    fetch: EventFetchResult,
) -> dict[str, DiffResult]:
    """
    Return ``results`` with event-derived version pairs where they apply.

    A non-OK fetch result returns a copy of ``results`` unchanged.
    """
    if fetch.status != SourceStatus.OK or not fetch.events:
        return dict(results)

    matches = latest_matching_events(dedupe_events(fetch.events))

    enriched: dict[str, DiffResult] = {}
    for slug, result in results.items():
        event = None
        if result.classification == Classification.UPDATED:
            event = matches.get((slug, comparable_version(result.current_version)))

        if event is None:
            enriched[slug] = result
            continue

        enriched[slug] = replace(
            result,
            version_from=event.version_from or result.version_from,
            version_to=result.current_version,
            version_source=VersionSource.EVENT_LOG,
        )
    return enriched
