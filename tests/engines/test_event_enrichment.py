"""Tests for inventory_engines.enrichment -- event log version pairs."""

from datetime import datetime, timedelta, timezone

from inventory_engines.diff import classify
from inventory_engines.enrichment import (
    apply_events,
    comparable_version,
    dedupe_events,
    latest_matching_events,
)
from inventory_kernel.domain.dtos import (
    Classification,
    ComponentRecord,
    EventFetchResult,
    EventOrigin,
    ExternalEvent,
    PreviousRow,
    SourceStatus,
    VersionSource,
)

T0 = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


def _event(slug, version_from, version_to, at=T0, origin=EventOrigin.STRUCTURED) -> ExternalEvent:
    return ExternalEvent(
        slug=slug,
        version_from=version_from,
        version_to=version_to,
        occurred_at=at,
        origin=origin,
    )


def _results():
    current = {
        "akismet": ComponentRecord("akismet", "Akismet", "5.3", True, T0),
        "jetpack": ComponentRecord("jetpack", "Jetpack", "12.0", True, T0),
        "fresh": ComponentRecord("fresh", "Fresh", "1.0", True, T0),
    }
    previous = {
        # diff sees 5.0 -> 5.3; the log knows the real last step was 5.2 -> 5.3
        "akismet": PreviousRow("akismet", "Akismet", "5.0"),
        "jetpack": PreviousRow("jetpack", "Jetpack", "12.0"),
    }
    return {
        slug: classify(current.get(slug), previous.get(slug))
        for slug in sorted(set(current) | set(previous))
    }


class TestDedupeEvents:
    def test_duplicates_collapse(self):
        events = [
            _event("akismet", "5.2", "5.3"),
            _event("akismet", "5.2", "5.3", origin=EventOrigin.HEURISTIC),
        ]
        unique = dedupe_events(events)

        assert len(unique) == 1
        assert unique[0].origin == EventOrigin.STRUCTURED

    def test_naive_and_aware_same_instant_are_duplicates(self):
        naive = _event("akismet", "", "5.3", at=T0.replace(tzinfo=None))
        assert len(dedupe_events([_event("akismet", "", "5.3"), naive])) == 1

    def test_sorted_by_time(self):
        later = _event("a", "1", "2", at=T0 + timedelta(hours=1))
        earlier = _event("b", "1", "2", at=T0)
        assert [e.slug for e in dedupe_events([later, earlier])] == ["b", "a"]


class TestLatestMatchingEvents:
    def test_latest_wins_per_target_version(self):
        first = _event("akismet", "5.0", "5.3", at=T0)
        second = _event("akismet", "5.2", "5.3", at=T0 + timedelta(days=1))

        latest = latest_matching_events([second, first])

        assert latest[("akismet", "5.3")] is second


class TestApplyEvents:
    def test_ok_status_overrides_updated_pair(self):
        fetch = EventFetchResult(SourceStatus.OK, events=(_event("akismet", "5.2", "5.3"),))

        enriched = apply_events(_results(), fetch)

        row = enriched["akismet"]
        assert (row.version_from, row.version_to) == ("5.2", "5.3")
        assert row.version_source == VersionSource.EVENT_LOG
        assert row.classification == Classification.UPDATED

    def test_event_without_from_keeps_diff_from(self):
        fetch = EventFetchResult(SourceStatus.OK, events=(_event("akismet", "", "5.3"),))

        row = apply_events(_results(), fetch)["akismet"]

        assert row.version_from == "5.0"
        assert row.version_source == VersionSource.EVENT_LOG

    def test_event_for_other_version_ignored(self):
        fetch = EventFetchResult(SourceStatus.OK, events=(_event("akismet", "5.1", "5.2"),))

        row = apply_events(_results(), fetch)["akismet"]

        assert (row.version_from, row.version_source) == ("5.0", VersionSource.DIFF)

    def test_classification_never_changes(self):
        events = (
            _event("jetpack", "11.9", "12.0"),
            _event("fresh", "0.9", "1.0"),
            _event("akismet", "5.2", "5.3"),
        )
        before = _results()
        after = apply_events(before, EventFetchResult(SourceStatus.OK, events=events))

        assert {s: r.classification for s, r in after.items()} == {
            s: r.classification for s, r in before.items()
        }
        assert after["jetpack"] == before["jetpack"]
        assert after["fresh"] == before["fresh"]

    def test_non_ok_statuses_change_nothing(self):
        events = (_event("akismet", "5.2", "5.3"),)
        baseline = _results()
        for status in (SourceStatus.UNAVAILABLE, SourceStatus.SCHEMA_INVALID, SourceStatus.OK_EMPTY):
            enriched = apply_events(baseline, EventFetchResult(status, events=events))
            assert enriched == baseline

    def test_usable_flag(self):
        assert not EventFetchResult(SourceStatus.OK).usable
        assert EventFetchResult(SourceStatus.OK, events=(_event("a", "", "1"),)).usable


class TestVersionPrefix:
    def test_comparable_version(self):
        assert comparable_version(" v1.1 ") == "1.1"
        assert comparable_version("V2") == "2"
        assert comparable_version("v") == "v"
        assert comparable_version("vendor-1") == "vendor-1"

    def test_prefixed_inventory_matches_stripped_event(self):
        results = {
            "a": classify(
                ComponentRecord("a", "A", "v1.1", True, T0),
                PreviousRow("a", "A", "v1.0"),
            )
        }
        fetch = EventFetchResult(SourceStatus.OK, events=(_event("a", "1.0.5", "1.1"),))

        row = apply_events(results, fetch)["a"]

        assert row.version_source == VersionSource.EVENT_LOG
        assert (row.version_from, row.version_to) == ("1.0.5", "v1.1")
        assert row.current_version == "v1.1"

    def test_prefixed_event_matches_plain_inventory(self):
        fetch = EventFetchResult(SourceStatus.OK, events=(_event("akismet", "v5.2", "v5.3"),))

        row = apply_events(_results(), fetch)["akismet"]

        assert row.version_source == VersionSource.EVENT_LOG
        assert (row.version_from, row.version_to) == ("v5.2", "5.3")
