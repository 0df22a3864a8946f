"""
Tests for inventory_engines.diff -- classification against the prior snapshot.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from inventory_engines.diff import classify, diff_inventories, summarize
from inventory_kernel.domain.dtos import (
    Classification,
    ComponentRecord,
    DiffResult,
    PreviousRow,
    SnapshotSummary,
    VersionSource,
)

OBSERVED = datetime(2024, 3, 15, tzinfo=timezone.utc)


def _current(slug: str, version: str, active: bool = True) -> ComponentRecord:
    return ComponentRecord(
        slug=slug,
        name=slug.title(),
        current_version=version,
        active=active,
        observed_at=OBSERVED,
    )


def _previous(slug: str, version: str) -> PreviousRow:
    return PreviousRow(slug=slug, name=slug.title(), current_version=version, active=True)


def _by_slug(items):
    return {item.slug: item for item in items}


# =============================================================================
# classify()
# =============================================================================


class TestClassify:
    def test_new_component(self):
        result = classify(_current("akismet", "5.0"), None)

        assert result.classification == Classification.NEW
        assert result.version_from == ""
        assert result.version_to == "5.0"
        assert result.current_version == "5.0"

    def test_updated_component(self):
        result = classify(_current("akismet", "5.1"), _previous("akismet", "5.0"))

        assert result.classification == Classification.UPDATED
        assert (result.version_from, result.version_to) == ("5.0", "5.1")

    def test_unchanged_component_keeps_both_versions(self):
        result = classify(_current("akismet", "5.0"), _previous("akismet", "5.0"))

        assert result.classification == Classification.UNCHANGED
        assert (result.version_from, result.version_to) == ("5.0", "5.0")

    def test_deleted_component(self):
        result = classify(None, _previous("akismet", "5.0"))

        assert result.classification == Classification.DELETED
        assert result.version_from == "5.0"
        assert result.version_to == ""
        assert result.current_version == ""
        assert result.active is False

    def test_version_source_is_diff(self):
        assert classify(_current("a", "1"), None).version_source == VersionSource.DIFF

    def test_inactive_flag_carried(self):
        result = classify(_current("akismet", "5.0", active=False), None)
        assert result.active is False

    def test_requires_one_side(self):
        with pytest.raises(ValueError):
            classify(None, None)

    def test_result_is_frozen(self):
        result = classify(_current("akismet", "5.0"), None)
        with pytest.raises(FrozenInstanceError):
            result.classification = Classification.UPDATED  # type: ignore[misc]

    def test_new_result_rejects_version_from(self):
        with pytest.raises(ValueError, match="cannot have version_from"):
            DiffResult(
                slug="a",
                name="A",
                description="",
                classification=Classification.NEW,
                version_from="1.0",
                version_to="1.1",
                current_version="1.1",
                active=True,
            )


# =============================================================================
# diff_inventories()
# =============================================================================


class TestDiffInventories:
    def test_first_run_everything_new(self):
        current = _by_slug(_current(f"plugin-{i}", "1.0") for i in range(5))

        results = diff_inventories(current, {})

        assert len(results) == 5
        assert all(r.classification == Classification.NEW for r in results.values())
        assert summarize(results) == SnapshotSummary(new=5)

    def test_mixed_period(self):
        previous = _by_slug([_previous("a", "1.0"), _previous("b", "2.0"), _previous("c", "3.0")])
        current = _by_slug([_current("a", "1.1"), _current("b", "2.0"), _current("d", "1.0")])

        results = diff_inventories(current, previous)

        assert results["a"].classification == Classification.UPDATED
        assert (results["a"].version_from, results["a"].version_to) == ("1.0", "1.1")
        assert results["b"].classification == Classification.UNCHANGED
        assert results["c"].classification == Classification.DELETED
        assert results["c"].version_from == "3.0"
        assert results["d"].classification == Classification.NEW
        assert summarize(results) == SnapshotSummary(new=1, updated=1, deleted=1, unchanged=1)

    def test_output_sorted_by_slug(self):
        current = _by_slug([_current("zeta", "1"), _current("alpha", "1"), _current("mid", "1")])
        assert list(diff_inventories(current, {})) == ["alpha", "mid", "zeta"]

    def test_deterministic(self):
        previous = _by_slug([_previous("a", "1.0"), _previous("b", "1.0")])
        current = _by_slug([_current("a", "2.0"), _current("c", "1.0")])

        assert diff_inventories(current, previous) == diff_inventories(current, previous)

    def test_mismatched_key_rejected(self):
        with pytest.raises(ValueError, match="does not match"):
            diff_inventories({"wrong": _current("akismet", "1.0")}, {})

    def test_summarize_accepts_iterable(self):
        results = diff_inventories(_by_slug([_current("a", "1")]), {})
        assert summarize(list(results.values())).total == 1


# =============================================================================
# Property: partition
# =============================================================================

_slugs = st.sets(st.sampled_from([f"c{i}" for i in range(12)]), max_size=12)
_versions = st.sampled_from(["1.0", "1.1", "2.0"])


class TestDiffPartitionProperty:
    @settings(max_examples=200, deadline=None)
    @given(
        current_slugs=_slugs,
        previous_slugs=_slugs,
        data=st.data(),
    )
    def test_every_slug_classified_exactly_once(self, current_slugs, previous_slugs, data):
        current = {s: _current(s, data.draw(_versions)) for s in current_slugs}
        previous = {s: _previous(s, data.draw(_versions)) for s in previous_slugs}

        results = diff_inventories(current, previous)

        assert set(results) == current_slugs | previous_slugs
        summary = summarize(results)
        assert summary.total == len(current_slugs | previous_slugs)
        assert summary.new == len(current_slugs - previous_slugs)
        assert summary.deleted == len(previous_slugs - current_slugs)
        assert summary.updated + summary.unchanged == len(current_slugs & previous_slugs)

        for slug, result in results.items():
            if result.classification == Classification.UPDATED:
                assert result.version_from != result.version_to
            if result.classification == Classification.UNCHANGED:
                assert result.version_from == result.version_to == current[slug].current_version
