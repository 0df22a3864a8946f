"""
inventory_engines.diff -- Classify components against the prior snapshot.

Responsibility:
    Compare the current inventory with the comparison period's live rows
    and classify every slug in their union as new, updated, deleted or
    unchanged, with its version transition.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only inventory_kernel.domain DTOs.

Invariants enforced:
    - Partition: every slug in ``current | previous`` receives exactly one
      classification and no other slug appears in the output.
    - Determinism: output is ordered by slug; identical inputs give
      identical outputs.
    - Version pairs follow the classification (DiffResult.__post_init__).

Failure modes:
    - ValueError if a mapping key disagrees with its record's slug.

Usage:
    results = diff_inventories(current, previous)
    summary = summarize(results)
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import (
    Classification,
    ComponentRecord,
    DiffResult,
    PreviousRow,
    SnapshotSummary,
)


def classify(
    current: ComponentRecord | None,
    previous: PreviousRow | None,
) -> DiffResult:
    """Classify one slug given its current record and/or previous row."""
    if current is None and previous is None:
        raise ValueError("classify() needs a current record or a previous row")

    if previous is None:
        return DiffResult(
            slug=current.slug,
            name=current.name,
            description=current.description,
            classification=Classification.NEW,
            version_from="",
            version_to=current.current_version,
            current_version=current.current_version,
            active=current.active,
        )

    if current is None:
        return DiffResult(
            slug=previous.slug,
            name=previous.name,
            description=previous.description,
            classification=Classification.DELETED,
            version_from=previous.current_version,
            version_to="",
            current_version="",
            active=False,
        )

    if current.current_version != previous.current_version:
        classification = Classification.UPDATED
        version_from = previous.current_version
    else:
        classification = Classification.UNCHANGED
        version_from = current.current_version

    return DiffResult(
        slug=current.slug,
        name=current.name,
        description=current.description,
        classification=classification,
        version_from=version_from,
        version_to=current.current_version,
        current_version=current.current_version,
        active=current.active,
    )


def _check_keys(mapping: Mapping[str, ComponentRecord | PreviousRow], label: str) -> None:
    for slug, record in mapping.items():
        if slug != record.slug:
            raise ValueError(f"{label} key {slug!r} does not match record slug {record.slug!r}")


@traced_engine("diff", "1.0")
def diff_inventories(
    current: Mapping[str, ComponentRecord],
    previous: Mapping[str, PreviousRow],
) -> dict[str, DiffResult]:
    """
    Classify every slug in ``current`` and ``previous``.

    An empty ``previous`` (first run, or no comparison period) classifies
    everything as new.
    """
    _check_keys(current, "current")
    _check_keys(previous, "previous")

    results: dict[str, DiffResult] = {}
    for slug in sorted(set(current) | set(previous)):
        results[slug] = classify(current.get(slug), previous.get(slug))
    return results


def summarize(results: Mapping[str, DiffResult] | Iterable[DiffResult]) -> SnapshotSummary:
    """Counts per classification."""
    values = results.values() if isinstance(results, Mapping) else results
    counts = Counter(result.classification for result in values)
    return SnapshotSummary.from_counts(counts)
