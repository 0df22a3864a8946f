"""
inventory_engines.annotations -- Carry human annotations across regeneration.

Annotations (category, notes, comments) belong to one period.  On
regeneration the rows of that same period's existing snapshot supply them;
slugs without an existing row start empty.  Nothing is ever read from a
different period.
"""

from __future__ import annotations

from collections.abc import Mapping

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import (
    Annotations,
    DiffResult,
    MergedRow,
    SnapshotRowInfo,
)


def _annotations_of(existing: SnapshotRowInfo | Annotations) -> Annotations:
    if isinstance(existing, Annotations):
        return existing
    return existing.annotations


@traced_engine("annotations", "1.0")
def merge_annotations(
    new_rows: Mapping[str, DiffResult],
    existing_rows: Mapping[str, SnapshotRowInfo | Annotations],
    period_key: str | None = None,
) -> dict[str, MergedRow]:
    """
    Attach existing annotations to freshly computed rows.

    Args:
        new_rows: Diff results for the period being regenerated.
        existing_rows: That period's rows before regeneration, keyed by slug.
        period_key: When given, every existing row must belong to it.

    Raises:
        ValueError: an existing row belongs to another period.
    """
    if period_key is not None:
        for slug, existing in existing_rows.items():
            row_period = getattr(existing, "period_key", period_key)
            if row_period != period_key:
                raise ValueError(
                    f"Annotation source row {slug!r} belongs to {row_period}, "
                    f"not {period_key}"
                )

    merged: dict[str, MergedRow] = {}
    for slug, diff in new_rows.items():
        existing = existing_rows.get(slug)
        annotations = _annotations_of(existing) if existing is not None else Annotations()
        merged[slug] = MergedRow(diff=diff, annotations=annotations)
    return merged
