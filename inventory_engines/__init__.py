"""
Module: inventory_engines
Responsibility:
    Pure calculation engines for snapshot generation: diff classification,
    event log enrichment and annotation carry-forward.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel.domain (and sibling engine modules).
    MUST NOT import inventory_services or inventory_sources.

Invariants enforced:
    - Engines never read the clock; timestamps arrive as parameters.
    - Identical inputs always produce identical outputs.
"""

from inventory_engines.annotations import merge_annotations
from inventory_engines.diff import classify, diff_inventories, summarize
from inventory_engines.enrichment import (
    apply_events,
    comparable_version,
    dedupe_events,
    latest_matching_events,
)
from inventory_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "apply_events",
    "classify",
    "comparable_version",
    "compute_input_fingerprint",
    "dedupe_events",
    "diff_inventories",
    "latest_matching_events",
    "merge_annotations",
    "summarize",
    "traced_engine",
]
