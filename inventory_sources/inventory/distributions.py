"""Inventory of the host Python environment's installed distributions."""

from __future__ import annotations

from importlib import metadata

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import ComponentRecord
from inventory_sources.normalize import normalize_distribution_name


class InstalledDistributionsSource:
    """
    Every installed distribution as a component.

    The slug is the normalised project name.  When the same project is
    visible twice on sys.path the first one wins, as it would on import.
    """

    def __init__(self, clock: Clock | None = None, path: list[str] | None = None):
        self._clock = clock or SystemClock()
        self._path = path

    def read_current(self) -> list[ComponentRecord]:
        observed_at = self._clock.now()
        if self._path is not None:
            distributions = metadata.distributions(path=self._path)
        else:
            distributions = metadata.distributions()

        records: dict[str, ComponentRecord] = {}
        for dist in distributions:
            name = dist.metadata.get("Name")
            if not name:
                continue
            slug = normalize_distribution_name(name)
            if slug in records:
                continue
            records[slug] = ComponentRecord(
                slug=slug,
                name=name,
                current_version=dist.version or "",
                active=True,
                observed_at=observed_at,
                description=dist.metadata.get("Summary") or "",
            )
        return [records[slug] for slug in sorted(records)]
