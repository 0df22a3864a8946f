"""In-memory inventory source."""

from __future__ import annotations

from collections.abc import Iterable

from inventory_kernel.domain.dtos import ComponentRecord


class StaticInventorySource:
    """Fixed component list, for embedding callers and tests."""

    def __init__(self, records: Iterable[ComponentRecord] = ()):
        self._records = list(records)

    def replace(self, records: Iterable[ComponentRecord]) -> None:
        self._records = list(records)

    def read_current(self) -> list[ComponentRecord]:
        return list(self._records)
