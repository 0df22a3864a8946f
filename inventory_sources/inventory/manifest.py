"""
JSON manifest inventory source.

Handles a JSON array ([{...}, {...}]) or JSON Lines (one object per line).
Configurable: json_path for nested arrays (e.g. "data.plugins"),
format "array" | "jsonl".  Keys are matched case-insensitively and common
variants are accepted (version / current_version, active / is_active /
status).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import ComponentRecord
from inventory_sources.normalize import coerce_bool, normalize_keys, normalize_slug, slugify

SLUG_KEYS = ("slug", "id", "component", "plugin", "package", "file")
NAME_KEYS = ("name", "title")
VERSION_KEYS = ("version", "current_version", "installed_version")
ACTIVE_KEYS = ("active", "is_active", "enabled", "status")
DESCRIPTION_KEYS = ("description", "summary")


def _get_nested(data: Any, path: str) -> Any:
    """Follow dot-separated path into dict/list. Returns None if key missing."""
    if not path.strip():
        return data
    for key in path.split("."):
        key = key.strip()
        if not key:
            continue
        if isinstance(data, list):
            try:
                data = data[int(key)]
            except (ValueError, IndexError):
                return None
        elif isinstance(data, dict) and key in data:
            data = data[key]
        else:
            return None
    return data


def _first(row: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


class JsonManifestInventorySource:
    """Inventory read from a JSON or JSON Lines manifest file."""

    def __init__(
        self,
        path: str | Path,
        format: str = "array",
        json_path: str | None = None,
        encoding: str = "utf-8",
        clock: Clock | None = None,
    ):
        if format not in ("array", "jsonl"):
            raise ValueError(f"Unsupported manifest format: {format}")
        self.path = Path(path)
        self.format = format
        self.json_path = json_path
        self.encoding = encoding
        self._clock = clock or SystemClock()

    def _rows(self) -> Iterator[dict[str, Any]]:
        if self.format == "jsonl":
            with self.path.open("r", encoding=self.encoding) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    item = json.loads(line)
                    if isinstance(item, dict):
                        yield normalize_keys(item)
            return

        with self.path.open("r", encoding=self.encoding) as f:
            data = json.load(f)
        root = _get_nested(data, self.json_path) if self.json_path else data
        if not isinstance(root, list):
            raise ValueError(
                f"Manifest {self.path} has no component array"
                + (f" at {self.json_path!r}" if self.json_path else "")
            )
        for item in root:
            if isinstance(item, dict):
                yield normalize_keys(item)

    def read_current(self) -> list[ComponentRecord]:
        observed_at = self._clock.now()
        records: list[ComponentRecord] = []
        for index, row in enumerate(self._rows()):
            raw_slug = _first(row, SLUG_KEYS)
            name = _first(row, NAME_KEYS)
            slug = normalize_slug(raw_slug) if raw_slug is not None else slugify(str(name or ""))
            if not slug:
                raise ValueError(f"Manifest row {index} has no slug or name")

            version = _first(row, VERSION_KEYS)
            records.append(
                ComponentRecord(
                    slug=slug,
                    name=str(name) if name is not None else slug,
                    current_version=str(version).strip() if version is not None else "",
                    active=coerce_bool(_first(row, ACTIVE_KEYS), default=True),
                    observed_at=observed_at,
                    description=str(_first(row, DESCRIPTION_KEYS) or ""),
                )
            )
        return records
