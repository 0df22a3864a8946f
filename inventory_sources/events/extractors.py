"""
Event extractors -- ordered strategies turning a raw log row into a
component / version transition.

Structured extractors read named fields (from the context payload, then
from the row's own columns) and run first.  Regex extractors parse the
free-text message and run in order; the first phrasing that matches wins.

Each extractor returns a Candidate or None.  A candidate with a slug but
no version_to is a slug hint: later extractors may still find the
versions, and the hint fills in a missing component name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from inventory_kernel.domain.dtos import EventOrigin
from inventory_sources.normalize import normalize_keys, normalize_slug, slugify

SLUG_KEYS = (
    "slug",
    "component_slug",
    "plugin_slug",
    "component",
    "plugin",
    "package",
)
FROM_KEYS = (
    "version_from",
    "previous_version",
    "prev_version",
    "old_version",
    "plugin_prev_version",
    "from_version",
    "from",
)
TO_KEYS = (
    "version_to",
    "new_version",
    "plugin_new_version",
    "plugin_version",
    "to_version",
    "version",
    "to",
)

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_]+)\}")
_QUOTES = "\"'“”‘’"


@dataclass(frozen=True)
class Candidate:
    slug: str = ""
    version_from: str = ""
    version_to: str = ""


@dataclass(frozen=True)
class RowView:
    """What an extractor sees: message text and the merged field payload."""

    message: str
    fields: Mapping[str, Any]


class EventExtractor(Protocol):
    name: str
    origin: EventOrigin

    def extract(self, view: RowView) -> Candidate | None:
        ...


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _clean_version(value: str) -> str:
    value = value.strip().strip(_QUOTES).rstrip(".,;)")
    if len(value) > 1 and value[0] in "vV" and value[1].isdigit():
        value = value[1:]
    return value


def interpolate(message: str, context: Mapping[str, Any]) -> str:
    """Replace ``{key}`` placeholders with context values; unknown keys stay."""

    def _sub(match: re.Match) -> str:
        key = match.group(1).lower()
        if key in context and context[key] is not None:
            return str(context[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, message)


def build_view(row: Mapping[str, Any], message_field: str, context_field: str) -> RowView:
    """
    Merge a row's context payload over its columns.

    Context keys win over same-named columns.
    """
    columns = normalize_keys({k: v for k, v in row.items() if k != context_field})
    context = row.get(context_field) if context_field else None
    merged = dict(columns)
    if isinstance(context, Mapping):
        merged.update(normalize_keys(dict(context)))

    message = _text(row.get(message_field)) if message_field else ""
    if message:
        message = interpolate(message, merged)
    return RowView(message=message, fields=merged)


class StructuredFieldExtractor:
    """Known key variants for component id, old version and new version."""

    name = "structured_fields"
    origin = EventOrigin.STRUCTURED

    def __init__(
        self,
        slug_keys: tuple[str, ...] = SLUG_KEYS,
        from_keys: tuple[str, ...] = FROM_KEYS,
        to_keys: tuple[str, ...] = TO_KEYS,
    ):
        self.slug_keys = slug_keys
        self.from_keys = from_keys
        self.to_keys = to_keys

    @staticmethod
    def _first(fields: Mapping[str, Any], keys: tuple[str, ...]) -> str:
        for key in keys:
            value = _text(fields.get(key))
            if value:
                return value
        return ""

    def extract(self, view: RowView) -> Candidate | None:
        slug = normalize_slug(self._first(view.fields, self.slug_keys))
        version_to = _clean_version(self._first(view.fields, self.to_keys))
        version_from = _clean_version(self._first(view.fields, self.from_keys))
        if not slug and not version_to:
            return None
        return Candidate(slug=slug, version_from=version_from, version_to=version_to)


class RegexExtractor:
    """
    One message phrasing.

    Patterns use named groups ``name``, ``to`` and optionally ``from``.
    """

    origin = EventOrigin.HEURISTIC

    def __init__(self, name: str, pattern: str, flags: int = re.IGNORECASE):
        self.name = name
        self.pattern = re.compile(pattern, flags)

    def extract(self, view: RowView) -> Candidate | None:
        if not view.message:
            return None
        match = self.pattern.search(view.message)
        if match is None:
            return None
        groups = match.groupdict()
        version_to = _clean_version(groups.get("to") or "")
        if not version_to:
            return None
        raw_name = (groups.get("name") or "").strip().strip(_QUOTES).strip()
        return Candidate(
            slug=slugify(raw_name) if raw_name else "",
            version_from=_clean_version(groups.get("from") or ""),
            version_to=version_to,
        )


_KIND = r"(?:plugin|component|theme|package|extension)"
_VERSION = r"(?:version\s+)?(?P<{group}>v?[0-9][\w.+-]*)"
_NAME = r"[\"'“‘]?(?P<name>.+?)[\"'”’]?"

DEFAULT_PHRASINGS: tuple[tuple[str, str], ...] = (
    (
        "updated_kind_from_to",
        rf"\bupdated\s+(?:the\s+)?{_KIND}\s+{_NAME}\s+from\s+"
        + _VERSION.format(group="from")
        + r"\s+to\s+"
        + _VERSION.format(group="to"),
    ),
    (
        "name_updated_from_to",
        rf"^{_NAME}\s+(?:was\s+|has\s+been\s+)?updated\s+from\s+"
        + _VERSION.format(group="from")
        + r"\s+to\s+"
        + _VERSION.format(group="to"),
    ),
    (
        "name_arrow",
        rf"^{_NAME}\s*:\s*"
        + _VERSION.format(group="from")
        + r"\s*(?:->|=>|→)\s*"
        + _VERSION.format(group="to"),
    ),
    (
        "updated_name_to",
        rf"\bupdated\s+(?:the\s+)?(?:{_KIND}\s+)?{_NAME}\s+to\s+"
        + _VERSION.format(group="to"),
    ),
)


def default_extractors() -> list[EventExtractor]:
    """Structured fields first, then each phrasing in order."""
    extractors: list[EventExtractor] = [StructuredFieldExtractor()]
    extractors.extend(RegexExtractor(name, pattern) for name, pattern in DEFAULT_PHRASINGS)
    return extractors
