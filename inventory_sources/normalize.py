"""Identifier and key normalisation shared by inventory and event sources."""

from __future__ import annotations

import re
from typing import Any

_NON_SLUG = re.compile(r"[^a-z0-9_.-]+")
_DASHES = re.compile(r"-{2,}")
_DIST_NAME = re.compile(r"[-_.]+")


def slugify(value: str) -> str:
    """Lowercase, dash-separated identifier from a display name."""
    slug = _NON_SLUG.sub("-", value.strip().lower())
    return _DASHES.sub("-", slug).strip("-.")


def normalize_slug(value: Any) -> str:
    """
    Component identifier from a raw field value.

    Plugin-style paths ("akismet/akismet.php") reduce to their first
    segment; a bare "hello.php" loses its extension.
    """
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    if "/" in text:
        text = text.split("/", 1)[0]
    elif text.lower().endswith(".php"):
        text = text[:-4]
    return slugify(text)


def normalize_distribution_name(name: str) -> str:
    """PEP 503 normalised project name."""
    return _DIST_NAME.sub("-", name).lower()


def normalize_keys(item: dict[str, Any]) -> dict[str, Any]:
    """Copy with string keys stripped and lowercased."""
    return {str(k).strip().lower(): v for k, v in item.items() if isinstance(k, str)}


def coerce_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "y", "on", "active", "enabled"):
        return True
    if text in ("0", "false", "no", "n", "off", "inactive", "disabled", ""):
        return False
    return default
