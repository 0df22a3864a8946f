"""Timestamp coercion for event log rows.  All results are UTC-aware."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from inventory_kernel.domain.clock import ensure_utc


def parse_timestamp(value: Any) -> datetime | None:
    """
    datetime, ISO-8601 string or epoch seconds to an aware UTC datetime.

    Naive values are taken to be UTC.  Returns None for anything
    unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None
