"""
Period keys -- ``YYYY-MM`` reporting periods.

Pure helpers for validating, ordering and windowing period keys.  Period
keys sort lexicographically in chronological order, which is what the
"most recent prior snapshot" query relies on.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import TimeRange
from inventory_kernel.exceptions import InvalidPeriodKeyError

_PERIOD_KEY_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def validate_period_key(period_key: str) -> str:
    """Return the key unchanged if it is ``YYYY-MM``; raise otherwise."""
    if not isinstance(period_key, str) or not _PERIOD_KEY_RE.match(period_key):
        raise InvalidPeriodKeyError(str(period_key))
    return period_key


def _split(period_key: str) -> tuple[int, int]:
    match = _PERIOD_KEY_RE.match(validate_period_key(period_key))
    assert match is not None
    return int(match.group(1)), int(match.group(2))


def period_key_for(moment: datetime) -> str:
    """Period key of a timestamp, evaluated in UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment.year:04d}-{moment.month:02d}"


def current_period_key(clock: Clock) -> str:
    return period_key_for(clock.now())


def previous_calendar_period(period_key: str) -> str:
    """The calendar month immediately before ``period_key``."""
    year, month = _split(period_key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def next_calendar_period(period_key: str) -> str:
    year, month = _split(period_key)
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"


def period_window(period_key: str) -> TimeRange:
    """UTC window ``[first day 00:00, first day of next month 00:00)``."""
    year, month = _split(period_key)
    next_year, next_month = _split(next_calendar_period(period_key))
    return TimeRange(
        start=datetime(year, month, 1, tzinfo=timezone.utc),
        end=datetime(next_year, next_month, 1, tzinfo=timezone.utc),
    )


def period_title(period_key: str) -> str:
    year, month = _split(period_key)
    return f"Inventory Snapshot {datetime(year, month, 1):%B %Y}"
