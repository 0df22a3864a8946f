"""
Pure schedule evaluation for monthly snapshot automation.

Contract:
    ``should_fire(automation, now, last_run_at)`` is PURE -- no I/O, no
    clock reads.  The runner supplies every timestamp.

Rules:
    - Disabled automation never fires.
    - Fires once per period, at or after the configured day and time
      (UTC).  A day past the month's end means the month's last day.
    - Never fires twice in the same period.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timezone

from inventory_config.schema import AutomationSettings
from inventory_kernel.domain.clock import ensure_utc
from inventory_kernel.domain.periods import period_key_for, period_window


def scheduled_fire_time(period_key: str, automation: AutomationSettings) -> datetime:
    """When the automation is due inside ``period_key``."""
    start = period_window(period_key).start
    last_day = calendar.monthrange(start.year, start.month)[1]
    return datetime(
        start.year,
        start.month,
        min(automation.day_of_month, last_day),
        automation.hour,
        automation.minute,
        tzinfo=timezone.utc,
    )


def should_fire(
    automation: AutomationSettings,
    now: datetime,
    last_run_at: datetime | None = None,
) -> bool:
    if not automation.enabled:
        return False

    now = ensure_utc(now)
    period_key = period_key_for(now)
    if now < scheduled_fire_time(period_key, automation):
        return False

    if last_run_at is not None and period_key_for(ensure_utc(last_run_at)) == period_key:
        return False

    return True
