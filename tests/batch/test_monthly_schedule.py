"""Tests for inventory_batch.schedule -- pure monthly schedule evaluation."""

from datetime import datetime, timedelta, timezone

import pytest

from inventory_batch.schedule import scheduled_fire_time, should_fire
from inventory_config.schema import AutomationSettings

UTC = timezone.utc


def _automation(**overrides) -> AutomationSettings:
    values = {"enabled": True, "day_of_month": 1, "time_of_day": "02:00"}
    values.update(overrides)
    return AutomationSettings(**values)


class TestScheduledFireTime:
    def test_day_and_time(self):
        fire = scheduled_fire_time("2024-03", _automation(day_of_month=5, time_of_day="06:30"))
        assert fire == datetime(2024, 3, 5, 6, 30, tzinfo=UTC)

    @pytest.mark.parametrize(
        "period, expected_day",
        [("2024-02", 29), ("2023-02", 28), ("2024-04", 30), ("2024-01", 31)],
    )
    def test_day_past_month_end_clamped(self, period, expected_day):
        assert scheduled_fire_time(period, _automation(day_of_month=31)).day == expected_day


class TestShouldFire:
    def test_disabled_never_fires(self):
        now = datetime(2024, 3, 20, tzinfo=UTC)
        assert not should_fire(_automation(enabled=False), now)

    def test_before_fire_time(self):
        assert not should_fire(_automation(), datetime(2024, 3, 1, 1, 59, tzinfo=UTC))

    def test_at_fire_time(self):
        assert should_fire(_automation(), datetime(2024, 3, 1, 2, 0, tzinfo=UTC))

    def test_late_in_month_still_fires(self):
        assert should_fire(_automation(), datetime(2024, 3, 28, tzinfo=UTC))

    def test_once_per_period(self):
        last_run = datetime(2024, 3, 1, 2, 0, tzinfo=UTC)
        assert not should_fire(_automation(), last_run + timedelta(days=3), last_run)

    def test_fires_again_next_period(self):
        last_run = datetime(2024, 3, 1, 2, 0, tzinfo=UTC)
        assert should_fire(_automation(), datetime(2024, 4, 1, 2, 0, tzinfo=UTC), last_run)

    def test_naive_now_treated_as_utc(self):
        assert should_fire(_automation(), datetime(2024, 3, 1, 3, 0))

    def test_non_utc_now_converted(self):
        # 2024-03-01 01:00 UTC, before the fire time
        plus_two = timezone(timedelta(hours=2))
        assert not should_fire(_automation(), datetime(2024, 3, 1, 3, 0, tzinfo=plus_two))

    def test_time_parts(self):
        automation = _automation(time_of_day="23:45")
        assert (automation.hour, automation.minute) == (23, 45)
