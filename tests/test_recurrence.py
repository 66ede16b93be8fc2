from __future__ import annotations

from datetime import UTC, datetime

import pytest
from dateutil.relativedelta import relativedelta

from maintenance_hub.domain.models import Frequency
from maintenance_hub.domain.recurrence import RECURRENCE_STEPS, advance, is_recurring

SAMPLE_DATES = (
    datetime(2024, 1, 1, 8, 0, tzinfo=UTC),
    datetime(2024, 2, 29, 23, 30, tzinfo=UTC),
    datetime(2023, 12, 31, 12, 0, tzinfo=UTC),
    datetime(2024, 5, 15, 0, 0, tzinfo=UTC),
)


@pytest.mark.parametrize("frequency", list(RECURRENCE_STEPS))
@pytest.mark.parametrize("start", SAMPLE_DATES)
def test_advance_moves_forward_and_repeats_consistently(frequency: Frequency, start: datetime) -> None:
    step = RECURRENCE_STEPS[frequency]
    once = advance(start, frequency)
    twice = advance(once, frequency) if once is not None else None

    assert once is not None
    assert once > start
    assert twice == once + step


@pytest.mark.parametrize("start", SAMPLE_DATES)
def test_advance_once_has_no_next_occurrence(start: datetime) -> None:
    assert advance(start, Frequency.ONCE) is None
    assert advance(start, None) is None
    assert advance(start, "fortnightly") is None


def test_weekly_step_from_new_year() -> None:
    assert advance(datetime(2024, 1, 1, tzinfo=UTC), Frequency.WEEKLY) == datetime(2024, 1, 8, tzinfo=UTC)


def test_daily_and_yearly_steps() -> None:
    start = datetime(2024, 3, 10, 9, 15, tzinfo=UTC)
    assert advance(start, Frequency.DAILY) == datetime(2024, 3, 11, 9, 15, tzinfo=UTC)
    assert advance(start, Frequency.YEARLY) == datetime(2025, 3, 10, 9, 15, tzinfo=UTC)


def test_month_end_is_clamped() -> None:
    assert advance(datetime(2024, 1, 31, tzinfo=UTC), Frequency.MONTHLY) == datetime(2024, 2, 29, tzinfo=UTC)
    assert advance(datetime(2023, 1, 31, tzinfo=UTC), Frequency.MONTHLY) == datetime(2023, 2, 28, tzinfo=UTC)
    assert advance(datetime(2024, 11, 30, tzinfo=UTC), Frequency.QUARTERLY) == datetime(2025, 2, 28, tzinfo=UTC)
    assert advance(datetime(2024, 2, 29, tzinfo=UTC), Frequency.YEARLY) == datetime(2025, 2, 28, tzinfo=UTC)


def test_quarterly_is_three_calendar_months() -> None:
    start = datetime(2024, 4, 15, tzinfo=UTC)
    assert advance(start, Frequency.QUARTERLY) == start + relativedelta(months=3)


def test_is_recurring() -> None:
    assert not is_recurring(Frequency.ONCE)
    assert not is_recurring(None)
    assert all(is_recurring(item) for item in RECURRENCE_STEPS)
