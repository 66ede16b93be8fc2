"""Calendar stepping for recurring maintenance schedules.

Month and year steps use ``relativedelta``, which clamps to the last valid day
of the target month: Jan 31 + monthly is Feb 28 (Feb 29 in leap years) and
Feb 29 + yearly is Feb 28. The same rule applies to every month-based step.
"""

from __future__ import annotations

from datetime import datetime

from dateutil.relativedelta import relativedelta

from maintenance_hub.domain.models import Frequency

RECURRENCE_STEPS: dict[Frequency, relativedelta] = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}


def is_recurring(frequency: Frequency | str | None) -> bool:
    return frequency is not None and frequency != Frequency.ONCE


def advance(current: datetime, frequency: Frequency | str | None) -> datetime | None:
    """Return the next occurrence after ``current``, or ``None`` for one-off schedules."""
    if frequency is None:
        return None
    try:
        step = RECURRENCE_STEPS.get(Frequency(frequency))
    except ValueError:
        return None
    if step is None:
        return None
    return current + step
