"""
Lag arithmetic.

Lag is counted in whole days added to a reference date. Without a project
calendar every day counts; a ``WorkingCalendar`` skips non-working weekdays
and holidays.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Protocol


class LagCalendar(Protocol):
    def shift(self, moment: datetime, days: int) -> datetime: ...


class CalendarDays:
    """Plain calendar-day arithmetic."""

    def shift(self, moment: datetime, days: int) -> datetime:
        return moment + timedelta(days=days)


class WorkingCalendar:
    """
    Working-day calendar.

    ``working_days`` uses ISO weekday numbers (1 = Monday ... 7 = Sunday);
    the default is Monday to Friday.
    """

    def __init__(
        self,
        working_days: Iterable[int] = (1, 2, 3, 4, 5),
        holidays: Iterable[date] = (),
    ):
        self.working_days = frozenset(working_days)
        if not self.working_days:
            raise ValueError("A working calendar needs at least one working weekday")
        bad = [d for d in self.working_days if d < 1 or d > 7]
        if bad:
            raise ValueError(f"Invalid ISO weekday numbers: {sorted(bad)}")
        self.holidays = frozenset(holidays)

    def is_working_day(self, day: date) -> bool:
        if isinstance(day, datetime):
            day = day.date()
        return day.isoweekday() in self.working_days and day not in self.holidays

    def shift(self, moment: datetime, days: int) -> datetime:
        """Move ``moment`` by ``days`` working days, keeping the time of day."""
        step = timedelta(days=1 if days >= 0 else -1)
        remaining = abs(days)
        result = moment
        while remaining:
            result += step
            if self.is_working_day(result):
                remaining -= 1
        return result

    def working_days_between(self, start: date, end: date) -> int:
        """Inclusive count of working days from start to end."""
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        count = 0
        current = start
        while current <= end:
            if self.is_working_day(current):
                count += 1
            current += timedelta(days=1)
        return count
