"""Time gates that decide whether a When entry may be evaluated now.

Two gating modes exist:
- schedule: a five-field cron expression; eligible when the cron tick for
  the current minute has arrived (tolerating ~2 minutes of poll jitter)
- day gates: day_of_month, day_of_month_range, days_of_week and
  nth_weekday, AND-combined; empty gates are vacuously true

A schedule always wins over day gates. Unparseable schedules and
nth_weekday values make the gate "never eligible" instead of failing the
evaluation cycle.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from croniter import CroniterError, croniter

from ynab_alerts.errors import InvalidNthWeekdayError, InvalidScheduleError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ynab_alerts.rules.schema import When

logger = logging.getLogger(__name__)

# How far back the schedule gate looks for the current cron tick.
SCHEDULE_TOLERANCE = timedelta(minutes=2)

# Python weekday numbers (Monday=0)
WEEKDAYS: dict[str, int] = {
    "mon": 0,
    "monday": 0,
    "tue": 1,
    "tues": 1,
    "tuesday": 1,
    "wed": 2,
    "wednesday": 2,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "thursday": 3,
    "fri": 4,
    "friday": 4,
    "sat": 5,
    "saturday": 5,
    "sun": 6,
    "sunday": 6,
}


@dataclass(frozen=True)
class NthWeekday:
    """Parsed nth_weekday value.

    Attributes:
        n: 1-based occurrence within the month (0 when last is set).
        weekday: Python weekday number (Monday=0).
        last: Match the last occurrence of the weekday in the month.
    """

    n: int
    weekday: int
    last: bool = False


def parse_weekday(name: str) -> int | None:
    """Map a weekday name or abbreviation to a Python weekday number."""
    return WEEKDAYS.get(name.strip().lower())


def days_in_month(day: date) -> int:
    """Number of days in the month containing ``day``."""
    return calendar.monthrange(day.year, day.month)[1]


def matches_day_of_month(days: Iterable[int], today: int, month_length: int) -> bool:
    """Check a day_of_month gate.

    Positive values match the day number directly; negative values count
    back from the month end (-1 is the last day).
    """
    days = list(days)
    if not days:
        return True
    for d in days:
        if d > 0 and d == today:
            return True
        if d < 0 and month_length + d + 1 == today:
            return True
    return False


def parse_day_range(text: str) -> tuple[int, int] | None:
    """Parse a "start-end" day range, or return None if malformed."""
    parts = text.strip().split("-")
    if len(parts) != 2:
        return None
    try:
        start = int(parts[0].strip())
        end = int(parts[1].strip())
    except ValueError:
        return None
    return start, end


def matches_day_of_month_range(ranges: Iterable[str], today: int) -> bool:
    """Check a day_of_month_range gate.

    A range with start > end wraps across the month boundary, so "27-5"
    covers 27..end-of-month and 1..5. Malformed ranges never match.
    """
    ranges = list(ranges)
    if not ranges:
        return True
    for text in ranges:
        parsed = parse_day_range(text)
        if parsed is None:
            continue
        start, end = parsed
        if start <= end:
            if start <= today <= end:
                return True
        elif today >= start or today <= end:
            return True
    return False


def matches_days_of_week(names: Iterable[str], weekday: int) -> bool:
    """Check a days_of_week gate. Unknown names never match."""
    names = list(names)
    if not names:
        return True
    return any(parse_weekday(name) == weekday for name in names)


def parse_nth_weekday(value: str) -> NthWeekday:
    """Parse "<n|last> <weekday>".

    Raises:
        InvalidNthWeekdayError: If the value is malformed.
    """
    parts = value.lower().split()
    if len(parts) != 2:
        raise InvalidNthWeekdayError(value)
    nth, day_name = parts

    weekday = WEEKDAYS.get(day_name)
    if weekday is None:
        raise InvalidNthWeekdayError(value)

    if nth == "last":
        return NthWeekday(n=0, weekday=weekday, last=True)

    try:
        n = int(nth)
    except ValueError:
        raise InvalidNthWeekdayError(value) from None
    if n < 1:
        raise InvalidNthWeekdayError(value)
    return NthWeekday(n=n, weekday=weekday)


def matches_nth_weekday(value: str, day: date) -> bool:
    """Check an nth_weekday gate for a calendar day.

    An empty value is vacuously true; an unparseable value never matches.
    """
    if not value:
        return True
    try:
        nth = parse_nth_weekday(value)
    except InvalidNthWeekdayError:
        logger.debug("Ignoring invalid nth_weekday %r", value)
        return False

    month_length = days_in_month(day)
    matches = [
        d
        for d in range(1, month_length + 1)
        if date(day.year, day.month, d).weekday() == nth.weekday
    ]
    if not matches:
        return False
    if nth.last:
        return day.day == matches[-1]
    if len(matches) >= nth.n:
        return day.day == matches[nth.n - 1]
    return False


def parse_schedule(expression: str, start: datetime) -> croniter:
    """Build a cron iterator for a five-field expression.

    Raises:
        InvalidScheduleError: If the expression cannot be parsed.
    """
    text = expression.strip()
    if not text.startswith("@") and len(text.split()) != 5:
        raise InvalidScheduleError(
            expression, f"expected exactly 5 fields, found {len(text.split())}"
        )
    try:
        return croniter(text, start)
    except (CroniterError, ValueError, KeyError) as e:
        raise InvalidScheduleError(expression, str(e)) from e


def next_schedule_time(expression: str, after: datetime) -> datetime:
    """Return the first scheduled instant strictly after ``after``.

    Raises:
        InvalidScheduleError: If the expression cannot be parsed or has no
            future occurrence.
    """
    schedule = parse_schedule(expression, after)
    try:
        return schedule.get_next(datetime)
    except (CroniterError, ValueError) as e:
        raise InvalidScheduleError(expression, str(e)) from e


def same_minute(a: datetime, b: datetime) -> bool:
    """Whether two instants fall in the same calendar minute."""
    return a.replace(second=0, microsecond=0) == b.replace(second=0, microsecond=0)


def schedule_due(expression: str, now: datetime) -> bool:
    """Check whether the cron tick for the current minute has arrived."""
    try:
        tick = next_schedule_time(expression, now - SCHEDULE_TOLERANCE)
    except InvalidScheduleError as e:
        logger.debug("Schedule never eligible: %s", e)
        return False
    return same_minute(tick, now)


def matches_day_gates(when: When, day: datetime | date) -> bool:
    """AND-combine all configured day gates for a calendar day."""
    month_length = days_in_month(day)
    return (
        matches_day_of_month(when.day_of_month, day.day, month_length)
        and matches_day_of_month_range(when.day_of_month_range, day.day)
        and matches_days_of_week(when.days_of_week, day.weekday())
        and matches_nth_weekday(when.nth_weekday, day)
    )


def is_eligible(when: When, now: datetime) -> bool:
    """Decide whether a When entry may be evaluated at ``now``.

    A schedule, when present, decides alone; otherwise all non-empty day
    gates must match. A When with no gates is always eligible.
    """
    if when.schedule:
        return schedule_due(when.schedule, now)
    return matches_day_gates(when, now)
