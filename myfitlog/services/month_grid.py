"""Month-grid construction for the exercise calendar.

The grid starts on the first day of the week that contains the 1st of the
month and ends on the last day of the month. Only the leading edge is padded
with days from the previous month.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from myfitlog.core.config import get_settings

# Python weekday numbering (Monday=0 ... Sunday=6)
MONDAY = 0
SUNDAY = 6

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class CalendarCell:
    """A single day rendered in the month view."""

    date: date
    in_current_month: bool
    is_selected: bool
    has_record: bool


def as_calendar_date(value: date | datetime) -> date:
    """Drop the time of day from a datetime; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def local_today() -> date:
    """Today's date in the configured application timezone."""
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def end_of_month(day: date) -> date:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=last)


def start_of_week(day: date, week_starts_on: int = SUNDAY) -> date:
    """Return the first day of the 7-day week containing `day`."""
    offset = (day.weekday() - week_starts_on) % DAYS_PER_WEEK
    return day - timedelta(days=offset)


def add_months(day: date, months: int) -> date:
    """Shift by whole calendar months, clamping the day to the target month.

    Jan 31 + 1 month is Feb 28 (or 29), never a day in March.
    """
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def next_month(reference: date) -> date:
    return add_months(as_calendar_date(reference), 1)


def previous_month(reference: date) -> date:
    return add_months(as_calendar_date(reference), -1)


def build_month_grid(
    reference_date: date | datetime,
    selected_date: date | datetime,
    has_record_on_date: Callable[[date], bool],
    week_starts_on: int = SUNDAY,
) -> list[CalendarCell]:
    """Build the ordered cells for the month containing `reference_date`.

    Args:
        reference_date: Any day (or datetime) in the month to render.
        selected_date: The user's selected day; time of day is ignored.
        has_record_on_date: Predicate telling whether a day has saved records.
        week_starts_on: Weekday the grid's rows begin on (default Sunday).

    Returns:
        One cell per day from the start of the first week through the last
        day of the month, in ascending date order.
    """
    reference = as_calendar_date(reference_date)
    selected = as_calendar_date(selected_date)

    first = start_of_month(reference)
    current = start_of_week(first, week_starts_on)
    last = end_of_month(reference)

    cells: list[CalendarCell] = []
    while current <= last:
        cells.append(
            CalendarCell(
                date=current,
                in_current_month=(current.year, current.month) == (first.year, first.month),
                is_selected=current == selected,
                has_record=has_record_on_date(current),
            )
        )
        current += timedelta(days=1)
    return cells
