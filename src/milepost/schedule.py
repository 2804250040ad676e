"""Turn an interval and an advance window into milestone descriptors.

Weeks run Monday through Sunday (ISO weeks). Weekly and monthly buckets are
clipped to the window, so the first and last bucket may cover fewer days than
a full week or month.
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Dict, List, Union

from .errors import InvalidInterval, InvalidWindow
from .models import MilestoneDescriptor

# Fixed names keep titles independent of the host locale.
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class Interval(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Union[str, "Interval"]) -> "Interval":
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise InvalidInterval(value)


def daily_title(day: date) -> str:
    return day.isoformat()


def weekly_title(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-w{iso_week:02d}"


def monthly_title(day: date) -> str:
    return f"{day.year}-{MONTH_NAMES[day.month - 1]}"


def _day_end(day: date) -> date:
    return day


def _week_end(day: date) -> date:
    return day + timedelta(days=6 - day.weekday())


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


_BUCKETS: Dict[Interval, tuple[Callable[[date], date], Callable[[date], str]]] = {
    Interval.DAILY: (_day_end, daily_title),
    Interval.WEEKLY: (_week_end, weekly_title),
    Interval.MONTHLY: (_month_end, monthly_title),
}


def window_end(advance_days: int, reference_date: date) -> date:
    if advance_days < 0:
        raise InvalidWindow(advance_days)
    return reference_date + timedelta(days=advance_days)


def generate_descriptors(
    interval: Union[str, Interval],
    advance_days: int,
    reference_date: date,
) -> List[MilestoneDescriptor]:
    """Return the milestones covering ``reference_date`` .. ``reference_date + advance_days``.

    The result is ordered by start date, every title is unique, and the
    buckets tile the window without gaps or overlaps.
    """
    kind = Interval.parse(interval)
    last_day = window_end(advance_days, reference_date)
    period_end, make_title = _BUCKETS[kind]

    descriptors: List[MilestoneDescriptor] = []
    start = reference_date
    while start <= last_day:
        due = min(period_end(start), last_day)
        descriptors.append(MilestoneDescriptor(title=make_title(start), start_date=start, due_date=due))
        start = due + timedelta(days=1)
    return descriptors
