"""Recurring activity expansion.

Pure functions only: no database or clock access, so the same template
always expands to the same occurrences.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Protocol

DAILY = "DAILY"
WEEKLY = "WEEKLY"
MONTHLY = "MONTHLY"

_FIXED_STEPS = {
    DAILY: timedelta(days=1),
    WEEKLY: timedelta(days=7),
}


def add_months(anchor: date, months: int) -> date:
    """Shift by whole calendar months, clamping to the target month's last day."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def expand_dates(start: date, end: date, recurrence_type: str | None) -> list[date]:
    """Occurrence dates from ``start`` through ``end`` inclusive.

    MONTHLY occurrences are computed from the start date's day-of-month, so a
    series anchored on the 31st lands on every month end and returns to the
    31st whenever the month has one. An unknown recurrence type yields only
    the start date.
    """
    if end < start:
        return []

    if recurrence_type == MONTHLY:
        dates: list[date] = []
        index = 0
        current = start
        while current <= end:
            dates.append(current)
            index += 1
            current = add_months(start, index)
        return dates

    step = _FIXED_STEPS.get(recurrence_type or "")
    if step is None:
        return [start]

    dates = []
    current = start
    while current <= end:
        dates.append(current)
        current += step
    return dates


def at_time_of_day(day: date, template: datetime) -> datetime:
    return datetime.combine(day, time(template.hour, template.minute), tzinfo=template.tzinfo)


def occurrence_times(day: date, start_time: datetime, end_time: datetime | None) -> tuple[datetime, datetime | None]:
    """Start/end timestamps for one occurrence, keeping the template's hour and minute."""
    occurrence_start = at_time_of_day(day, start_time)
    occurrence_end = at_time_of_day(day, end_time) if end_time is not None else None
    return occurrence_start, occurrence_end


class _SeriesMember(Protocol):
    id: str
    title: str
    program_id: str
    points: int
    recurrence_type: str | None
    is_recurring: bool
    activity_date: date


@dataclass
class ActivitySeries:
    title: str
    program_id: str
    points: int
    recurrence_type: str | None
    activity_ids: list[str] = field(default_factory=list)
    dates: list[date] = field(default_factory=list)

    @property
    def occurrences(self) -> int:
        return len(self.activity_ids)


def series_key(activity: _SeriesMember) -> tuple[str, str, int, str | None]:
    return (activity.title, activity.program_id, activity.points, activity.recurrence_type)


def group_series(activities: Iterable[_SeriesMember]) -> list[ActivitySeries]:
    """Regroup independent recurring rows by (title, program_id, points, recurrence_type).

    Non-recurring rows are skipped. Groups keep first-seen order.
    """
    groups: dict[tuple[str, str, int, str | None], ActivitySeries] = {}
    for activity in activities:
        if not activity.is_recurring:
            continue
        key = series_key(activity)
        series = groups.get(key)
        if series is None:
            series = ActivitySeries(
                title=activity.title,
                program_id=activity.program_id,
                points=activity.points,
                recurrence_type=activity.recurrence_type,
            )
            groups[key] = series
        series.activity_ids.append(activity.id)
        series.dates.append(activity.activity_date)
    return list(groups.values())
