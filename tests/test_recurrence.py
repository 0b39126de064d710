from datetime import UTC, date, datetime, timedelta, timezone
from types import SimpleNamespace

from ardn.services.recurrence import add_months, expand_dates, group_series, occurrence_times


def test_daily_expansion_includes_both_ends():
    dates = expand_dates(date(2026, 1, 1), date(2026, 1, 5), "DAILY")
    assert dates == [date(2026, 1, day) for day in range(1, 6)]


def test_weekly_expansion_stops_before_end():
    dates = expand_dates(date(2026, 1, 1), date(2026, 1, 20), "WEEKLY")
    assert dates == [date(2026, 1, 1), date(2026, 1, 8), date(2026, 1, 15)]


def test_monthly_expansion_clamps_to_month_end_and_returns_to_anchor_day():
    dates = expand_dates(date(2024, 1, 31), date(2024, 4, 30), "MONTHLY")
    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_monthly_expansion_crosses_year_boundary():
    dates = expand_dates(date(2025, 11, 15), date(2026, 2, 15), "MONTHLY")
    assert dates == [date(2025, 11, 15), date(2025, 12, 15), date(2026, 1, 15), date(2026, 2, 15)]


def test_add_months_non_leap_february():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)


def test_single_day_range_yields_one_occurrence():
    assert expand_dates(date(2026, 5, 1), date(2026, 5, 1), "WEEKLY") == [date(2026, 5, 1)]


def test_end_before_start_yields_nothing():
    assert expand_dates(date(2026, 5, 2), date(2026, 5, 1), "DAILY") == []


def test_unknown_recurrence_type_yields_start_only():
    assert expand_dates(date(2026, 5, 1), date(2026, 5, 10), "YEARLY") == [date(2026, 5, 1)]


def test_occurrence_times_keep_hour_minute_and_zone():
    tz = timezone(timedelta(hours=3))
    start = datetime(2026, 1, 1, 6, 30, 45, tzinfo=tz)
    end = datetime(2026, 1, 1, 7, 15, tzinfo=tz)

    occurrence_start, occurrence_end = occurrence_times(date(2026, 1, 8), start, end)

    assert occurrence_start == datetime(2026, 1, 8, 6, 30, tzinfo=tz)
    assert occurrence_end == datetime(2026, 1, 8, 7, 15, tzinfo=tz)


def test_occurrence_without_end_time():
    start = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)
    assert occurrence_times(date(2026, 1, 2), start, None) == (datetime(2026, 1, 2, 9, 0, tzinfo=UTC), None)


def _row(activity_id, title, day, recurring=True, points=10, recurrence_type="DAILY", program_id="p1"):
    return SimpleNamespace(
        id=activity_id,
        title=title,
        program_id=program_id,
        points=points,
        recurrence_type=recurrence_type if recurring else None,
        is_recurring=recurring,
        activity_date=day,
    )


def test_group_series_regroups_by_template_fields():
    rows = [
        _row("a1", "Namaz", date(2026, 1, 1)),
        _row("b1", "Okuma", date(2026, 1, 1), recurrence_type="WEEKLY"),
        _row("a2", "Namaz", date(2026, 1, 2)),
        _row("c1", "Tek", date(2026, 1, 1), recurring=False),
        _row("a3", "Namaz", date(2026, 1, 3), points=20),
    ]

    series = group_series(rows)

    assert [item.title for item in series] == ["Namaz", "Okuma", "Namaz"]
    assert series[0].activity_ids == ["a1", "a2"]
    assert series[0].occurrences == 2
    assert series[0].dates == [date(2026, 1, 1), date(2026, 1, 2)]
    assert series[2].points == 20


def test_weekly_september_series():
    dates = expand_dates(date(2024, 9, 1), date(2024, 9, 30), "WEEKLY")
    assert [day.day for day in dates] == [1, 8, 15, 22, 29]
