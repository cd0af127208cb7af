from datetime import date, datetime, timezone

import pytest

from retail_dashboard.domain.errors import InvalidFilterError
from retail_dashboard.domain.time_window import TimeWindow
from tests.factories import BUSINESS_TZ


def test_requires_timezone_aware_now():
    with pytest.raises(ValueError):
        TimeWindow(now=datetime(2024, 5, 15, 12, 0))


def test_month_boundaries(window):
    assert window.start_of_month() == datetime(2024, 5, 1, tzinfo=BUSINESS_TZ)
    assert window.start_of_month(-1) == datetime(2024, 4, 1, tzinfo=BUSINESS_TZ)
    assert window.end_of_month() == datetime(2024, 5, 31, 23, 59, 59, 999999, tzinfo=BUSINESS_TZ)
    assert window.end_of_month(-1).date() == date(2024, 4, 30)


def test_previous_month_crosses_year():
    january = TimeWindow(now=datetime(2024, 1, 10, 8, 0, tzinfo=BUSINESS_TZ))
    assert january.start_of_month(-1) == datetime(2023, 12, 1, tzinfo=BUSINESS_TZ)
    assert january.month_range(-1)[1] == datetime(2024, 1, 1, tzinfo=BUSINESS_TZ)


def test_month_range_is_half_open(window):
    start, end = window.month_range()
    assert window.within(datetime(2024, 5, 1, 0, 0), start, end)
    assert window.within(datetime(2024, 5, 31, 23, 59), start, end)
    assert not window.within(datetime(2024, 6, 1, 0, 0), start, end)
    assert not window.within(datetime(2024, 4, 30, 23, 59), start, end)


def test_last_n_days_oldest_first(window):
    days = window.last_n_days(7)
    assert days[0] == date(2024, 5, 9)
    assert days[-1] == date(2024, 5, 15)
    assert len(days) == 7
    assert window.last_n_days(0) == []


def test_days_between_floors_whole_days():
    start = datetime(2024, 5, 1, 10, 0, tzinfo=BUSINESS_TZ)
    assert TimeWindow.days_between(start, datetime(2024, 5, 3, 9, 59, tzinfo=BUSINESS_TZ)) == 1
    assert TimeWindow.days_between(start, datetime(2024, 5, 3, 10, 0, tzinfo=BUSINESS_TZ)) == 2
    assert TimeWindow.days_between(date(2024, 5, 3), date(2024, 5, 1)) == -2


def test_days_between_rejects_mixed_awareness():
    with pytest.raises(ValueError):
        TimeWindow.days_between(datetime(2024, 5, 1), datetime(2024, 5, 2, tzinfo=BUSINESS_TZ))


def test_local_day_uses_business_zone(window):
    # 02:00 UTC ainda é o dia anterior em Assunção
    assert window.local_day(datetime(2024, 5, 16, 2, 0, tzinfo=timezone.utc)) == date(2024, 5, 15)
    assert window.local_day(datetime(2024, 5, 16, 2, 0)) == date(2024, 5, 16)


def test_period_ranges(window):
    assert window.period_range("today") == (
        datetime(2024, 5, 15, tzinfo=BUSINESS_TZ),
        datetime(2024, 5, 16, tzinfo=BUSINESS_TZ),
    )
    assert window.period_range("week")[0] == datetime(2024, 5, 9, tzinfo=BUSINESS_TZ)
    assert window.period_range("month") == window.month_range()
    assert window.period_range("year") == (
        datetime(2024, 1, 1, tzinfo=BUSINESS_TZ),
        datetime(2025, 1, 1, tzinfo=BUSINESS_TZ),
    )
    with pytest.raises(InvalidFilterError):
        window.period_range("decade")


def test_period_days(window):
    assert window.period_days("today") == [date(2024, 5, 15)]
    assert len(window.period_days("week")) == 7
    month = window.period_days("month")
    assert month[0] == date(2024, 5, 1) and month[-1] == date(2024, 5, 15)
    assert window.period_days("year")[0] == date(2024, 1, 1)


def test_overdue_and_new_product(window):
    assert window.is_overdue(datetime(2024, 5, 13, 14, 0))
    assert not window.is_overdue(datetime(2024, 5, 13, 15, 0))
    assert window.is_new_product(datetime(2024, 4, 25, 12, 0))
    assert not window.is_new_product(datetime(2024, 4, 20, 12, 0))
    assert not window.is_new_product(None)
