from datetime import date, datetime, time

import pytest

from calendar_utils import (
    Urgency,
    classify_urgency,
    coerce_date,
    days_in_month,
    days_until,
    due_soon_limit,
    next_monthly_occurrence,
    suppression_start,
    urgency_label,
)


def test_days_in_month_handles_leap_years_and_december() -> None:
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 12) == 31
    assert days_in_month(2024, 4) == 30


def test_next_occurrence_clamps_to_short_month() -> None:
    due = next_monthly_occurrence(31, date(2024, 2, 15))

    assert due.date() == date(2024, 2, 29)
    assert due.time() == time.max


def test_next_occurrence_advances_once_the_day_has_passed() -> None:
    due = next_monthly_occurrence(31, datetime(2024, 3, 1, 9, 0))

    assert due.date() == date(2024, 3, 31)


def test_next_occurrence_picks_this_or_next_month() -> None:
    assert next_monthly_occurrence(29, date(2024, 3, 1)).date() == date(2024, 3, 29)
    assert next_monthly_occurrence(10, date(2024, 3, 11)).date() == date(2024, 4, 10)


def test_next_occurrence_today_counts_until_end_of_day() -> None:
    due = next_monthly_occurrence(15, datetime(2024, 6, 15, 23, 30))

    assert due.date() == date(2024, 6, 15)


def test_next_occurrence_rolls_december_into_january() -> None:
    due = next_monthly_occurrence(5, date(2024, 12, 20))

    assert due.date() == date(2025, 1, 5)


@pytest.mark.parametrize("day", [0, 32, -1])
def test_next_occurrence_rejects_out_of_range_day(day: int) -> None:
    with pytest.raises(ValueError):
        next_monthly_occurrence(day, date(2024, 1, 1))


def test_days_until_ignores_time_of_day() -> None:
    now = datetime(2024, 5, 10, 22, 0)

    assert days_until(date(2024, 5, 10), now) == 0
    assert days_until(datetime(2024, 5, 12, 1, 0), now) == 2
    assert days_until(date(2024, 5, 7), now) == -3


@pytest.mark.parametrize(
    "days, expected",
    [
        (-400, Urgency.overdue),
        (-1, Urgency.overdue),
        (0, Urgency.due_today),
        (1, Urgency.due_soon),
        (7, Urgency.due_soon),
        (8, Urgency.scheduled),
        (10_000, Urgency.scheduled),
    ],
)
def test_classify_urgency_boundaries(days: int, expected: Urgency) -> None:
    assert classify_urgency(days) == expected


def test_urgency_labels() -> None:
    assert urgency_label(-3) == "3d Overdue"
    assert urgency_label(0) == "Due Today"
    assert urgency_label(12) == "Due in 12d"


def test_coerce_date_accepts_common_shapes() -> None:
    assert coerce_date(date(2024, 1, 2)) == date(2024, 1, 2)
    assert coerce_date(datetime(2024, 1, 2, 15, 0)) == date(2024, 1, 2)
    assert coerce_date("2024-01-02") == date(2024, 1, 2)
    assert coerce_date("2024-01-02T08:30:00Z") == date(2024, 1, 2)


@pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2024-13-01", 42])
def test_coerce_date_rejects_garbage(value) -> None:
    assert coerce_date(value) is None


def test_windows_are_relative_to_now() -> None:
    now = datetime(2024, 3, 1, 12, 0)

    assert due_soon_limit(now) == datetime(2024, 3, 31, 12, 0)
    assert suppression_start(now) == date(2024, 2, 2)
