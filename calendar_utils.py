from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

DUE_SOON_DAYS = 30
SUPPRESSION_DAYS = 28
URGENT_DAYS = 7

DateLike = Union[date, datetime, str, None]


class Urgency(str, Enum):
    overdue = "overdue"
    due_today = "due_today"
    due_soon = "due_soon"
    scheduled = "scheduled"


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def as_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def coerce_date(value: DateLike) -> Optional[date]:
    """Best-effort conversion to a calendar date.

    Accepts dates, datetimes and ISO-8601 strings (a time part is ignored).
    Returns None for anything missing or unparseable so callers can drop the
    record instead of failing.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _clamped(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, days_in_month(year, month)))


def next_monthly_occurrence(day: int, now: Union[date, datetime]) -> datetime:
    """Next end-of-day instant, today or later, falling on ``day`` of a month.

    Short months clamp ``day`` to their last day, so 31 in February lands on
    the 28th or 29th.
    """
    if not 1 <= day <= 31:
        raise ValueError(f"Day of month must be between 1 and 31, got {day}")
    today = coerce_date(now)
    candidate = _clamped(today.year, today.month, day)
    if end_of_day(candidate) < as_datetime(now):
        if today.month == 12:
            candidate = _clamped(today.year + 1, 1, day)
        else:
            candidate = _clamped(today.year, today.month + 1, day)
    return end_of_day(candidate)


def days_until(due: Union[date, datetime], now: Union[date, datetime]) -> int:
    return (coerce_date(due) - coerce_date(now)).days


def classify_urgency(days: int) -> Urgency:
    if days < 0:
        return Urgency.overdue
    if days == 0:
        return Urgency.due_today
    if days <= URGENT_DAYS:
        return Urgency.due_soon
    return Urgency.scheduled


def urgency_label(days: int) -> str:
    urgency = classify_urgency(days)
    if urgency == Urgency.overdue:
        return f"{abs(days)}d Overdue"
    if urgency == Urgency.due_today:
        return "Due Today"
    return f"Due in {days}d"


def due_soon_limit(now: Union[date, datetime]) -> datetime:
    return as_datetime(now) + timedelta(days=DUE_SOON_DAYS)


def suppression_start(now: Union[date, datetime]) -> date:
    return coerce_date(now) - timedelta(days=SUPPRESSION_DAYS)
