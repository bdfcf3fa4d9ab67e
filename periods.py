from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    @property
    def is_unbounded(self) -> bool:
        return self.slug == "all"

    def contains(self, day: date) -> bool:
        if self.is_unbounded:
            return True
        return self.start <= day <= self.end


def _month_end(first: date) -> date:
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: date,
) -> Period:
    # "all" carries nominal bounds for display; it never filters, so
    # future-dated entries stay visible
    if not period or period == "all":
        return Period("all", date(1970, 1, 1), today)
    if period == "last_month":
        last_month_end = today.replace(day=1) - date.resolution
        return Period("last_month", last_month_end.replace(day=1), last_month_end)
    if period == "this_year":
        return Period("this_year", date(today.year, 1, 1), date(today.year, 12, 31))
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period == "this_month":
        first = today.replace(day=1)
        return Period("this_month", first, _month_end(first))
    raise ValueError(f"Unknown period: {period}")
