# carteira/utils/date_utils.py
"""
Date helpers shared by the calendar, fixed-income and portfolio services.

Usage:
    from carteira.utils.date_utils import iter_days, evolution_dates
"""

from collections.abc import Iterator
from datetime import date, timedelta


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """
    Yield every calendar day in the half-open range [start_date, end_date).

    Yields nothing when end_date <= start_date.
    """
    current = start_date
    while current < end_date:
        yield current
        current += timedelta(days=1)


def is_weekend(d: date) -> bool:
    """Saturday (5) or Sunday (6)."""
    return d.weekday() >= 5


def first_of_month(d: date) -> date:
    return d.replace(day=1)


def add_months(d: date, months: int) -> date:
    """
    Shift a first-of-month date by a number of months (may be negative).

    Only defined for day=1 inputs, which is all the callers need.
    """
    month_index = d.year * 12 + (d.month - 1) + months
    return date(month_index // 12, month_index % 12 + 1, 1)


def evolution_dates(today: date, months: int) -> list[date]:
    """
    Snapshot dates for an evolution series.

    The first day of each of the last ``months`` months (the current month
    included), oldest first, followed by ``today`` unless today is already
    the first of the month.

    Example:
        >>> evolution_dates(date(2024, 3, 15), 3)
        [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1), date(2024, 3, 15)]
    """
    current_month = first_of_month(today)
    dates = [add_months(current_month, -offset) for offset in range(months - 1, -1, -1)]
    if today != current_month:
        dates.append(today)
    return dates


def calendar_days_between(start_date: date, end_date: date) -> int:
    """Signed number of calendar days from start_date to end_date."""
    return (end_date - start_date).days
