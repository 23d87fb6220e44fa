"""
Cycle Period Arithmetic
Maps a calendar date onto the raffle's 4-month quarters
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from .config import MONTHS_PER_QUARTER


@dataclass(frozen=True)
class CyclePeriod:
    """Where a (year, month) sits inside its quarter. month is 0-indexed."""
    year: int
    month: int
    quarter: int
    start_month: int
    is_first_month: bool
    is_last_month: bool

    @property
    def raffle_period(self) -> date:
        return raffle_period_date(self.year, self.month)

    @property
    def month_name(self) -> str:
        return calendar.month_name[self.month + 1]


def resolve_period(as_of) -> CyclePeriod:
    """
    Resolve the cycle period for a date

    Quarters are MONTHS_PER_QUARTER long, so with the default of 4 they start
    in January, May and September (months 0, 4 and 8).

    Args:
        as_of: date or datetime the caller considers "now"

    Returns:
        CyclePeriod
    """
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    month = as_of.month - 1
    quarter = month // MONTHS_PER_QUARTER
    start_month = quarter * MONTHS_PER_QUARTER
    return CyclePeriod(
        year=as_of.year,
        month=month,
        quarter=quarter,
        start_month=start_month,
        is_first_month=month == start_month,
        is_last_month=month == start_month + MONTHS_PER_QUARTER - 1,
    )


def period_for(year: int, month: int) -> CyclePeriod:
    """Same as resolve_period but from a 0-indexed (year, month) pair"""
    if not 0 <= month <= 11:
        raise ValueError(f"month must be between 0 and 11, got {month}")
    return resolve_period(date(year, month + 1, 1))


def preceding_months(period: CyclePeriod) -> List[int]:
    """Earlier months of the same quarter, nearest first"""
    return list(range(period.month - 1, period.start_month - 1, -1))


def raffle_period_date(year: int, month: int) -> date:
    """First-of-month date that tags winner rows for a cycle"""
    return date(year, month + 1, 1)


def month_name(month: int) -> str:
    return calendar.month_name[month + 1]


def today(as_of: Optional[date] = None) -> date:
    """Callers pass as_of explicitly; the wall clock is only read here"""
    if as_of is None:
        return date.today()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of
