"""Date manipulation utilities"""

import calendar
from datetime import date
from typing import Tuple


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by a signed number of months"""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month"""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def clamp_day(year: int, month: int, day: int) -> date:
    """Date for `day` in the given month, pulled back to the month's last day when it overflows"""
    return date(year, month, min(day, days_in_month(year, month)))
