"""Month coverage of installment plans"""

from datetime import date
from typing import Optional, Tuple

from billfold.utils.date_utils import add_months


def month_diff(first: date, year: int, month: int) -> int:
    """Whole calendar months from `first`'s month to (year, month); day of month is ignored"""
    return (year - first.year) * 12 + (month - first.month)


def installment_number(first_installment_date: date, installments: int, year: int, month: int) -> Optional[int]:
    """
    Installment (1-based) charged in the given month, or None if the plan
    does not cover it.

    Querying before the first installment or after the last one is not an
    error, it is simply not covered.
    """
    diff = month_diff(first_installment_date, year, month)
    if 0 <= diff < installments:
        return diff + 1
    return None


def is_covered(first_installment_date: date, installments: int, year: int, month: int) -> bool:
    return installment_number(first_installment_date, installments, year, month) is not None


def coverage_window(first_installment_date: date, installments: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """First and last (year, month) a plan is charged in"""
    start = (first_installment_date.year, first_installment_date.month)
    return start, add_months(*start, installments - 1)
