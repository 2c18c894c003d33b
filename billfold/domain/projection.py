"""Month-to-date spending totals and end-of-month projection"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List

from billfold.domain.models import CENT, MonthBalance, MonthlyServicesTotal, MonthProjection, Transaction
from billfold.utils.date_utils import add_months, days_in_month, month_bounds

ZERO = Decimal("0")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def month_total(transactions: Iterable[Transaction], year: int, month: int) -> Decimal:
    start, end = month_bounds(year, month)
    return sum((t.amount for t in transactions if start <= t.date <= end), ZERO)


def weekly_average(total: Decimal, days_elapsed: int) -> Decimal:
    weeks = max(Decimal(1), Decimal(days_elapsed) / 7)
    return _money(total / weeks)


def project_spend(total: Decimal, days_elapsed: int, days_in_period: int) -> Decimal:
    """Linear projection of spend to the end of the period; 0 when no day has elapsed yet"""
    if days_elapsed <= 0:
        return ZERO
    return _money(total / days_elapsed * days_in_period)


def project_month(transactions: Iterable[Transaction], today: date) -> MonthProjection:
    """
    Spending so far this month, weekly average and a straight-line
    projection to month end. Only today's day of month is used.
    """
    transactions: List[Transaction] = list(transactions)
    days_elapsed = today.day
    month_days = days_in_month(today.year, today.month)
    total = month_total(transactions, today.year, today.month)
    prev_year, prev_month = add_months(today.year, today.month, -1)

    return MonthProjection(
        total_so_far=total,
        weekly_average=weekly_average(total, days_elapsed),
        projected_total=project_spend(total, days_elapsed, month_days),
        previous_month_total=month_total(transactions, prev_year, prev_month),
        days_elapsed=days_elapsed,
        days_in_month=month_days,
    )


def month_balance(
    income: Decimal,
    transactions: Iterable[Transaction],
    services: MonthlyServicesTotal,
    today: date,
    carry_over: Decimal = ZERO,
) -> MonthBalance:
    """
    Money still available this month.

    Recorded expenses are subtracted from income plus carried-over balance;
    recurring services not yet paid are subtracted at their estimate. Paid
    services are already among the recorded expenses.
    """
    total_income = Decimal(income) + Decimal(carry_over)
    total_expenses = month_total(transactions, today.year, today.month)
    gross = total_income - total_expenses
    pending = services.forecast_total
    balance = gross - pending
    days_remaining = days_in_month(today.year, today.month) - today.day + 1

    return MonthBalance(
        total_income=total_income,
        total_expenses=total_expenses,
        gross_balance=gross,
        pending_recurring=pending,
        paid_recurring=services.actual_total,
        balance=balance,
        days_remaining=days_remaining,
        available_daily=_money(balance / days_remaining) if balance > 0 else ZERO,
    )
