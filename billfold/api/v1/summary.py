"""GET /v1/summary - month-to-date totals, projection and available balance"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from billfold.api.v1.schemas import SummaryResponse
from billfold.api.dependencies import get_ledger, get_reconciliation
from billfold.domain.projection import month_balance, project_month
from billfold.domain.reconciliation import ReconciliationService
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.utils.date_utils import add_months, month_bounds

router = APIRouter()


@router.get("/summary", response_model=SummaryResponse)
def get_summary(
    income: Decimal = Query(Decimal("0"), ge=0, description="Income for the month"),
    today: Optional[date] = Query(None),
    ledger: SqlAlchemyLedger = Depends(get_ledger),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    """
    Dashboard figures for the month containing `today`.

    Income comes from the caller; carry-over from earlier month closes and
    the recurring-service forecast are added here.
    """
    today = today or date.today()
    prev_year, prev_month = add_months(today.year, today.month, -1)
    start, _ = month_bounds(prev_year, prev_month)
    _, end = month_bounds(today.year, today.month)

    transactions = ledger.list_transactions(start, end)
    carry_over = sum((a.amount for a in ledger.list_adjustments(today.month, today.year)), Decimal("0"))

    projection = project_month(transactions, today)
    balance = month_balance(
        income,
        transactions,
        reconciliation.monthly_total(today.month, today.year),
        today,
        carry_over=carry_over,
    )

    return SummaryResponse(
        total_so_far=projection.total_so_far,
        weekly_average=projection.weekly_average,
        projected_total=projection.projected_total,
        previous_month_total=projection.previous_month_total,
        total_income=balance.total_income,
        carry_over=carry_over,
        gross_balance=balance.gross_balance,
        pending_recurring=balance.pending_recurring,
        paid_recurring=balance.paid_recurring,
        balance=balance.balance,
        days_remaining=balance.days_remaining,
        available_daily=balance.available_daily,
    )
