"""Credit card purchases, monthly consumption and statement payment status"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from billfold.api.v1.schemas import (
    CardPaymentStatusResponse,
    ConsumptionResponse,
    InstallmentSchema,
    PurchaseRequest,
    PurchaseResponse,
    ScheduleResponse,
)
from billfold.api.dependencies import get_amortization, get_ledger, get_request_id, ledger_http_error
from billfold.domain.exceptions import LedgerOperationError, ValidationError
from billfold.domain.installments import AmortizationService, card_payment_status
from billfold.domain.models import Purchase
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.utils.date_utils import month_bounds

router = APIRouter()


def _purchase(purchase: Purchase) -> PurchaseResponse:
    return PurchaseResponse(
        purchase_id=purchase.id,
        card_id=purchase.card_id,
        description=purchase.description,
        total_amount=purchase.total_amount,
        installments=purchase.installments,
        first_installment_date=purchase.first_installment_date,
        category_ids=sorted(purchase.category_ids),
    )


def _installment(line) -> InstallmentSchema:
    return InstallmentSchema(
        purchase_id=line.purchase_id,
        description=line.description,
        installment_number=line.installment_number,
        total_installments=line.total_installments,
        amount=line.amount,
        due_date=line.due_date,
    )


@router.post("/cards/{card_id}/purchases", response_model=PurchaseResponse, status_code=201)
def create_purchase(
    card_id: str,
    request_body: PurchaseRequest,
    amortization: AmortizationService = Depends(get_amortization),
    request_id: str = Depends(get_request_id),
):
    """Record an installment purchase on a card"""
    try:
        purchase = amortization.add_purchase(
            Purchase(
                card_id=card_id,
                description=request_body.description,
                total_amount=request_body.total_amount,
                installments=request_body.installments,
                first_installment_date=request_body.first_installment_date,
                category_ids=frozenset(request_body.category_ids),
            )
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LedgerOperationError as e:
        logging.error(f"Could not record purchase: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)

    return _purchase(purchase)


@router.get("/cards/{card_id}/purchases", response_model=List[PurchaseResponse])
def list_purchases(card_id: str, ledger: SqlAlchemyLedger = Depends(get_ledger)):
    """Purchases on a card, newest first"""
    return [_purchase(p) for p in ledger.list_purchases(card_id=card_id)]


@router.delete("/cards/{card_id}/purchases/{purchase_id}", status_code=204)
def delete_purchase(
    card_id: str,
    purchase_id: str,
    amortization: AmortizationService = Depends(get_amortization),
    request_id: str = Depends(get_request_id),
):
    """Remove a purchase; its installments disappear from every month"""
    purchase = amortization.get_purchase(purchase_id)
    if purchase is None or purchase.card_id != card_id:
        raise HTTPException(status_code=404, detail="Purchase not found")

    try:
        amortization.delete_purchase(purchase_id)
    except LedgerOperationError as e:
        logging.error(f"Could not delete purchase: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)
    return Response(status_code=204)


@router.get("/cards/{card_id}/consumption", response_model=ConsumptionResponse)
def get_consumption(
    card_id: str,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    amortization: AmortizationService = Depends(get_amortization),
):
    """
    Installments charged to a card in a month.

    Returns:
        Every covered purchase with its installment number and amount
    """
    summary = amortization.summarize(card_id, month, year)
    return ConsumptionResponse(
        card_id=summary.card_id,
        month=summary.month,
        year=summary.year,
        total_amount=summary.total_amount,
        items=[_installment(item) for item in summary.items],
    )


@router.get("/cards/{card_id}/purchases/{purchase_id}/schedule", response_model=ScheduleResponse)
def get_schedule(
    card_id: str,
    purchase_id: str,
    amortization: AmortizationService = Depends(get_amortization),
):
    """Full installment schedule of one purchase"""
    purchase = amortization.get_purchase(purchase_id)
    if purchase is None or purchase.card_id != card_id:
        raise HTTPException(status_code=404, detail="Purchase not found")

    return ScheduleResponse(
        purchase_id=purchase.id,
        total_amount=purchase.total_amount,
        installments=[_installment(line) for line in amortization.schedule(purchase)],
    )


@router.get("/cards/{card_id}/payment-status", response_model=CardPaymentStatusResponse)
def get_card_payment_status(
    card_id: str,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    ledger: SqlAlchemyLedger = Depends(get_ledger),
):
    """Whether the card's statement was paid in a month"""
    start, end = month_bounds(year, month)
    status = card_payment_status(ledger.list_transactions(start, end), card_id, month, year)
    return CardPaymentStatusResponse(
        card_id=card_id,
        month=month,
        year=year,
        is_paid=status is not None,
        transaction_id=status.transaction_id if status else None,
    )
