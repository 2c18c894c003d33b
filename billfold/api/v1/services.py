"""Recurring services and their monthly payment status"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from billfold.api.v1.schemas import (
    MarkPaidRequest,
    ServiceAmountSchema,
    ServicePaymentResponse,
    ServiceRequest,
    ServiceResponse,
    ServicesTotalResponse,
    ServiceUpdateRequest,
    UnmarkResponse,
)
from billfold.api.dependencies import get_ledger, get_reconciliation, get_request_id, ledger_http_error
from billfold.domain.exceptions import LedgerOperationError, ValidationError
from billfold.domain.models import Actual, RecurringService
from billfold.domain.reconciliation import ReconciliationService
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.infrastructure.observability.metrics import cascade_failure_counter

router = APIRouter()


def _service(service: RecurringService) -> ServiceResponse:
    return ServiceResponse(
        service_id=service.id,
        name=service.name,
        estimated_amount=service.estimated_amount,
        day_of_month=service.day_of_month,
        category_id=service.category_id,
        icon=service.icon,
        color=service.color,
        is_active=service.is_active,
    )


def _period(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise HTTPException(status_code=422, detail="year out of range")


@router.get("/services", response_model=List[ServiceResponse])
def list_services(
    active_only: bool = Query(False),
    ledger: SqlAlchemyLedger = Depends(get_ledger),
):
    return [_service(s) for s in ledger.list_services(active_only=active_only)]


@router.post("/services", response_model=ServiceResponse, status_code=201)
def create_service(
    request_body: ServiceRequest,
    reconciliation: ReconciliationService = Depends(get_reconciliation),
    request_id: str = Depends(get_request_id),
):
    """Define a recurring monthly obligation"""
    try:
        service = reconciliation.add_service(RecurringService(**request_body.model_dump()))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LedgerOperationError as e:
        logging.error(f"Could not create service: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)
    return _service(service)


@router.patch("/services/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: str,
    request_body: ServiceUpdateRequest,
    reconciliation: ReconciliationService = Depends(get_reconciliation),
    request_id: str = Depends(get_request_id),
):
    """Edit a service; payments already recorded keep their amounts"""
    try:
        service = reconciliation.update_service(service_id, **request_body.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LedgerOperationError as e:
        logging.error(f"Could not update service: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)
    return _service(service)


@router.delete("/services/{service_id}", status_code=204)
def delete_service(
    service_id: str,
    reconciliation: ReconciliationService = Depends(get_reconciliation),
    request_id: str = Depends(get_request_id),
):
    try:
        reconciliation.delete_service(service_id)
    except LedgerOperationError as e:
        logging.error(f"Could not delete service: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)
    return Response(status_code=204)


@router.get("/services/total", response_model=ServicesTotalResponse)
def get_services_total(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    """
    Recurring spend forecast for a month.

    Paid services count at what was paid, the rest at their estimate;
    every entry is tagged with which one it is.
    """
    total = reconciliation.monthly_total(month, year)
    return ServicesTotalResponse(
        month=month,
        year=year,
        total=total.total,
        actual_total=total.actual_total,
        forecast_total=total.forecast_total,
        entries=[
            ServiceAmountSchema(
                service_id=e.service_id,
                kind="actual" if isinstance(e, Actual) else "forecasted",
                amount=e.amount,
            )
            for e in total.entries
        ],
    )


@router.get("/services/{service_id}/payments/{year}/{month}", response_model=ServicePaymentResponse)
def get_payment_status(
    service_id: str,
    year: int,
    month: int,
    today: Optional[date] = Query(None, description="Reference date for overdue checks"),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    """Payment status of a service for a month, pending at its estimate when unpaid"""
    _period(year, month)
    service = reconciliation.get_service(service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")

    payment = reconciliation.status_for(service_id, month, year)
    if payment is not None:
        return ServicePaymentResponse(
            service_id=service_id,
            month=month,
            year=year,
            status=payment.status,
            amount=payment.amount,
            payment_date=payment.payment_date,
            transaction_id=payment.transaction_id,
        )

    return ServicePaymentResponse(
        service_id=service_id,
        month=month,
        year=year,
        status=reconciliation.effective_status(service, month, year, today or date.today()),
        amount=service.estimated_amount,
    )


@router.put("/services/{service_id}/payments/{year}/{month}", response_model=ServicePaymentResponse)
def mark_paid(
    service_id: str,
    year: int,
    month: int,
    request_body: MarkPaidRequest,
    reconciliation: ReconciliationService = Depends(get_reconciliation),
    request_id: str = Depends(get_request_id),
):
    """Mark a service as paid for a month; repeating the call updates the same payment"""
    _period(year, month)
    try:
        payment = reconciliation.mark_paid(
            service_id, month, year, request_body.amount, request_body.transaction_id
        )
    except LedgerOperationError as e:
        logging.error(f"Could not mark service as paid: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)

    return ServicePaymentResponse(
        service_id=service_id,
        month=month,
        year=year,
        status=payment.status,
        amount=payment.amount,
        payment_date=payment.payment_date,
        transaction_id=payment.transaction_id,
    )


@router.delete("/services/{service_id}/payments/{year}/{month}", response_model=UnmarkResponse)
def unmark_paid(
    service_id: str,
    year: int,
    month: int,
    delete_transaction: bool = Query(True, description="Also delete the linked expense"),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
    request_id: str = Depends(get_request_id),
):
    """Undo a service payment; a missing payment is not an error"""
    _period(year, month)
    try:
        result = reconciliation.unmark(service_id, month, year, delete_transaction)
    except LedgerOperationError as e:
        logging.error(f"Could not unmark service payment: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)

    linked = result.linked_transaction
    if linked is not None and not linked.ok:
        cascade_failure_counter.inc()
    return UnmarkResponse(
        removed=result.removed,
        linked_transaction_deleted=linked.ok if linked else None,
        linked_transaction_error=linked.reason if linked else None,
    )
