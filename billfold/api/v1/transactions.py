"""Recorded expenses"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from billfold.api.v1.schemas import TransactionRequest, TransactionResponse
from billfold.api.dependencies import get_ledger, get_request_id, ledger_http_error
from billfold.domain.exceptions import LedgerOperationError, ValidationError
from billfold.domain.models import Transaction
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.utils.date_utils import month_bounds

router = APIRouter()


def _transaction(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        transaction_id=txn.id,
        amount=txn.amount,
        date=txn.date,
        description=txn.description,
        category_ids=sorted(txn.category_ids),
        is_credit_card_payment=txn.is_credit_card_payment,
        card_id=txn.card_id,
        source=txn.source.value,
    )


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    ledger: SqlAlchemyLedger = Depends(get_ledger),
):
    """Expenses recorded in a month, newest first"""
    start, end = month_bounds(year, month)
    return [_transaction(t) for t in ledger.list_transactions(start, end)]


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    request_body: TransactionRequest,
    ledger: SqlAlchemyLedger = Depends(get_ledger),
    request_id: str = Depends(get_request_id),
):
    if request_body.is_credit_card_payment and not request_body.card_id:
        raise HTTPException(status_code=422, detail="card_id is required for credit card payments")

    try:
        txn = ledger.add_transaction(
            Transaction(
                amount=request_body.amount,
                date=request_body.date,
                description=request_body.description,
                category_ids=frozenset(request_body.category_ids),
                is_credit_card_payment=request_body.is_credit_card_payment,
                card_id=request_body.card_id,
            )
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LedgerOperationError as e:
        logging.error(f"Could not record transaction: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)
    return _transaction(txn)
