"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from billfold.domain.exceptions import FailureReason, LedgerOperationError
from billfold.domain.installments import AmortizationService
from billfold.domain.reconciliation import ReconciliationService
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.config import settings
from billfold.infrastructure.database.session import get_db

LEDGER_ERROR_STATUS = {
    FailureReason.CONFLICT: 409,
    FailureReason.INTEGRITY: 409,
    FailureReason.NOT_FOUND: 404,
    FailureReason.UNAVAILABLE: 503,
}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Authenticated user, resolved upstream and passed in X-User-ID"""
    return x_user_id


def get_ledger(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)) -> SqlAlchemyLedger:
    """Provide the ledger scoped to the calling user"""
    return SqlAlchemyLedger(db, user_id)


def get_reconciliation(ledger: SqlAlchemyLedger = Depends(get_ledger)) -> ReconciliationService:
    """Provide a reconciler with services and payments loaded"""
    service = ReconciliationService(ledger)
    service.reload()
    return service


def get_amortization(ledger: SqlAlchemyLedger = Depends(get_ledger)) -> AmortizationService:
    """Provide installment views with the user's purchases loaded"""
    service = AmortizationService(ledger, rounding=settings.installment_rounding)
    service.reload()
    return service


def ledger_http_error(error: LedgerOperationError) -> HTTPException:
    """Translate a ledger failure into the HTTP error returned to the app"""
    return HTTPException(status_code=LEDGER_ERROR_STATUS.get(error.reason, 500), detail=str(error))
