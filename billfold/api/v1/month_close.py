"""POST /v1/month-close - resolve the leftover balance of a closed month"""

import logging
from fastapi import APIRouter, Depends, HTTPException

from billfold.api.v1.schemas import MonthCloseRequest, MonthCloseResponse
from billfold.api.dependencies import get_ledger, get_request_id, get_user_id, ledger_http_error
from billfold.domain.exceptions import InvalidTransitionError, LedgerOperationError, ValidationError
from billfold.domain.month_close import resolve_month_close
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.infrastructure.observability.logging import log_month_close
from billfold.infrastructure.observability.metrics import record_month_close

router = APIRouter()


@router.post("/month-close", response_model=MonthCloseResponse)
def close_month(
    request_body: MonthCloseRequest,
    ledger: SqlAlchemyLedger = Depends(get_ledger),
    user_id: str = Depends(get_user_id),
    request_id: str = Depends(get_request_id),
):
    """
    Apply the user's month-close decision.

    Flow:
    1. Zero balance: nothing to resolve
    2. Refuse a month that was already closed
    3. Run the decision through the month-close session
    4. Ledger gets a carry-over adjustment and/or an adjustment expense
    """
    try:
        closed = resolve_month_close(
            ledger,
            request_body.month,
            request_body.year,
            request_body.remaining_balance,
            request_body.action,
            request_body.actual_remaining,
        )
    except InvalidTransitionError as e:
        logging.warning(f"Month close rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LedgerOperationError as e:
        logging.error(f"Month close failed: {e}", extra={"request_id": request_id})
        raise ledger_http_error(e)

    if closed is None:
        return MonthCloseResponse(month=request_body.month, year=request_body.year, resolved=False)

    log_month_close(
        request_id, user_id, closed.month, closed.year, closed.action.value, closed.remaining_balance
    )
    record_month_close(closed.action.value, closed.carried_over)
    return MonthCloseResponse(month=closed.month, year=closed.year, resolved=True, action=closed.action)
