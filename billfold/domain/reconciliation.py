"""Recurring service payment reconciliation"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from billfold.domain.exceptions import DuplicatePaymentError, LedgerOperationError
from billfold.domain.models import (
    Actual,
    Forecasted,
    MonthlyServicesTotal,
    OperationResult,
    PaymentStatus,
    RecurringService,
    ServicePayment,
    UnmarkResult,
)
from billfold.utils.date_utils import clamp_day

logger = logging.getLogger(__name__)

PeriodKey = Tuple[str, int, int]


def due_date(service: RecurringService, month: int, year: int) -> date:
    """Due date of a service in a month; day 31 falls on the 30th/28th/29th in shorter months"""
    return clamp_day(year, month, service.day_of_month)


def services_total(
    services: List[RecurringService], payments: List[ServicePayment], month: int, year: int
) -> MonthlyServicesTotal:
    """
    Forecast of recurring spend for a month.

    Active services with a paid row count at the paid amount, every other
    active service at its estimate. The result mixes settled and estimated
    figures; each entry says which one it is.
    """
    paid = {
        p.service_id: p
        for p in payments
        if p.month == month and p.year == year and p.status == PaymentStatus.PAID
    }

    result = MonthlyServicesTotal(month=month, year=year)
    for service in services:
        if not service.is_active:
            continue
        payment = paid.get(service.id)
        if payment is not None:
            result.entries.append(Actual(service_id=service.id, amount=payment.amount))
        else:
            result.entries.append(Forecasted(service_id=service.id, amount=service.estimated_amount))
    return result


class ReconciliationService:
    """
    Matches recurring services against the payment ledger.

    Reads come from an in-memory view that only changes through reload()
    or after a ledger write succeeded.
    """

    def __init__(self, ledger):
        self.ledger = ledger
        self.services: List[RecurringService] = []
        self.payments: Dict[PeriodKey, ServicePayment] = {}

    def reload(self) -> None:
        self.services = self.ledger.list_services()
        self.payments = {(p.service_id, p.month, p.year): p for p in self.ledger.list_service_payments()}

    def get_service(self, service_id: str) -> Optional[RecurringService]:
        return next((s for s in self.services if s.id == service_id), None)

    def add_service(self, service: RecurringService) -> RecurringService:
        saved = self.ledger.add_service(service)
        self.services = sorted(self.services + [saved], key=lambda s: s.name)
        return saved

    def update_service(self, service_id: str, **changes) -> RecurringService:
        """Edit a definition; payments already recorded keep their amounts"""
        updated = self.ledger.update_service(service_id, **changes)
        self.services = sorted(
            [updated if s.id == service_id else s for s in self.services], key=lambda s: s.name
        )
        return updated

    def delete_service(self, service_id: str) -> None:
        self.ledger.delete_service(service_id)
        self.services = [s for s in self.services if s.id != service_id]
        self.payments = {k: p for k, p in self.payments.items() if p.service_id != service_id}

    def status_for(self, service_id: str, month: int, year: int) -> Optional[ServicePayment]:
        """Payment row for the period; None means pending at the estimated amount"""
        return self.payments.get((service_id, month, year))

    def effective_status(self, service: RecurringService, month: int, year: int, today: date) -> PaymentStatus:
        payment = self.status_for(service.id, month, year)
        if payment is not None:
            return payment.status
        if today > due_date(service, month, year):
            return PaymentStatus.OVERDUE
        return PaymentStatus.PENDING

    def mark_paid(
        self,
        service_id: str,
        month: int,
        year: int,
        amount: Decimal,
        transaction_id: Optional[str] = None,
    ) -> ServicePayment:
        """
        Record a service as paid for a month.

        Inserts a new payment row; if one already exists for the period it
        is updated in place instead, so repeating the call converges on the
        same single row.

        Raises:
            LedgerOperationError: if the ledger write fails
        """
        payment = ServicePayment(
            service_id=service_id,
            transaction_id=transaction_id,
            payment_date=date(year, month, 1),
            amount=amount,
            month=month,
            year=year,
            status=PaymentStatus.PAID,
        )

        try:
            self.ledger.insert_service_payment(payment)
        except DuplicatePaymentError:
            self.ledger.update_service_payment(
                service_id,
                month,
                year,
                amount=amount,
                payment_date=payment.payment_date,
                transaction_id=transaction_id,
                status=PaymentStatus.PAID.value,
            )

        logger.info(
            "Service marked as paid",
            extra={"service_id": service_id, "period": f"{year}-{month:02d}", "amount": str(amount)},
        )
        stored = self.ledger.get_service_payment(service_id, month, year)
        self.payments[(service_id, month, year)] = stored
        return stored

    def unmark(
        self,
        service_id: str,
        month: int,
        year: int,
        delete_transaction: bool = True,
    ) -> UnmarkResult:
        """
        Undo a service payment.

        The linked transaction, if asked for, is deleted first on a best
        effort basis: its failure is logged and reported in the result but
        the payment row is still removed.

        Raises:
            LedgerOperationError: if the payment row itself cannot be deleted
        """
        key = (service_id, month, year)
        payment = self.payments.get(key)
        if payment is None:
            return UnmarkResult(removed=False)

        linked = None
        if delete_transaction and payment.transaction_id:
            linked = self._delete_linked_transaction(payment)

        self.ledger.delete_service_payment(service_id, month, year)
        self.payments.pop(key, None)

        logger.info(
            "Service payment removed",
            extra={"service_id": service_id, "period": f"{year}-{month:02d}"},
        )
        return UnmarkResult(removed=True, linked_transaction=linked)

    def _delete_linked_transaction(self, payment: ServicePayment) -> OperationResult:
        try:
            self.ledger.delete_transaction(payment.transaction_id)
        except LedgerOperationError as e:
            logger.warning(
                f"Could not delete linked transaction: {e}",
                extra={"service_id": payment.service_id, "transaction_id": payment.transaction_id},
            )
            return OperationResult(ok=False, reason=e.reason.value)
        return OperationResult(ok=True)

    def monthly_total(self, month: int, year: int) -> MonthlyServicesTotal:
        return services_total(self.services, list(self.payments.values()), month, year)
