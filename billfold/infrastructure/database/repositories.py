"""Data access layer for the user ledger"""

import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billfold.domain.exceptions import DomainException, DuplicatePaymentError, FailureReason, LedgerOperationError
from billfold.domain.models import (
    BalanceAdjustment,
    MonthClose,
    Purchase,
    RecurringService,
    ServicePayment,
    Transaction,
)
from billfold.infrastructure.database.interface import LedgerRepository
from billfold.infrastructure.database.models import (
    BalanceAdjustmentRow,
    CreditCardPurchase,
    Expense,
    MonthCloseRow,
    RecurringServiceRow,
    ServicePaymentRow,
)
from billfold.infrastructure.observability.metrics import ledger_failure_counter, service_payment_counter

logger = logging.getLogger(__name__)

SERVICE_FIELDS = {"name", "estimated_amount", "day_of_month", "category_id", "icon", "color", "is_active"}


def _to_purchase(row: CreditCardPurchase) -> Purchase:
    return Purchase(
        id=row.id,
        card_id=row.credit_card_id,
        description=row.description,
        total_amount=Decimal(row.total_amount),
        installments=row.installments,
        first_installment_date=row.first_installment_date,
        category_ids=frozenset(row.category_ids or []),
    )


def _to_service(row: RecurringServiceRow) -> RecurringService:
    return RecurringService(
        id=row.id,
        name=row.name,
        estimated_amount=Decimal(row.estimated_amount),
        day_of_month=row.day_of_month,
        category_id=row.category_id,
        is_active=row.is_active,
        icon=row.icon,
        color=row.color,
    )


def _to_payment(row: ServicePaymentRow) -> ServicePayment:
    return ServicePayment(
        id=row.id,
        service_id=row.service_id,
        transaction_id=row.expense_id,
        payment_date=row.payment_date,
        amount=Decimal(row.amount),
        month=row.month,
        year=row.year,
        status=row.status,
    )


def _to_transaction(row: Expense) -> Transaction:
    return Transaction(
        id=row.id,
        amount=Decimal(row.amount),
        date=row.date,
        description=row.description,
        category_ids=frozenset(row.category_ids or []),
        is_credit_card_payment=row.is_credit_card_payment,
        card_id=row.credit_card_id,
        source=row.source,
    )


class SqlAlchemyLedger(LedgerRepository):
    """
    Ledger backed by a relational database.

    Every write is committed on its own, like a call to a remote backend,
    unless it runs inside unit_of_work(); a failed write is rolled back and
    surfaced as LedgerOperationError.
    """

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id
        self._in_unit_of_work = False

    def _commit(self) -> None:
        if self._in_unit_of_work:
            self.db.flush()
        else:
            self.db.commit()

    @contextmanager
    def unit_of_work(self, operation: str = "unit_of_work"):
        """Group several writes into one commit; any failure rolls all of them back"""
        if self._in_unit_of_work:
            yield
            return

        self._in_unit_of_work = True
        with self._write(operation):
            try:
                yield
            finally:
                self._in_unit_of_work = False

    @contextmanager
    def _write(self, operation: str):
        try:
            yield
            self._commit()
        except DomainException:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            ledger_failure_counter.labels(operation=operation, reason=FailureReason.INTEGRITY.value).inc()
            logger.error(f"Ledger integrity error during {operation}: {e}", extra={"user_id": self.user_id})
            raise LedgerOperationError(FailureReason.INTEGRITY, f"{operation} violates a ledger constraint") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            ledger_failure_counter.labels(operation=operation, reason=FailureReason.UNAVAILABLE.value).inc()
            logger.error(f"Ledger unavailable during {operation}: {e}", extra={"user_id": self.user_id})
            raise LedgerOperationError(FailureReason.UNAVAILABLE, f"{operation} failed: ledger unavailable") from e
        except Exception:
            self.db.rollback()
            raise

    def _not_found(self, operation: str, what: str) -> LedgerOperationError:
        ledger_failure_counter.labels(operation=operation, reason=FailureReason.NOT_FOUND.value).inc()
        return LedgerOperationError(FailureReason.NOT_FOUND, f"{what} not found")

    # Purchases

    def list_purchases(self, card_id: Optional[str] = None) -> List[Purchase]:
        query = self.db.query(CreditCardPurchase).filter(CreditCardPurchase.user_id == self.user_id)
        if card_id is not None:
            query = query.filter(CreditCardPurchase.credit_card_id == card_id)
        return [_to_purchase(row) for row in query.order_by(CreditCardPurchase.created_at.desc()).all()]

    def add_purchase(self, purchase: Purchase) -> Purchase:
        with self._write("add_purchase"):
            self.db.add(
                CreditCardPurchase(
                    id=purchase.id,
                    user_id=self.user_id,
                    credit_card_id=purchase.card_id,
                    description=purchase.description,
                    total_amount=purchase.total_amount,
                    installments=purchase.installments,
                    first_installment_date=purchase.first_installment_date,
                    category_ids=sorted(purchase.category_ids),
                )
            )
        return purchase

    def delete_purchase(self, purchase_id: str) -> None:
        with self._write("delete_purchase"):
            deleted = (
                self.db.query(CreditCardPurchase)
                .filter(CreditCardPurchase.id == purchase_id, CreditCardPurchase.user_id == self.user_id)
                .delete()
            )
            if not deleted:
                raise self._not_found("delete_purchase", f"Purchase {purchase_id}")

    # Recurring services

    def _service_row(self, service_id: str) -> Optional[RecurringServiceRow]:
        return (
            self.db.query(RecurringServiceRow)
            .filter(RecurringServiceRow.id == service_id, RecurringServiceRow.user_id == self.user_id)
            .first()
        )

    def list_services(self, active_only: bool = False) -> List[RecurringService]:
        query = self.db.query(RecurringServiceRow).filter(RecurringServiceRow.user_id == self.user_id)
        if active_only:
            query = query.filter(RecurringServiceRow.is_active.is_(True))
        return [_to_service(row) for row in query.order_by(RecurringServiceRow.name.asc()).all()]

    def get_service(self, service_id: str) -> Optional[RecurringService]:
        row = self._service_row(service_id)
        return _to_service(row) if row else None

    def add_service(self, service: RecurringService) -> RecurringService:
        with self._write("add_service"):
            self.db.add(
                RecurringServiceRow(
                    id=service.id,
                    user_id=self.user_id,
                    name=service.name,
                    estimated_amount=service.estimated_amount,
                    day_of_month=service.day_of_month,
                    category_id=service.category_id,
                    icon=service.icon,
                    color=service.color,
                    is_active=service.is_active,
                )
            )
        return service

    def update_service(self, service_id: str, **changes) -> RecurringService:
        unknown = set(changes) - SERVICE_FIELDS
        if unknown:
            raise ValueError(f"Unknown service fields: {sorted(unknown)}")

        with self._write("update_service"):
            row = self._service_row(service_id)
            if row is None:
                raise self._not_found("update_service", f"Service {service_id}")
            for name, value in changes.items():
                setattr(row, name, value)
            # Validate the merged record before it is committed
            updated = _to_service(row)
        return updated

    def delete_service(self, service_id: str) -> None:
        with self._write("delete_service"):
            row = self._service_row(service_id)
            if row is None:
                raise self._not_found("delete_service", f"Service {service_id}")
            self.db.delete(row)

    # Service payments

    def _payments_query(self):
        return (
            self.db.query(ServicePaymentRow)
            .join(RecurringServiceRow, ServicePaymentRow.service_id == RecurringServiceRow.id)
            .filter(RecurringServiceRow.user_id == self.user_id)
        )

    def list_service_payments(self) -> List[ServicePayment]:
        rows = self._payments_query().order_by(ServicePaymentRow.year.desc(), ServicePaymentRow.month.desc()).all()
        return [_to_payment(row) for row in rows]

    def _payment_row(self, service_id: str, month: int, year: int) -> Optional[ServicePaymentRow]:
        return (
            self._payments_query()
            .filter(
                ServicePaymentRow.service_id == service_id,
                ServicePaymentRow.month == month,
                ServicePaymentRow.year == year,
            )
            .first()
        )

    def get_service_payment(self, service_id: str, month: int, year: int) -> Optional[ServicePayment]:
        row = self._payment_row(service_id, month, year)
        return _to_payment(row) if row else None

    def insert_service_payment(self, payment: ServicePayment) -> ServicePayment:
        if self._service_row(payment.service_id) is None:
            raise self._not_found("insert_service_payment", f"Service {payment.service_id}")

        self.db.add(
            ServicePaymentRow(
                id=payment.id,
                service_id=payment.service_id,
                expense_id=payment.transaction_id,
                payment_date=payment.payment_date,
                amount=payment.amount,
                month=payment.month,
                year=payment.year,
                status=payment.status.value,
            )
        )
        try:
            self._commit()
        except IntegrityError as e:
            # Unique (service_id, month, year) violated: caller decides to update instead
            self.db.rollback()
            raise DuplicatePaymentError(
                f"Payment for service {payment.service_id} in {payment.month}/{payment.year} already exists"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            ledger_failure_counter.labels(
                operation="insert_service_payment", reason=FailureReason.UNAVAILABLE.value
            ).inc()
            logger.error(f"Ledger unavailable during insert_service_payment: {e}", extra={"user_id": self.user_id})
            raise LedgerOperationError(FailureReason.UNAVAILABLE, "insert_service_payment failed") from e
        service_payment_counter.labels(action="marked").inc()
        return payment

    def update_service_payment(
        self,
        service_id: str,
        month: int,
        year: int,
        amount: Decimal,
        payment_date: date,
        transaction_id: Optional[str],
        status: str,
    ) -> None:
        with self._write("update_service_payment"):
            row = self._payment_row(service_id, month, year)
            if row is None:
                raise self._not_found("update_service_payment", f"Payment for service {service_id} {month}/{year}")
            row.amount = amount
            row.payment_date = payment_date
            row.expense_id = transaction_id
            row.status = status
        service_payment_counter.labels(action="updated").inc()

    def delete_service_payment(self, service_id: str, month: int, year: int) -> None:
        with self._write("delete_service_payment"):
            row = self._payment_row(service_id, month, year)
            if row is None:
                return
            self.db.delete(row)
        service_payment_counter.labels(action="unmarked").inc()

    # Transactions

    def list_transactions(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Transaction]:
        query = self.db.query(Expense).filter(Expense.user_id == self.user_id)
        if start is not None:
            query = query.filter(Expense.date >= start)
        if end is not None:
            query = query.filter(Expense.date <= end)
        return [_to_transaction(row) for row in query.order_by(Expense.date.desc(), Expense.id).all()]

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with self._write("add_transaction"):
            self.db.add(
                Expense(
                    id=transaction.id,
                    user_id=self.user_id,
                    amount=transaction.amount,
                    date=transaction.date,
                    description=transaction.description,
                    category_ids=sorted(transaction.category_ids),
                    is_credit_card_payment=transaction.is_credit_card_payment,
                    credit_card_id=transaction.card_id,
                    source=transaction.source.value,
                )
            )
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        with self._write("delete_transaction"):
            deleted = (
                self.db.query(Expense)
                .filter(Expense.id == transaction_id, Expense.user_id == self.user_id)
                .delete()
            )
            if not deleted:
                raise self._not_found("delete_transaction", f"Transaction {transaction_id}")

    # Month close

    def add_adjustment(self, adjustment: BalanceAdjustment) -> BalanceAdjustment:
        with self._write("add_adjustment"):
            self.db.add(
                BalanceAdjustmentRow(
                    id=adjustment.id,
                    user_id=self.user_id,
                    month=adjustment.month,
                    year=adjustment.year,
                    amount=adjustment.amount,
                    kind=adjustment.kind,
                )
            )
        return adjustment

    def list_adjustments(self, month: int, year: int) -> List[BalanceAdjustment]:
        rows = (
            self.db.query(BalanceAdjustmentRow)
            .filter(
                BalanceAdjustmentRow.user_id == self.user_id,
                BalanceAdjustmentRow.month == month,
                BalanceAdjustmentRow.year == year,
            )
            .all()
        )
        return [
            BalanceAdjustment(id=r.id, month=r.month, year=r.year, amount=Decimal(r.amount), kind=r.kind)
            for r in rows
        ]

    def get_month_close(self, month: int, year: int) -> Optional[MonthClose]:
        row = (
            self.db.query(MonthCloseRow)
            .filter(MonthCloseRow.user_id == self.user_id, MonthCloseRow.month == month, MonthCloseRow.year == year)
            .first()
        )
        if row is None:
            return None
        return MonthClose(
            month=row.month,
            year=row.year,
            action=row.action,
            remaining_balance=Decimal(row.remaining_balance),
            carried_over=Decimal(row.carried_over),
        )

    def record_month_close(self, month_close: MonthClose) -> None:
        with self._write("record_month_close"):
            self.db.add(
                MonthCloseRow(
                    user_id=self.user_id,
                    month=month_close.month,
                    year=month_close.year,
                    action=month_close.action.value,
                    remaining_balance=month_close.remaining_balance,
                    carried_over=month_close.carried_over,
                )
            )
