"""
Abstract ledger interface.

The domain services only talk to this interface; the SQLAlchemy
implementation in repositories.py is one way to back it. Every
implementation is scoped to a single user.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import ContextManager, List, Optional

from billfold.domain.models import (
    BalanceAdjustment,
    MonthClose,
    Purchase,
    RecurringService,
    ServicePayment,
    Transaction,
)


class LedgerRepository(ABC):
    """
    Record streams owned by one user.

    Write methods raise LedgerOperationError when the backing store
    fails; nothing is partially applied.
    """

    @abstractmethod
    def unit_of_work(self, operation: str = "unit_of_work") -> ContextManager[None]:
        """
        Apply every write made inside the block together, or none of them.

        Nested blocks join the outermost one.
        """
        pass

    # Purchases

    @abstractmethod
    def list_purchases(self, card_id: Optional[str] = None) -> List[Purchase]:
        pass

    @abstractmethod
    def add_purchase(self, purchase: Purchase) -> Purchase:
        pass

    @abstractmethod
    def delete_purchase(self, purchase_id: str) -> None:
        pass

    # Recurring services

    @abstractmethod
    def list_services(self, active_only: bool = False) -> List[RecurringService]:
        pass

    @abstractmethod
    def get_service(self, service_id: str) -> Optional[RecurringService]:
        pass

    @abstractmethod
    def add_service(self, service: RecurringService) -> RecurringService:
        pass

    @abstractmethod
    def update_service(self, service_id: str, **changes) -> RecurringService:
        """
        Apply a partial update to a service definition.

        Raises:
            LedgerOperationError: NOT_FOUND if the service does not exist
        """
        pass

    @abstractmethod
    def delete_service(self, service_id: str) -> None:
        pass

    # Service payments

    @abstractmethod
    def list_service_payments(self) -> List[ServicePayment]:
        pass

    @abstractmethod
    def get_service_payment(self, service_id: str, month: int, year: int) -> Optional[ServicePayment]:
        pass

    @abstractmethod
    def insert_service_payment(self, payment: ServicePayment) -> ServicePayment:
        """
        Raises:
            DuplicatePaymentError: a payment already exists for (service, month, year)
        """
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    def delete_service_payment(self, service_id: str, month: int, year: int) -> None:
        pass

    # Transactions

    @abstractmethod
    def list_transactions(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Transaction]:
        pass

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> None:
        pass

    # Month close

    @abstractmethod
    def add_adjustment(self, adjustment: BalanceAdjustment) -> BalanceAdjustment:
        pass

    @abstractmethod
    def list_adjustments(self, month: int, year: int) -> List[BalanceAdjustment]:
        pass

    @abstractmethod
    def get_month_close(self, month: int, year: int) -> Optional[MonthClose]:
        pass

    @abstractmethod
    def record_month_close(self, month_close: MonthClose) -> None:
        pass
