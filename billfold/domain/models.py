"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, List, Optional, Union

from billfold.domain.exceptions import ValidationError

CENT = Decimal("0.01")


def new_id() -> str:
    return str(uuid.uuid4())


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class TransactionSource(str, Enum):
    MANUAL = "manual"
    SERVICE_PAYMENT = "service_payment"
    MONTH_CLOSE = "month_close"


class MonthCloseAction(str, Enum):
    CARRY_OVER = "carry_over"
    SPLIT = "split"
    FULL_EXPENSE = "full_expense"
    START_FRESH = "start_fresh"


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")


@dataclass
class Purchase:
    """Credit card purchase split into monthly installments"""

    card_id: str
    description: str
    total_amount: Decimal
    installments: int
    first_installment_date: date
    category_ids: FrozenSet[str] = frozenset()
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.total_amount <= 0:
            raise ValidationError("total_amount must be positive")
        if self.installments < 1:
            raise ValidationError("installments must be at least 1")
        self.category_ids = frozenset(self.category_ids)


@dataclass
class InstallmentLine:
    """One month's charge of a purchase"""

    purchase_id: str
    description: str
    installment_number: int
    total_installments: int
    amount: Decimal
    due_date: date


@dataclass
class MonthlyConsumptionSummary:
    """Installments a card is charged for in one month (derived, never stored)"""

    card_id: str
    month: int
    year: int
    total_amount: Decimal
    items: List[InstallmentLine]


@dataclass
class RecurringService:
    """Fixed monthly obligation (rent, subscription, utility bill)"""

    name: str
    estimated_amount: Decimal
    day_of_month: int
    category_id: Optional[str] = None
    is_active: bool = True
    icon: str = "pricetag"
    color: str = "#607D8B"
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.estimated_amount <= 0:
            raise ValidationError("estimated_amount must be positive")
        # Not checked against the month's length: day 31 is legal and is
        # clamped when a due date is computed
        if not 1 <= self.day_of_month <= 31:
            raise ValidationError(f"day_of_month must be between 1 and 31, got {self.day_of_month}")


@dataclass
class ServicePayment:
    """Ledger row settling a recurring service for one month"""

    service_id: str
    payment_date: date
    amount: Decimal
    month: int
    year: int
    status: PaymentStatus = PaymentStatus.PAID
    transaction_id: Optional[str] = None
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        _check_month(self.month)
        self.status = PaymentStatus(self.status)


@dataclass
class Transaction:
    """Recorded expense"""

    amount: Decimal
    date: date
    description: str = ""
    category_ids: FrozenSet[str] = frozenset()
    is_credit_card_payment: bool = False
    card_id: Optional[str] = None
    source: TransactionSource = TransactionSource.MANUAL
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValidationError("amount must be positive")
        self.category_ids = frozenset(self.category_ids)
        self.source = TransactionSource(self.source)


@dataclass
class BalanceAdjustment:
    """Carry-over added to a month's starting figures"""

    month: int
    year: int
    amount: Decimal
    kind: str = "carry_over"
    id: str = field(default_factory=new_id)


@dataclass
class MonthClose:
    """Record that a month's leftover balance was already resolved"""

    month: int
    year: int
    action: MonthCloseAction
    remaining_balance: Decimal
    carried_over: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        _check_month(self.month)
        self.action = MonthCloseAction(self.action)


@dataclass(frozen=True)
class Forecasted:
    """Estimated amount for a service not yet paid this month"""

    service_id: str
    amount: Decimal


@dataclass(frozen=True)
class Actual:
    """Amount actually paid for a service this month"""

    service_id: str
    amount: Decimal


ServiceAmount = Union[Forecasted, Actual]


@dataclass
class MonthlyServicesTotal:
    month: int
    year: int
    entries: List[ServiceAmount] = field(default_factory=list)

    @property
    def actual_total(self) -> Decimal:
        return sum((e.amount for e in self.entries if isinstance(e, Actual)), Decimal("0"))

    @property
    def forecast_total(self) -> Decimal:
        return sum((e.amount for e in self.entries if isinstance(e, Forecasted)), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.actual_total + self.forecast_total


@dataclass
class OperationResult:
    """Outcome of a best-effort ledger step"""

    ok: bool
    reason: Optional[str] = None


@dataclass
class UnmarkResult:
    removed: bool
    linked_transaction: Optional[OperationResult] = None


@dataclass
class CardPaymentStatus:
    is_paid: bool
    transaction_id: Optional[str] = None


@dataclass
class MonthProjection:
    total_so_far: Decimal
    weekly_average: Decimal
    projected_total: Decimal
    previous_month_total: Decimal
    days_elapsed: int
    days_in_month: int


@dataclass
class MonthBalance:
    total_income: Decimal
    total_expenses: Decimal
    gross_balance: Decimal
    pending_recurring: Decimal
    paid_recurring: Decimal
    balance: Decimal
    days_remaining: int
    available_daily: Decimal

    @property
    def total_recurring(self) -> Decimal:
        return self.pending_recurring + self.paid_recurring
