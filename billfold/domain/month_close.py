"""
Month-close resolution.

When a month ends with money left over (or missing), the user decides once
what happens to it:

- carry the whole surplus into the next month
- split it: part was spending that never got recorded, the rest carries over
- treat all of it as unrecorded spending
- start fresh and drop it

Deficits can only be acknowledged with start fresh.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional, Protocol

from billfold.domain.exceptions import InvalidTransitionError, ValidationError
from billfold.domain.models import (
    BalanceAdjustment,
    MonthClose,
    MonthCloseAction,
    Transaction,
    TransactionSource,
)
from billfold.utils.currency import parse_currency_input
from billfold.utils.date_utils import add_months, month_bounds

ZERO = Decimal("0")


class MonthCloseStep(str, Enum):
    OPTIONS = "options"
    SPLIT = "split"
    CLOSED = "closed"


class MonthCloseCallbacks(Protocol):
    def on_carry_over(self, amount: Decimal) -> None: ...

    def on_register_as_expense(self, expense_amount: Decimal, carryover_amount: Decimal) -> None: ...

    def on_start_fresh(self) -> None: ...


class MonthCloseSession:
    """Interactive resolver for one closed month; discarded after its single terminal action"""

    def __init__(self, remaining_balance: Decimal, callbacks: MonthCloseCallbacks):
        self.remaining_balance = Decimal(remaining_balance)
        self.callbacks = callbacks
        self.step = MonthCloseStep.OPTIONS
        self.remaining_input = ""
        self.action: Optional[MonthCloseAction] = None

    @property
    def is_positive(self) -> bool:
        return self.remaining_balance > 0

    @property
    def actual_remaining(self) -> Decimal:
        """Money the user says is still available; blank input counts as zero"""
        return parse_currency_input(self.remaining_input) or ZERO

    @property
    def unrecorded_expense(self) -> Decimal:
        return max(ZERO, self.remaining_balance - self.actual_remaining)

    def available_actions(self) -> List[str]:
        if self.step == MonthCloseStep.OPTIONS:
            if self.is_positive:
                return ["carry_over", "open_split", "start_fresh"]
            return ["start_fresh"]
        if self.step == MonthCloseStep.SPLIT:
            actions = ["back", "set_actual_remaining", "full_expense"]
            if self.remaining_input and self.unrecorded_expense > 0:
                actions.insert(2, "confirm_split")
            return actions
        return []

    def _require(self, action: str) -> None:
        if action not in self.available_actions():
            raise InvalidTransitionError(f"{action} is not available in step {self.step.value}")

    def _close(self, action: MonthCloseAction) -> None:
        self.action = action
        self.step = MonthCloseStep.CLOSED
        self.remaining_input = ""

    # Options step

    def carry_over(self) -> None:
        self._require("carry_over")
        self.callbacks.on_carry_over(self.remaining_balance)
        self._close(MonthCloseAction.CARRY_OVER)

    def open_split(self) -> None:
        self._require("open_split")
        self.step = MonthCloseStep.SPLIT

    def start_fresh(self) -> None:
        self._require("start_fresh")
        self.callbacks.on_start_fresh()
        self._close(MonthCloseAction.START_FRESH)

    # Split step

    def back(self) -> None:
        self._require("back")
        self.step = MonthCloseStep.OPTIONS
        self.remaining_input = ""

    def set_actual_remaining(self, text: str) -> None:
        """
        Raises:
            ValidationError: if the text is not a non-negative amount
        """
        self._require("set_actual_remaining")
        amount = parse_currency_input(text)
        if amount is not None and amount < 0:
            raise ValidationError("Remaining amount cannot be negative")
        self.remaining_input = text

    def confirm_split(self) -> None:
        self._require("confirm_split")
        self.callbacks.on_register_as_expense(self.unrecorded_expense, self.actual_remaining)
        self._close(MonthCloseAction.SPLIT)

    def full_expense(self) -> None:
        self._require("full_expense")
        self.callbacks.on_register_as_expense(self.remaining_balance, ZERO)
        self._close(MonthCloseAction.FULL_EXPENSE)


class MonthCloseLedgerActions:
    """Applies month-close decisions for a closed month to the ledger"""

    def __init__(self, ledger, month: int, year: int):
        self.ledger = ledger
        self.month = month
        self.year = year
        self.next_year, self.next_month = add_months(year, month, 1)

    def on_carry_over(self, amount: Decimal) -> None:
        self.ledger.add_adjustment(
            BalanceAdjustment(month=self.next_month, year=self.next_year, amount=amount, kind="carry_over")
        )

    def on_register_as_expense(self, expense_amount: Decimal, carryover_amount: Decimal) -> None:
        if expense_amount > 0:
            _, last_day = month_bounds(self.year, self.month)
            self.ledger.add_transaction(
                Transaction(
                    amount=expense_amount,
                    date=last_day,
                    description="Unrecorded spending (month close)",
                    category_ids=frozenset({"adjustment"}),
                    source=TransactionSource.MONTH_CLOSE,
                )
            )
        if carryover_amount > 0:
            self.on_carry_over(carryover_amount)

    def on_start_fresh(self) -> None:
        pass


def needs_month_close(ledger, remaining_balance: Decimal, month: int, year: int) -> bool:
    """A month needs closing when it ended with a nonzero balance and was not closed before"""
    return Decimal(remaining_balance) != 0 and ledger.get_month_close(month, year) is None


def resolve_month_close(
    ledger,
    month: int,
    year: int,
    remaining_balance: Decimal,
    action: MonthCloseAction,
    actual_remaining: str = "",
) -> Optional[MonthClose]:
    """
    Drive a session for a closed month from a single decision.

    Returns None when there is nothing to resolve (zero balance). The close
    record and the mutation it implies are applied as one unit; the close
    record is written first so a concurrent close of the same month fails
    on its unique key before anything is booked.

    Raises:
        InvalidTransitionError: if the action is not offered for this
            balance, or the month was already closed
        ValidationError: if a split amount is malformed or would leave
            nothing to record as an expense
        LedgerOperationError: if a ledger write fails; nothing is applied
    """
    remaining_balance = Decimal(remaining_balance)
    if remaining_balance == 0:
        return None
    if ledger.get_month_close(month, year) is not None:
        raise InvalidTransitionError(f"Month {year}-{month:02d} was already closed")

    session = MonthCloseSession(remaining_balance, MonthCloseLedgerActions(ledger, month, year))
    splits = action in (MonthCloseAction.SPLIT, MonthCloseAction.FULL_EXPENSE)
    first_step = "open_split" if splits else action.value
    if first_step not in session.available_actions():
        raise InvalidTransitionError(f"{action.value} is not available for a balance of {remaining_balance}")

    carried = ZERO
    if action == MonthCloseAction.CARRY_OVER:
        carried = remaining_balance
    elif splits:
        session.open_split()
        if action == MonthCloseAction.SPLIT:
            session.set_actual_remaining(actual_remaining)
            if "confirm_split" not in session.available_actions():
                raise ValidationError(
                    "Amount still available must be given and lower than the remaining balance, "
                    "otherwise nothing would be recorded as an expense"
                )
            carried = session.actual_remaining

    closed = MonthClose(
        month=month, year=year, action=action, remaining_balance=remaining_balance, carried_over=carried
    )
    with ledger.unit_of_work("month_close"):
        ledger.record_month_close(closed)
        if action == MonthCloseAction.CARRY_OVER:
            session.carry_over()
        elif action == MonthCloseAction.START_FRESH:
            session.start_fresh()
        elif action == MonthCloseAction.SPLIT:
            session.confirm_split()
        else:
            session.full_expense()
    return closed
