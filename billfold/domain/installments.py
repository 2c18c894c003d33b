"""Installment schedules and monthly credit card consumption"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from billfold.domain.amortization import installment_number
from billfold.domain.models import (
    CENT,
    CardPaymentStatus,
    InstallmentLine,
    MonthlyConsumptionSummary,
    Purchase,
    Transaction,
)
from billfold.utils.date_utils import add_months, clamp_day, month_bounds

logger = logging.getLogger(__name__)


def installment_amounts(total_amount: Decimal, installments: int, rounding: str = "exact") -> List[Decimal]:
    """
    Split a purchase total into monthly installments.

    Rounding modes:
    - "exact": every installment is total/N truncated to the cent, and the
      last one absorbs the remainder so the schedule sums to the total
    - "legacy": every installment is total/N truncated to the cent, so the
      schedule comes up short by 0 to N-1 cents

    Example:
        400.03 / 4, exact  -> [100.00, 100.00, 100.00, 100.03]
        400.03 / 4, legacy -> [100.00, 100.00, 100.00, 100.00]
    """
    if rounding not in ("exact", "legacy"):
        raise ValueError(f"Unknown rounding mode: {rounding}")

    total_cents = int(total_amount.quantize(CENT) / CENT)
    base_cents = total_cents // installments
    remainder = total_cents % installments

    amounts = [Decimal(base_cents) * CENT for _ in range(installments)]
    if rounding == "exact":
        amounts[-1] += Decimal(remainder) * CENT
    return amounts


def installment_schedule(purchase: Purchase, rounding: str = "exact") -> List[InstallmentLine]:
    """Every installment of a purchase with the date it is shown as due"""
    amounts = installment_amounts(purchase.total_amount, purchase.installments, rounding)
    first = purchase.first_installment_date

    lines = []
    for i, amount in enumerate(amounts):
        year, month = add_months(first.year, first.month, i)
        lines.append(
            InstallmentLine(
                purchase_id=purchase.id,
                description=purchase.description,
                installment_number=i + 1,
                total_installments=purchase.installments,
                amount=amount,
                due_date=clamp_day(year, month, first.day),
            )
        )
    return lines


def summarize_card_month(
    purchases: Iterable[Purchase],
    card_id: str,
    month: int,
    year: int,
    rounding: str = "exact",
) -> MonthlyConsumptionSummary:
    """
    Sum the installments charged to a card in one month.

    Items are ordered by first installment date, then purchase id, so the
    result does not depend on the order purchases were loaded in.
    """
    card_purchases = sorted(
        (p for p in purchases if p.card_id == card_id),
        key=lambda p: (p.first_installment_date, p.id),
    )

    items = []
    total = Decimal("0")
    for purchase in card_purchases:
        number = installment_number(purchase.first_installment_date, purchase.installments, year, month)
        if number is None:
            continue

        amount = installment_amounts(purchase.total_amount, purchase.installments, rounding)[number - 1]
        total += amount
        items.append(
            InstallmentLine(
                purchase_id=purchase.id,
                description=purchase.description,
                installment_number=number,
                total_installments=purchase.installments,
                amount=amount,
                due_date=clamp_day(year, month, purchase.first_installment_date.day),
            )
        )

    return MonthlyConsumptionSummary(card_id=card_id, month=month, year=year, total_amount=total, items=items)


def card_payment_status(
    transactions: Iterable[Transaction], card_id: str, month: int, year: int
) -> Optional[CardPaymentStatus]:
    """Statement payment recorded for a card in a month, if any"""
    start, end = month_bounds(year, month)
    for txn in transactions:
        if txn.is_credit_card_payment and txn.card_id == card_id and start <= txn.date <= end:
            return CardPaymentStatus(is_paid=True, transaction_id=txn.id)
    return None


class AmortizationService:
    """Installment views over a user's purchases, cached until reload()"""

    def __init__(self, ledger, rounding: str = "exact"):
        self.ledger = ledger
        self.rounding = rounding
        self.purchases: List[Purchase] = []

    def reload(self) -> None:
        self.purchases = self.ledger.list_purchases()

    def add_purchase(self, purchase: Purchase) -> Purchase:
        saved = self.ledger.add_purchase(purchase)
        self.purchases.append(saved)
        logger.info(
            "Purchase recorded",
            extra={"purchase_id": saved.id, "card_id": saved.card_id, "installments": saved.installments},
        )
        return saved

    def get_purchase(self, purchase_id: str) -> Optional[Purchase]:
        return next((p for p in self.purchases if p.id == purchase_id), None)

    def delete_purchase(self, purchase_id: str) -> None:
        self.ledger.delete_purchase(purchase_id)
        self.purchases = [p for p in self.purchases if p.id != purchase_id]
        logger.info("Purchase deleted", extra={"purchase_id": purchase_id})

    def summarize(self, card_id: str, month: int, year: int) -> MonthlyConsumptionSummary:
        return summarize_card_month(self.purchases, card_id, month, year, self.rounding)

    def schedule(self, purchase: Purchase) -> List[InstallmentLine]:
        return installment_schedule(purchase, self.rounding)
