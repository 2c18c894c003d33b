"""Unit tests for recurring service reconciliation"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

from billfold.domain.exceptions import DuplicatePaymentError, FailureReason, LedgerOperationError
from billfold.domain.models import Actual, Forecasted, PaymentStatus, ServicePayment
from billfold.domain.reconciliation import ReconciliationService, due_date, services_total


def paid(service_id, month, year, amount, transaction_id=None, status=PaymentStatus.PAID):
    return ServicePayment(
        service_id=service_id,
        payment_date=date(year, month, 1),
        amount=Decimal(amount),
        month=month,
        year=year,
        status=status,
        transaction_id=transaction_id,
    )


@pytest.fixture
def mock_ledger(sample_services):
    ledger = Mock()
    ledger.list_services.return_value = sample_services
    ledger.list_service_payments.return_value = []
    return ledger


def test_services_total_mixes_actual_and_forecast(sample_services):
    """Rent paid at 1450, internet unpaid at its estimate; inactive gym ignored"""
    payments = [
        paid("svc_rent", 3, 2025, "1450.00"),
        paid("svc_internet", 2, 2025, "50.00"),  # other month
        paid("svc_gym", 3, 2025, "30.00"),  # inactive service
    ]
    total = services_total(sample_services, payments, 3, 2025)

    assert Actual("svc_rent", Decimal("1450.00")) in total.entries
    assert Forecasted("svc_internet", Decimal("45.50")) in total.entries
    assert len(total.entries) == 2
    assert total.actual_total == Decimal("1450.00")
    assert total.forecast_total == Decimal("45.50")
    assert total.total == Decimal("1495.50")


def test_services_total_ignores_non_paid_rows(sample_services):
    payments = [paid("svc_rent", 3, 2025, "1.00", status=PaymentStatus.PENDING)]
    total = services_total(sample_services, payments, 3, 2025)

    assert Forecasted("svc_rent", Decimal("1500.00")) in total.entries
    assert total.actual_total == Decimal("0")


def test_due_date_clamps_to_short_months(sample_services):
    internet = sample_services[1]
    assert due_date(internet, 2, 2025) == date(2025, 2, 28)
    assert due_date(internet, 1, 2025) == date(2025, 1, 31)


def test_status_for_missing_payment_is_none(mock_ledger):
    service = ReconciliationService(mock_ledger)
    service.reload()
    assert service.status_for("svc_rent", 3, 2025) is None


def test_effective_status_turns_overdue_after_due_date(mock_ledger, sample_services):
    service = ReconciliationService(mock_ledger)
    service.reload()
    internet = sample_services[1]

    assert service.effective_status(internet, 2, 2025, date(2025, 2, 28)) == PaymentStatus.PENDING
    assert service.effective_status(internet, 2, 2025, date(2025, 3, 1)) == PaymentStatus.OVERDUE


def test_effective_status_uses_stored_row(mock_ledger, sample_services):
    mock_ledger.list_service_payments.return_value = [paid("svc_rent", 3, 2025, "1500")]
    service = ReconciliationService(mock_ledger)
    service.reload()

    assert service.effective_status(sample_services[0], 3, 2025, date(2025, 4, 30)) == PaymentStatus.PAID


def test_mark_paid_updates_on_conflict(mock_ledger):
    """Duplicate insert turns into an update of the existing row"""
    mock_ledger.insert_service_payment.side_effect = DuplicatePaymentError("exists")
    mock_ledger.get_service_payment.return_value = paid("svc_rent", 3, 2025, "1490", "txn_1")
    service = ReconciliationService(mock_ledger)

    payment = service.mark_paid("svc_rent", 3, 2025, Decimal("1490"), "txn_1")

    mock_ledger.update_service_payment.assert_called_once_with(
        "svc_rent",
        3,
        2025,
        amount=Decimal("1490"),
        payment_date=date(2025, 3, 1),
        transaction_id="txn_1",
        status="paid",
    )
    assert payment.amount == Decimal("1490")
    assert service.status_for("svc_rent", 3, 2025) is payment


def test_mark_paid_failure_leaves_view_untouched(mock_ledger):
    mock_ledger.insert_service_payment.side_effect = LedgerOperationError(FailureReason.UNAVAILABLE, "down")
    service = ReconciliationService(mock_ledger)
    service.reload()

    with pytest.raises(LedgerOperationError):
        service.mark_paid("svc_rent", 3, 2025, Decimal("1500"))

    assert service.status_for("svc_rent", 3, 2025) is None
    mock_ledger.update_service_payment.assert_not_called()


def test_unmark_without_payment_is_noop(mock_ledger):
    service = ReconciliationService(mock_ledger)
    service.reload()

    result = service.unmark("svc_rent", 3, 2025)

    assert result.removed is False
    mock_ledger.delete_service_payment.assert_not_called()
    mock_ledger.delete_transaction.assert_not_called()


def test_unmark_cascade_failure_does_not_block_payment_removal(mock_ledger):
    mock_ledger.list_service_payments.return_value = [paid("svc_rent", 3, 2025, "1500", "txn_9")]
    mock_ledger.delete_transaction.side_effect = LedgerOperationError(FailureReason.UNAVAILABLE, "down")
    service = ReconciliationService(mock_ledger)
    service.reload()

    result = service.unmark("svc_rent", 3, 2025, delete_transaction=True)

    assert result.removed is True
    assert result.linked_transaction.ok is False
    assert result.linked_transaction.reason == "unavailable"
    mock_ledger.delete_service_payment.assert_called_once_with("svc_rent", 3, 2025)
    assert service.status_for("svc_rent", 3, 2025) is None


def test_unmark_can_keep_linked_transaction(mock_ledger):
    mock_ledger.list_service_payments.return_value = [paid("svc_rent", 3, 2025, "1500", "txn_9")]
    service = ReconciliationService(mock_ledger)
    service.reload()

    result = service.unmark("svc_rent", 3, 2025, delete_transaction=False)

    assert result.removed is True
    assert result.linked_transaction is None
    mock_ledger.delete_transaction.assert_not_called()


def test_unmark_primary_failure_raises(mock_ledger):
    mock_ledger.list_service_payments.return_value = [paid("svc_rent", 3, 2025, "1500")]
    mock_ledger.delete_service_payment.side_effect = LedgerOperationError(FailureReason.UNAVAILABLE, "down")
    service = ReconciliationService(mock_ledger)
    service.reload()

    with pytest.raises(LedgerOperationError):
        service.unmark("svc_rent", 3, 2025)

    assert service.status_for("svc_rent", 3, 2025) is not None
