from decimal import Decimal

import pytest

from billing import (
    BillStatus,
    PaymentValidationError,
    bill_actions,
    derive_bill_status,
    ensure_within_balance,
    summarize_ipd_payments,
    total_paid,
    validate_payment,
)
from billing.ledger import BillAction, can, ensure_credit_available


# ==================== PAYMENT VALIDATION ====================

def test_cash_payment_needs_no_reference():
    assert validate_payment("100", "Cash") == Decimal("100")


@pytest.mark.parametrize("amount", [0, -5, "0.00", "0.004"])
def test_payment_amount_must_be_positive(amount):
    with pytest.raises(PaymentValidationError) as exc:
        validate_payment(amount, "Cash")
    assert exc.value.field == "amount"


def test_payment_amount_is_rounded_to_cents():
    assert validate_payment("10.005", "Cash") == Decimal("10.01")


@pytest.mark.parametrize("reference", [None, "", "   "])
def test_non_cash_payment_needs_reference(reference):
    with pytest.raises(PaymentValidationError) as exc:
        validate_payment(100, "UPI", reference)
    assert exc.value.field == "reference_no"


def test_unknown_payment_mode_is_rejected():
    with pytest.raises(PaymentValidationError) as exc:
        validate_payment(100, "Bitcoin", "abc")
    assert exc.value.field == "mode"


# ==================== BALANCE & STATUS ====================

def test_status_follows_paid_amount():
    assert derive_bill_status(1568, 0) == BillStatus.PENDING
    assert derive_bill_status(1568, 1000) == BillStatus.PARTIALLY_PAID
    assert derive_bill_status(1568, 1568) == BillStatus.PAID


def test_zero_value_bill_is_paid():
    assert derive_bill_status(0, 0) == BillStatus.PAID


def test_two_payments_settle_a_bill():
    paid = total_paid(0, [1000])
    assert derive_bill_status(1568, paid) == BillStatus.PARTIALLY_PAID

    paid = total_paid(paid, ["568"])
    assert paid == Decimal("1568")
    assert derive_bill_status(1568, paid) == BillStatus.PAID


def test_overpayment_is_rejected():
    ensure_within_balance(1568, 1000, 568)

    with pytest.raises(PaymentValidationError) as exc:
        ensure_within_balance(1568, 1000, "568.01")
    assert "exceeds the balance of 568.00" in exc.value.message


def test_actions_per_status():
    assert bill_actions("pending") == ["edit", "delete", "pay", "print"]
    assert bill_actions("partially_paid") == ["pay", "print"]
    assert bill_actions("paid") == ["print"]

    assert can("pending", BillAction.DELETE)
    assert not can("paid", BillAction.PAY)


# ==================== IPD ====================

def test_ipd_summary_separates_payments_top_ups_and_credit():
    payments = [
        {"amount": 1000, "mode": "Cash", "to_credit": False},
        {"amount": 2000, "mode": "Cash", "to_credit": True},
        {"amount": 1500, "mode": "Credit", "to_credit": False},
    ]

    summary = summarize_ipd_payments(5000, payments, base_credit_limit=1000)

    assert summary.total_paid == Decimal("1000")
    assert summary.credit_limit == Decimal("3000")
    assert summary.used_credit == Decimal("1500")
    assert summary.available_credit == Decimal("1500")
    assert summary.balance == Decimal("2500")


def test_ipd_advance_leaves_negative_balance():
    summary = summarize_ipd_payments(1000, [{"amount": 2000, "mode": "Cash", "to_credit": False}])

    assert summary.balance == Decimal("-1000")
    assert summary.rounded()["balance"] == Decimal("-1000.00")


def test_credit_payment_limited_to_available_credit():
    summary = summarize_ipd_payments(5000, [], base_credit_limit=1500)

    ensure_credit_available(summary, 1500)
    with pytest.raises(PaymentValidationError):
        ensure_credit_available(summary, 1600)
