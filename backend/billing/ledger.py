"""
Payment / balance tracking for bill-like aggregates

    total_paid = prior_paid + sum(new payments)
    due        = net - total_paid
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

from .calculator import Number, ZERO, quantize, to_decimal
from .exceptions import PaymentValidationError


# ==================== ENUMS ====================

class PaymentMode(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"
    CHEQUE = "Cheque"
    BANK_TRANSFER = "Bank Transfer"
    ONLINE = "Online"
    CREDIT = "Credit"  # IPD only: spend from the admission credit limit


class BillStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class BillAction(str, Enum):
    EDIT = "edit"
    DELETE = "delete"
    PAY = "pay"
    PRINT = "print"


# ==================== VALIDATION ====================

def validate_payment(amount: Number, mode: str, reference_no: Optional[str] = None) -> Decimal:
    """
    Check a payment before it is accepted.

    - amount must be > 0 once rounded to the stored 2 decimals
    - every mode other than Cash needs a reference number

    Returns the amount as it will be stored.
    """
    try:
        mode = PaymentMode(mode)
    except ValueError:
        raise PaymentValidationError(f"Unsupported payment mode '{mode}'", field="mode")

    amount = quantize(to_decimal(amount, "amount"))
    if amount <= 0:
        raise PaymentValidationError("Please enter a valid amount", field="amount")

    if mode != PaymentMode.CASH and not (reference_no or "").strip():
        raise PaymentValidationError(
            f"Reference number is required for {mode.value} payments",
            field="reference_no",
        )
    return amount


def ensure_within_balance(net_amount: Number, paid_amount: Number, amount: Number) -> None:
    """Bills never accept more than what is still due"""
    due = due_amount(net_amount, paid_amount)
    if to_decimal(amount) > due:
        raise PaymentValidationError(
            f"Payment of {quantize(amount)} exceeds the balance of {quantize(due)}",
            field="amount",
        )


# ==================== BALANCE ====================

def total_paid(prior_paid: Number, amounts: Iterable[Number] = ()) -> Decimal:
    total = to_decimal(prior_paid)
    for amount in amounts:
        total += to_decimal(amount)
    return total


def due_amount(net_amount: Number, paid_amount: Number) -> Decimal:
    return to_decimal(net_amount) - to_decimal(paid_amount)


def derive_bill_status(net_amount: Number, paid_amount: Number) -> BillStatus:
    net = to_decimal(net_amount)
    paid = to_decimal(paid_amount)

    if paid >= net:
        # a zero-value bill is settled on creation
        return BillStatus.PAID
    if paid > 0:
        return BillStatus.PARTIALLY_PAID
    return BillStatus.PENDING


def bill_actions(status: str) -> List[str]:
    """Actions a user may take on a bill row in its current state"""
    status = BillStatus(status)
    actions = []
    if status == BillStatus.PENDING:
        actions += [BillAction.EDIT.value, BillAction.DELETE.value]
    if status != BillStatus.PAID:
        actions.append(BillAction.PAY.value)
    actions.append(BillAction.PRINT.value)
    return actions


def can(status: str, action: BillAction) -> bool:
    return action.value in bill_actions(status)


# ==================== IPD ====================

@dataclass(frozen=True)
class IpdPaymentSummary:
    total_charges: Decimal
    total_paid: Decimal
    credit_limit: Decimal
    used_credit: Decimal
    available_credit: Decimal
    balance: Decimal

    def rounded(self) -> dict:
        return {key: quantize(value) for key, value in self.__dict__.items()}


def summarize_ipd_payments(
    total_charges: Number,
    payments: Iterable,
    base_credit_limit: Number = 0,
) -> IpdPaymentSummary:
    """
    Payments carry `amount`, `mode` and `to_credit`.

    - to_credit rows raise the credit limit, they do not settle charges
    - Credit-mode rows spend from the credit limit and settle charges
    - everything else is an ordinary payment
    """
    paid = ZERO
    used_credit = ZERO
    credit_limit = to_decimal(base_credit_limit)

    for payment in payments:
        amount = to_decimal(_attr(payment, "amount"))
        if _attr(payment, "to_credit"):
            credit_limit += amount
        elif _attr(payment, "mode") == PaymentMode.CREDIT.value:
            used_credit += amount
        else:
            paid += amount

    charges = to_decimal(total_charges)
    return IpdPaymentSummary(
        total_charges=charges,
        total_paid=paid,
        credit_limit=credit_limit,
        used_credit=used_credit,
        available_credit=credit_limit - used_credit,
        balance=charges - paid - used_credit,
    )


def ensure_credit_available(summary: IpdPaymentSummary, amount: Number) -> None:
    if to_decimal(amount) > summary.available_credit:
        raise PaymentValidationError(
            f"Credit payment exceeds the available credit of {quantize(summary.available_credit)}",
            field="amount",
        )


def _attr(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)
