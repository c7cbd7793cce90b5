"""
Bill total calculator

One calculation shared by ambulance bookings, pathology/radiology bills
and IPD charges:

    taxable = base - discount
    tax     = taxable * tax_percent / 100
    net     = taxable + tax

A discount is either a flat amount or a percentage of the base. Both
forms are resolved to an amount before tax is applied.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from .exceptions import BillingValidationError

Number = Union[int, float, str, Decimal]

HUNDRED = Decimal("100")
ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Optional[Number], field: str = "amount") -> Decimal:
    """Convert user/database input to Decimal without float noise"""
    if value is None:
        return ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise BillingValidationError(f"{field} must be a number", field=field)
    if not result.is_finite():
        raise BillingValidationError(f"{field} must be a number", field=field)
    return result


def quantize(value: Number) -> Decimal:
    """Round to 2 decimals, half up. Only used at storage/display time."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ==================== DISCOUNT ====================

class Discount:
    """Flat or percentage discount"""

    FLAT = "flat"
    PERCENT = "percent"

    def __init__(self, kind: str, value: Number):
        if kind not in (self.FLAT, self.PERCENT):
            raise BillingValidationError(f"Unknown discount type '{kind}'", field="discount_type")
        value = to_decimal(value, "discount")
        if value < 0:
            raise BillingValidationError("Discount cannot be negative", field="discount")
        if kind == self.PERCENT and value > HUNDRED:
            raise BillingValidationError("Discount percent cannot exceed 100", field="discount")
        self.kind = kind
        self.value = value

    @classmethod
    def flat(cls, amount: Number) -> "Discount":
        return cls(cls.FLAT, amount)

    @classmethod
    def percent(cls, percent: Number) -> "Discount":
        return cls(cls.PERCENT, percent)

    @classmethod
    def none(cls) -> "Discount":
        return cls(cls.FLAT, ZERO)

    @classmethod
    def from_request(cls, amount: Optional[Number] = None, percent: Optional[Number] = None) -> "Discount":
        """Build from the two optional request fields; only one may be set"""
        if amount is not None and percent is not None:
            raise BillingValidationError(
                "Give either discount_amount or discount_percent, not both",
                field="discount_percent",
            )
        if percent is not None:
            return cls.percent(percent)
        return cls.flat(amount or ZERO)

    def resolve(self, base: Number) -> Decimal:
        base = to_decimal(base, "base_amount")
        if self.kind == self.PERCENT:
            return base * self.value / HUNDRED
        return self.value

    def __eq__(self, other):
        return isinstance(other, Discount) and (self.kind, self.value) == (other.kind, other.value)

    def __repr__(self):
        return f"Discount({self.kind}={self.value})"


# ==================== TOTALS ====================

@dataclass(frozen=True)
class BillTotals:
    base_amount: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    net_amount: Decimal

    def rounded(self) -> dict:
        return {
            "base_amount": quantize(self.base_amount),
            "discount_amount": quantize(self.discount_amount),
            "taxable_amount": quantize(self.taxable_amount),
            "tax_percent": quantize(self.tax_percent),
            "tax_amount": quantize(self.tax_amount),
            "net_amount": quantize(self.net_amount),
        }


def compute_bill_totals(
    base_amount: Number,
    discount: Optional[Discount] = None,
    tax_percent: Number = 0,
) -> BillTotals:
    base = to_decimal(base_amount, "base_amount")
    tax_pct = to_decimal(tax_percent, "tax_percent")

    if base < 0:
        raise BillingValidationError("Base amount cannot be negative", field="base_amount")
    if tax_pct < 0:
        raise BillingValidationError("Tax percent cannot be negative", field="tax_percent")
    if tax_pct > HUNDRED:
        raise BillingValidationError("Tax percent cannot exceed 100", field="tax_percent")

    discount_amount = (discount or Discount.none()).resolve(base)
    if discount_amount > base:
        raise BillingValidationError("Discount cannot exceed the bill amount", field="discount")

    taxable = base - discount_amount
    tax = taxable * tax_pct / HUNDRED

    return BillTotals(
        base_amount=base,
        discount_amount=discount_amount,
        taxable_amount=taxable,
        tax_percent=tax_pct,
        tax_amount=tax,
        net_amount=taxable + tax,
    )


def sum_line_items(items: Iterable) -> Decimal:
    """Base amount of a bill from (qty, unit_price) lines or objects with those attributes"""
    total = ZERO
    for item in items:
        if isinstance(item, dict):
            qty, price = item.get("qty", 1), item.get("unit_price")
        else:
            qty, price = getattr(item, "qty", 1), getattr(item, "unit_price")
        qty = to_decimal(qty, "qty")
        price = to_decimal(price, "unit_price")
        if qty <= 0:
            raise BillingValidationError("Quantity must be positive", field="qty")
        if price < 0:
            raise BillingValidationError("Unit price cannot be negative", field="unit_price")
        total += qty * price
    return total


def combine_totals(totals: Iterable[BillTotals]) -> BillTotals:
    """Add up several lines (IPD charges). tax_percent of the result is the effective rate."""
    base = discount = taxable = tax = net = ZERO
    for t in totals:
        base += t.base_amount
        discount += t.discount_amount
        taxable += t.taxable_amount
        tax += t.tax_amount
        net += t.net_amount

    effective = (tax * HUNDRED / taxable) if taxable else ZERO
    return BillTotals(
        base_amount=base,
        discount_amount=discount,
        taxable_amount=taxable,
        tax_percent=effective,
        tax_amount=tax,
        net_amount=net,
    )
