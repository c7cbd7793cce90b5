"""
Shared router helpers: pagination, audit trail, bill payments and
serialization of money/date values.
"""
from fastapi import HTTPException
from sqlalchemy.orm import Session, Query
from database.models import AuditLog, Organization, Patient, User
from billing import (
    BillAction,
    BillTotals,
    InvalidTransition,
    BillingValidationError,
    bill_actions,
    derive_bill_status,
    due_amount,
    ensure_within_balance,
    quantize,
    total_paid,
    validate_payment,
)
from billing.ledger import can
from pydantic import BaseModel, Field
from typing import Optional, Type
from datetime import datetime
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

# ==================== PYDANTIC MODELS ====================

class PaymentRequest(BaseModel):
    amount: Decimal
    mode: str = Field("Cash", description="Cash/Card/UPI/Cheque/Bank Transfer/Online")
    reference_no: Optional[str] = None
    note: Optional[str] = None
    payment_date: Optional[datetime] = None

class DiscountRequest(BaseModel):
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None

# ==================== HELPER FUNCTIONS ====================

def money(value) -> float:
    return float(quantize(value or 0))


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def paginate(query: Query, page: int, limit: int):
    """Returns (rows, pagination block)"""
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit
    }


def write_audit(
    db: Session,
    organization: Organization,
    user: Optional[User],
    action: str,
    entity_type: str,
    entity_id: str,
    details: Optional[dict] = None
) -> None:
    # caller commits
    db.add(AuditLog(
        organization_id=organization.id,
        user_id=user.id if user else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details=details or {}
    ))


def require_patient(db: Session, organization: Organization, patient_id: str) -> Patient:
    patient = db.query(Patient).filter(
        Patient.id == patient_id,
        Patient.organization_id == organization.id,
        Patient.is_deleted.is_(False)
    ).first()
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


def patient_block(patient: Patient) -> dict:
    return {
        "id": patient.id,
        "name": patient.name,
        "gender": patient.gender,
        "mobile_number": patient.mobile_number,
        "address": patient.address,
    }


def generate_number(db: Session, model: Type, column, prefix: str) -> str:
    """PREFIX-YYYYMM-XXXX, sequence restarts every month"""
    year_month = datetime.now().strftime("%Y%m")
    last = db.query(model).filter(
        column.like(f"{prefix}-{year_month}-%")
    ).order_by(column.desc()).first()

    if last:
        new_num = int(getattr(last, column.key).split("-")[-1]) + 1
    else:
        new_num = 1
    return f"{prefix}-{year_month}-{new_num:04d}"

# ==================== BILL TOTALS & PAYMENTS ====================

def apply_totals(bill, totals: BillTotals) -> None:
    """Copy calculated totals onto a bill-like row (base column is set by the caller)"""
    rounded = totals.rounded()
    bill.discount_amount = rounded["discount_amount"]
    bill.tax_percent = rounded["tax_percent"]
    bill.tax_amount = rounded["tax_amount"]
    bill.net_amount = rounded["net_amount"]
    if bill.paid_amount is not None and quantize(bill.paid_amount) > rounded["net_amount"]:
        raise BillingValidationError(
            "Net amount cannot be lower than what has already been paid",
            field="discount"
        )
    refresh_bill_balance(bill)


def refresh_bill_balance(bill) -> None:
    """Recompute paid_amount and payment_status from the bill's payment rows"""
    bill.paid_amount = quantize(total_paid(0, [p.amount for p in bill.payments]))
    bill.payment_status = derive_bill_status(bill.net_amount, bill.paid_amount).value


def bill_balance(bill) -> Decimal:
    return quantize(due_amount(bill.net_amount, bill.paid_amount or 0))


def require_action(bill, action: BillAction, label: str = "Bill") -> None:
    if not can(bill.payment_status, action):
        raise InvalidTransition(
            f"{label} is {bill.payment_status.replace('_', ' ')}: {action.value} is not allowed"
        )


def add_bill_payment(bill, payment_model: Type, organization: Organization, request: PaymentRequest, label: str = "Bill"):
    """Validate and attach a payment, then refresh the bill's balance and status"""
    require_action(bill, BillAction.PAY, label)
    amount = validate_payment(request.amount, request.mode, request.reference_no)
    ensure_within_balance(bill.net_amount, bill.paid_amount or 0, amount)

    payment = payment_model(
        organization_id=organization.id,
        amount=quantize(amount),
        mode=request.mode,
        reference_no=(request.reference_no or "").strip() or None,
        note=request.note,
        payment_date=request.payment_date or datetime.now()
    )
    bill.payments.append(payment)
    refresh_bill_balance(bill)
    logger.info("Payment of %s recorded on %s %s", payment.amount, label.lower(), bill.id)
    return payment


def remove_bill_payment(bill, payment_id: str, label: str = "Bill"):
    payment = next((p for p in bill.payments if p.id == payment_id), None)
    if payment is None:
        return None
    bill.payments.remove(payment)
    refresh_bill_balance(bill)
    logger.info("Payment %s removed from %s %s", payment_id, label.lower(), bill.id)
    return payment


def serialize_payment(payment) -> dict:
    return {
        "id": payment.id,
        "payment_date": iso(payment.payment_date),
        "amount": money(payment.amount),
        "mode": payment.mode,
        "reference_no": payment.reference_no,
        "note": payment.note,
    }


def billing_block(bill) -> dict:
    """Money fields + status + row actions shared by every bill-like aggregate"""
    return {
        "discount_amount": money(bill.discount_amount),
        "tax_percent": money(bill.tax_percent),
        "tax_amount": money(bill.tax_amount),
        "net_amount": money(bill.net_amount),
        "paid_amount": money(bill.paid_amount),
        "balance_amount": money(bill_balance(bill)),
        "payment_status": bill.payment_status,
        "actions": bill_actions(bill.payment_status),
    }


def bill_totals_of(bill, base_amount) -> BillTotals:
    """Rebuild a BillTotals from stored columns (for receipts)"""
    base = Decimal(str(base_amount))
    discount = Decimal(str(bill.discount_amount or 0))
    return BillTotals(
        base_amount=base,
        discount_amount=discount,
        taxable_amount=base - discount,
        tax_percent=Decimal(str(bill.tax_percent or 0)),
        tax_amount=Decimal(str(bill.tax_amount or 0)),
        net_amount=Decimal(str(bill.net_amount or 0)),
    )
