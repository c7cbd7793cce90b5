"""
Pathology and radiology billing

Both departments bill the same way (test lines, bill-level discount and
tax, partial payments), so their routers are built by one factory.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_, func
from database.connection import get_db
from database.models import (
    User, Organization, Patient, Doctor,
    PathologyBill, PathologyBillItem, PathologyPayment, PathologyResult,
    RadiologyBill, RadiologyBillItem, RadiologyPayment, RadiologyResult,
)
from api.auth import get_current_user, get_active_organization
from api.common import (
    PaymentRequest, DiscountRequest, paginate, money, iso, write_audit, require_patient,
    patient_block, generate_number, apply_totals, add_bill_payment, remove_bill_payment,
    serialize_payment, billing_block, bill_balance, bill_totals_of, require_action,
)
from billing import (
    BillAction, BillStatus, ColumnSelection, Discount, InvalidTransition, RecordNotFound,
    compute_bill_totals, sum_line_items, quantize,
)
from billing.lifecycle import get_or_404
from billing.documents import build_receipt
from billing.formatting import format_currency
from pydantic import BaseModel, Field
from typing import List, Optional, Type
from datetime import date, datetime, time
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

# ==================== PYDANTIC MODELS ====================

class BillItemRequest(BaseModel):
    test_name: str = Field(..., min_length=1, max_length=200)
    qty: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0)

class BillRequest(BaseModel):
    patient_id: str
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None
    remarks: Optional[str] = None
    bill_date: Optional[datetime] = None
    items: List[BillItemRequest] = Field(..., min_length=1)
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    tax_percent: Decimal = Decimal("0")

    # Initial payment
    paid_amount: Decimal = Decimal("0")
    payment_mode: str = "Cash"
    reference_no: Optional[str] = None

class ParameterValue(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    value: str = ""
    unit: Optional[str] = Field(None, description="Unit or reference range")

    class Config:
        str_strip_whitespace = True

class ResultRequest(BaseModel):
    """Test report for one bill line"""
    parameter_values: List[ParameterValue] = Field(..., min_length=1)
    approved_by: str = Field(..., min_length=2, max_length=100)
    approved_at: datetime
    technician_name: Optional[str] = None
    remarks: Optional[str] = None

    class Config:
        str_strip_whitespace = True

# ==================== ROUTER FACTORY ====================

def build_diagnostics_router(
    department: str,
    bill_model: Type,
    item_model: Type,
    payment_model: Type,
    result_model: Type,
    number_prefix: str,
) -> APIRouter:
    """Bill/payment/result/receipt endpoints for one diagnostics department"""
    label = f"{department.capitalize()} bill"
    module = f"{department}_bills"
    router = APIRouter(prefix=f"/api/{department}", tags=[f"{department.capitalize()} Billing"])

    # ==================== HELPER FUNCTIONS ====================

    def bill_query(db: Session, organization: Organization):
        return db.query(bill_model).options(
            joinedload(bill_model.patient), joinedload(bill_model.items)
        ).filter(bill_model.organization_id == organization.id)

    def serialize_bill(bill, with_details: bool = False) -> dict:
        row = {
            "id": bill.id,
            "bill_no": bill.bill_no,
            "patient_id": bill.patient_id,
            "patient_name": bill.patient.name if bill.patient else None,
            "doctor_id": bill.doctor_id,
            "doctor_name": bill.doctor_name,
            "bill_date": iso(bill.bill_date),
            "remarks": bill.remarks,
            "total_amount": money(bill.total_amount),
        }
        row.update(billing_block(bill))
        if with_details:
            row["items"] = [
                {
                    "id": item.id,
                    "test_name": item.test_name,
                    "qty": item.qty,
                    "unit_price": money(item.unit_price),
                    "amount": money(item.amount),
                    "has_result": item.result is not None,
                }
                for item in bill.items
            ]
            row["payments"] = [serialize_payment(p) for p in bill.payments]
        return row

    def resolve_doctor(db: Session, organization: Organization, request: BillRequest):
        if not request.doctor_id:
            return None, request.doctor_name
        doctor = db.query(Doctor).filter(
            Doctor.id == request.doctor_id,
            Doctor.organization_id == organization.id
        ).first()
        if not doctor:
            raise HTTPException(status_code=404, detail="Doctor not found")
        return doctor, doctor.name

    def fill_bill(db: Session, organization: Organization, bill, request: BillRequest) -> None:
        require_patient(db, organization, request.patient_id)
        doctor, doctor_name = resolve_doctor(db, organization, request)

        lines = [item.model_dump() for item in request.items]
        base = sum_line_items(lines)
        totals = compute_bill_totals(
            base,
            Discount.from_request(request.discount_amount, request.discount_percent),
            request.tax_percent
        )

        bill.patient_id = request.patient_id
        bill.doctor_id = doctor.id if doctor else None
        bill.doctor_name = doctor_name
        bill.remarks = request.remarks
        bill.bill_date = request.bill_date or bill.bill_date or datetime.now()
        bill.items = [
            item_model(
                test_name=line["test_name"],
                qty=line["qty"],
                unit_price=quantize(line["unit_price"]),
                amount=quantize(line["qty"] * line["unit_price"]),
            )
            for line in lines
        ]
        bill.total_amount = totals.rounded()["base_amount"]
        apply_totals(bill, totals)

    def load(db: Session, organization: Organization, bill_id: str):
        return get_or_404(bill_query(db, organization), bill_model, bill_id, label)

    # ==================== BILLS ====================

    @router.get("/bills", response_model=dict, name=f"list_{department}_bills")
    async def list_bills(
        search: Optional[str] = Query(None, description="Patient name or bill number"),
        payment_status: Optional[BillStatus] = Query(None),
        fields: Optional[str] = Query(None, description="Comma separated visible columns"),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        selection = ColumnSelection.from_query(module, fields)

        query = bill_query(db, organization).join(Patient, bill_model.patient_id == Patient.id)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(Patient.name.ilike(term), bill_model.bill_no.ilike(term)))
        if payment_status:
            query = query.filter(bill_model.payment_status == payment_status.value)

        bills, pagination = paginate(query.order_by(bill_model.bill_date.desc()), page, limit)
        return {
            "status": "success",
            "columns": selection.to_dict(),
            "bills": [selection.project(serialize_bill(b)) for b in bills],
            "pagination": pagination
        }

    @router.post("/bills", response_model=dict, status_code=201, name=f"create_{department}_bill")
    async def create_bill(
        request: BillRequest,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """
        🧪 CREATE BILL

        - base = sum(qty * unit price)
        - net = (base - discount) + tax
        - optional initial payment
        """
        bill = bill_model(
            organization_id=organization.id,
            bill_no=generate_number(db, bill_model, bill_model.bill_no, number_prefix),
            paid_amount=0
        )
        fill_bill(db, organization, bill, request)
        db.add(bill)
        db.flush()

        if request.paid_amount > 0:
            add_bill_payment(bill, payment_model, organization, PaymentRequest(
                amount=request.paid_amount,
                mode=request.payment_mode,
                reference_no=request.reference_no,
                note="Initial payment"
            ), label)

        write_audit(db, organization, current_user, f"{department.upper()}_BILL_CREATED", module, bill.id,
                    {"bill_no": bill.bill_no, "net_amount": money(bill.net_amount)})
        db.commit()
        db.refresh(bill)
        logger.info("%s %s created", label, bill.bill_no)

        return {"status": "success", "message": f"{label} created", "bill": serialize_bill(bill, True)}

    @router.get("/bills/{bill_id}", response_model=dict, name=f"get_{department}_bill")
    async def get_bill(
        bill_id: str,
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        return {"status": "success", "bill": serialize_bill(load(db, organization, bill_id), True)}

    @router.put("/bills/{bill_id}", response_model=dict, name=f"update_{department}_bill")
    async def update_bill(
        bill_id: str,
        request: BillRequest,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """✏️ Replace lines and totals; only while the bill is pending"""
        bill = load(db, organization, bill_id)
        require_action(bill, BillAction.EDIT, label)
        if any(item.result is not None for item in bill.items):
            raise InvalidTransition(f"{label} has reported results and its tests cannot be changed")

        fill_bill(db, organization, bill, request)
        write_audit(db, organization, current_user, f"{department.upper()}_BILL_UPDATED", module, bill.id)
        db.commit()
        db.refresh(bill)
        return {"status": "success", "message": f"{label} updated", "bill": serialize_bill(bill, True)}

    @router.delete("/bills/{bill_id}", response_model=dict, name=f"delete_{department}_bill")
    async def delete_bill(
        bill_id: str,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        bill = load(db, organization, bill_id)
        require_action(bill, BillAction.DELETE, label)

        db.delete(bill)
        write_audit(db, organization, current_user, f"{department.upper()}_BILL_DELETED", module, bill_id,
                    {"bill_no": bill.bill_no})
        db.commit()
        return {"status": "success", "message": f"{label} deleted"}

    @router.put("/bills/{bill_id}/discount", response_model=dict, name=f"update_{department}_discount")
    async def update_discount(
        bill_id: str,
        request: DiscountRequest,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """Change the discount and recompute tax and net"""
        bill = load(db, organization, bill_id)
        if bill.payment_status == BillStatus.PAID.value:
            raise InvalidTransition(f"{label} is already paid", field="discount")

        totals = compute_bill_totals(
            bill.total_amount,
            Discount.from_request(request.discount_amount, request.discount_percent),
            bill.tax_percent
        )
        apply_totals(bill, totals)

        write_audit(db, organization, current_user, f"{department.upper()}_DISCOUNT_UPDATED", module, bill.id,
                    {"discount_amount": money(bill.discount_amount)})
        db.commit()
        db.refresh(bill)
        return {"status": "success", "message": "Discount updated", "bill": serialize_bill(bill)}

    # ==================== PAYMENTS ====================

    @router.get("/bills/{bill_id}/payments", response_model=dict, name=f"list_{department}_payments")
    async def list_payments(
        bill_id: str,
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        bill = load(db, organization, bill_id)
        return {
            "status": "success",
            "payments": [serialize_payment(p) for p in bill.payments],
            "net_amount": money(bill.net_amount),
            "paid_amount": money(bill.paid_amount),
            "balance_amount": money(bill_balance(bill)),
            "payment_status": bill.payment_status
        }

    @router.post("/bills/{bill_id}/payments", response_model=dict, status_code=201,
                 name=f"add_{department}_payment")
    async def add_payment(
        bill_id: str,
        request: PaymentRequest,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """💳 Record a payment; the bill status follows the balance"""
        bill = load(db, organization, bill_id)
        payment = add_bill_payment(bill, payment_model, organization, request, label)
        db.flush()

        write_audit(db, organization, current_user, f"{department.upper()}_PAYMENT_ADDED", module, bill.id,
                    {"payment_id": payment.id, "amount": money(payment.amount), "mode": payment.mode})
        db.commit()
        db.refresh(bill)
        return {
            "status": "success",
            "message": "Payment recorded",
            "payment": serialize_payment(payment),
            "bill": serialize_bill(bill)
        }

    @router.delete("/bills/{bill_id}/payments/{payment_id}", response_model=dict,
                   name=f"delete_{department}_payment")
    async def delete_payment(
        bill_id: str,
        payment_id: str,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        bill = load(db, organization, bill_id)
        if remove_bill_payment(bill, payment_id, label) is None:
            raise HTTPException(status_code=404, detail="Payment not found")

        write_audit(db, organization, current_user, f"{department.upper()}_PAYMENT_DELETED", module, bill.id,
                    {"payment_id": payment_id})
        db.commit()
        db.refresh(bill)
        return {"status": "success", "message": "Payment deleted", "bill": serialize_bill(bill)}

    @router.get("/payments", response_model=dict, name=f"{department}_payment_register")
    async def payment_register(
        search: Optional[str] = Query(None, description="Patient name, bill number or reference"),
        mode: Optional[str] = Query(None),
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """💰 Every payment received by the department, newest first"""
        query = db.query(payment_model).join(
            bill_model, payment_model.bill_id == bill_model.id
        ).join(
            Patient, bill_model.patient_id == Patient.id
        ).filter(payment_model.organization_id == organization.id)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Patient.name.ilike(term),
                bill_model.bill_no.ilike(term),
                payment_model.reference_no.ilike(term)
            ))
        if mode:
            query = query.filter(payment_model.mode == mode)
        if from_date:
            query = query.filter(payment_model.payment_date >= datetime.combine(from_date, time.min))
        if to_date:
            query = query.filter(payment_model.payment_date <= datetime.combine(to_date, time.max))

        total_received = query.with_entities(func.coalesce(func.sum(payment_model.amount), 0)).scalar()
        payments, pagination = paginate(query.order_by(payment_model.payment_date.desc()), page, limit)
        return {
            "status": "success",
            "payments": [
                {
                    **serialize_payment(p),
                    "bill_id": p.bill_id,
                    "bill_no": p.bill.bill_no,
                    "patient_id": p.bill.patient_id,
                    "patient_name": p.bill.patient.name,
                }
                for p in payments
            ],
            "total_received": money(total_received),
            "pagination": pagination
        }

    # ==================== RESULTS ====================

    def load_item(db: Session, organization: Organization, bill_id: str, item_id: str):
        bill = load(db, organization, bill_id)
        item = next((i for i in bill.items if i.id == item_id), None)
        if item is None:
            raise RecordNotFound("Test not found")
        return bill, item

    def serialize_result(result) -> Optional[dict]:
        if result is None:
            return None
        return {
            "id": result.id,
            "item_id": result.item_id,
            "parameter_values": result.parameter_values,
            "remarks": result.remarks,
            "technician_name": result.technician_name,
            "approved_by": result.approved_by,
            "approved_at": iso(result.approved_at),
            "result_date": iso(result.result_date),
        }

    @router.get("/bills/{bill_id}/items/{item_id}/result", response_model=dict, name=f"get_{department}_result")
    async def get_result(
        bill_id: str,
        item_id: str,
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """Report for one test; null until it has been entered"""
        _, item = load_item(db, organization, bill_id, item_id)
        return {"status": "success", "test_name": item.test_name, "result": serialize_result(item.result)}

    @router.put("/bills/{bill_id}/items/{item_id}/result", response_model=dict, name=f"save_{department}_result")
    async def save_result(
        bill_id: str,
        item_id: str,
        request: ResultRequest,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """
        📋 SAVE TEST REPORT

        - blank parameter values are dropped
        - saving again replaces the stored values
        """
        bill, item = load_item(db, organization, bill_id, item_id)
        values = [v.model_dump() for v in request.parameter_values if v.value]
        if not values:
            raise HTTPException(status_code=400, detail="Enter at least one result value")

        result = item.result
        if result is None:
            result = result_model(organization_id=organization.id)
            item.result = result
        result.parameter_values = values
        result.approved_by = request.approved_by
        result.approved_at = request.approved_at
        result.technician_name = request.technician_name
        result.remarks = request.remarks
        db.flush()

        write_audit(db, organization, current_user, f"{department.upper()}_RESULT_SAVED", module, bill.id,
                    {"item_id": item.id, "test_name": item.test_name})
        db.commit()
        db.refresh(item)
        logger.info("%s result saved for %s on %s", department.capitalize(), item.test_name, bill.bill_no)
        return {"status": "success", "message": "Result saved", "result": serialize_result(item.result)}

    # ==================== RECEIPT ====================

    @router.get("/bills/{bill_id}/receipt", response_model=dict, name=f"{department}_receipt")
    async def bill_receipt(
        bill_id: str,
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        """🧾 Structured bill with payment history"""
        bill = load(db, organization, bill_id)
        specialization = None
        if bill.doctor and bill.doctor.specialization:
            specialization = ", ".join(bill.doctor.specialization)

        receipt = build_receipt(
            title=label.title(),
            organization=organization,
            number=bill.bill_no,
            issued_at=bill.bill_date,
            patient=patient_block(bill.patient),
            lines=[
                {
                    "description": item.test_name,
                    "qty": item.qty,
                    "unit_price": format_currency(item.unit_price),
                    "amount": format_currency(item.amount),
                }
                for item in bill.items
            ],
            totals=bill_totals_of(bill, bill.total_amount),
            paid_amount=bill.paid_amount,
            balance_amount=bill_balance(bill),
            payments=bill.payments,
            doctor_name=bill.doctor_name,
            doctor_specialization=specialization,
            status=bill.payment_status,
        )
        return {"status": "success", "receipt": receipt}

    return router


pathology_router = build_diagnostics_router(
    "pathology", PathologyBill, PathologyBillItem, PathologyPayment, PathologyResult, "PATH"
)
radiology_router = build_diagnostics_router(
    "radiology", RadiologyBill, RadiologyBillItem, RadiologyPayment, RadiologyResult, "RAD"
)
