"""
IPD (in-patient department)

Admissions and everything recorded under them: consultant register,
operations, charge lines and payments. Once an admission is discharged
all of it is read-only; the capability object is resolved per request by
get_admission_scope and checked by every mutating endpoint.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from database.connection import get_db
from database.models import (
    User, Organization, Patient, Doctor, Charge, Operation,
    IpdAdmission, IpdConsultation, IpdOperation, IpdCharge, IpdPayment,
)
from api.auth import get_current_user, get_active_organization
from api.common import (
    paginate, money, iso, write_audit, require_patient, patient_block, generate_number,
)
from billing import (
    AdmissionCapabilities, ColumnSelection, DischargeStatus, Discount, InvalidTransition, Mutation,
    PaymentMode, PaymentValidationError, compute_bill_totals, combine_totals, quantize,
    summarize_ipd_payments, validate_payment, soft_delete, restore, permanently_delete,
)
from billing.calculator import BillTotals
from billing.ledger import ensure_credit_available
from billing.lifecycle import get_or_404
from billing.documents import build_receipt
from billing.formatting import format_currency
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Type
from datetime import date, datetime
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ipd", tags=["IPD"])

# ==================== PYDANTIC MODELS ====================

class AdmissionRequest(BaseModel):
    patient_id: str
    doctor_id: Optional[str] = None
    case_details: Optional[str] = None
    diagnosis: List[str] = []
    casualty: bool = False
    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    reference_from: Optional[str] = None
    bed_label: Optional[str] = None
    notes: Optional[str] = None
    medical_history: Optional[str] = None
    admission_date: Optional[datetime] = None

class DischargeRequest(BaseModel):
    discharge_status: DischargeStatus
    discharge_date: Optional[datetime] = None
    discharge_info: dict = Field(default_factory=dict, description="Summary, advice, referral hospital, cause...")

    @model_validator(mode='after')
    def check_status(self):
        if self.discharge_status == DischargeStatus.PENDING:
            raise ValueError('discharge_status must be normal, referral or death')
        return self

class ConsultationRequest(BaseModel):
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None
    applied_date: date
    consultation_date: date
    consultation_time: Optional[str] = None
    consultation_details: Optional[str] = None

    @model_validator(mode='after')
    def check_doctor(self):
        if not self.doctor_id and not self.doctor_name:
            raise ValueError('doctor_id or doctor_name is required')
        return self

class OperationRequest(BaseModel):
    operation_id: str
    operation_date: datetime
    doctors: List[str] = Field(..., min_length=1)
    anaesthetist: List[str] = []
    anaesthesia_type: Optional[str] = None
    operation_details: Optional[str] = None
    support_staff: List[str] = []

class ChargeLineRequest(BaseModel):
    charge_id: Optional[str] = None
    charge_name: Optional[str] = None
    qty: int = Field(1, ge=1)
    standard_charge: Optional[Decimal] = Field(None, description="Defaults to the catalog charge amount")
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = Field(None, description="Defaults to the charge's tax category")
    note: Optional[str] = None

class IpdPaymentRequest(BaseModel):
    amount: Decimal
    mode: str = "Cash"
    reference_no: Optional[str] = None
    note: Optional[str] = None
    payment_date: Optional[datetime] = None
    to_credit: bool = Field(False, description="Top up the credit limit instead of settling charges")

# ==================== DEPENDENCY: Admission scope ====================

class AdmissionScope:
    """Admission of the current request plus what may still be changed under it"""

    def __init__(self, admission: IpdAdmission, organization: Organization):
        self.admission = admission
        self.organization = organization
        self.capabilities = AdmissionCapabilities.for_admission(admission)

    def require(self, mutation: Mutation) -> None:
        self.capabilities.require(mutation)


async def get_admission_scope(
    admission_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
) -> AdmissionScope:
    query = db.query(IpdAdmission).options(joinedload(IpdAdmission.patient)).filter(
        IpdAdmission.organization_id == organization.id,
        IpdAdmission.is_deleted.is_(False)
    )
    admission = get_or_404(query, IpdAdmission, admission_id, "Admission")
    return AdmissionScope(admission, organization)

# ==================== HELPER FUNCTIONS ====================

def register_actions(record, capabilities: AdmissionCapabilities) -> List[str]:
    if capabilities.read_only:
        return []
    if record.is_deleted:
        return ["restore", "permanent_delete"]
    return ["edit", "delete"]


def child_record(db: Session, scope: AdmissionScope, model: Type, record_id: str, label: str):
    query = db.query(model).filter(model.admission_id == scope.admission.id)
    return get_or_404(query, model, record_id, label)


def lookup_doctor(db: Session, organization: Organization, doctor_id: Optional[str]) -> Optional[Doctor]:
    if not doctor_id:
        return None
    doctor = db.query(Doctor).filter(
        Doctor.id == doctor_id,
        Doctor.organization_id == organization.id,
        Doctor.is_deleted.is_(False)
    ).first()
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor


def total_charges(admission: IpdAdmission) -> Decimal:
    return sum((Decimal(str(c.net_amount)) for c in admission.charges), Decimal("0"))


def payment_summary(admission: IpdAdmission, payments=None):
    return summarize_ipd_payments(
        total_charges(admission),
        admission.payments if payments is None else payments,
        admission.credit_limit or 0
    )


def line_totals(line: IpdCharge) -> BillTotals:
    base = Decimal(str(line.total_amount))
    discount = Decimal(str(line.discount_amount))
    return BillTotals(
        base_amount=base,
        discount_amount=discount,
        taxable_amount=base - discount,
        tax_percent=Decimal(str(line.tax_percent)),
        tax_amount=Decimal(str(line.tax_amount)),
        net_amount=Decimal(str(line.net_amount)),
    )


def check_ipd_payment(scope: AdmissionScope, request: IpdPaymentRequest, exclude_id: Optional[str] = None) -> Decimal:
    """Validate a new or edited payment against the admission's credit"""
    amount = validate_payment(request.amount, request.mode, request.reference_no)
    if request.to_credit and request.mode == PaymentMode.CREDIT.value:
        raise PaymentValidationError("A credit top-up cannot be paid from credit", field="mode")
    if request.mode == PaymentMode.CREDIT.value:
        others = [p for p in scope.admission.payments if p.id != exclude_id]
        ensure_credit_available(payment_summary(scope.admission, others), amount)
    return amount


def ensure_credit_covered(admission: IpdAdmission, payments) -> None:
    """Removing/shrinking a top-up must not leave spent credit above the limit"""
    if payment_summary(admission, payments).available_credit < 0:
        raise PaymentValidationError(
            "Credit already used exceeds the remaining credit limit", field="to_credit"
        )


def serialize_admission(admission: IpdAdmission, with_details: bool = False) -> dict:
    capabilities = AdmissionCapabilities.for_admission(admission)
    row = {
        "id": admission.id,
        "case_id": admission.case_id,
        "patient_id": admission.patient_id,
        "patient_name": admission.patient.name if admission.patient else None,
        "doctor_id": admission.doctor_id,
        "doctor_name": admission.doctor.name if admission.doctor else None,
        "bed_label": admission.bed_label,
        "case_details": admission.case_details,
        "diagnosis": admission.diagnosis or [],
        "casualty": admission.casualty,
        "reference_from": admission.reference_from,
        "credit_limit": money(admission.credit_limit),
        "admission_date": iso(admission.admission_date),
        "discharge_date": iso(admission.discharge_date),
        "discharge_status": admission.discharge_status,
        "capabilities": capabilities.to_dict(),
    }
    if with_details:
        row["notes"] = admission.notes
        row["medical_history"] = admission.medical_history
        row["discharge_info"] = admission.discharge_info or {}
        row["payment_summary"] = payment_summary(admission).rounded()
    return row


def serialize_consultation(c: IpdConsultation, capabilities: AdmissionCapabilities) -> dict:
    return {
        "id": c.id,
        "doctor_id": c.doctor_id,
        "doctor_name": c.doctor_name,
        "applied_date": iso(c.applied_date),
        "consultation_date": iso(c.consultation_date),
        "consultation_time": c.consultation_time,
        "consultation_details": c.consultation_details,
        "is_deleted": c.is_deleted,
        "actions": register_actions(c, capabilities),
    }


def serialize_operation(o: IpdOperation, capabilities: AdmissionCapabilities) -> dict:
    return {
        "id": o.id,
        "operation_id": o.operation_id,
        "operation_name": o.operation.name if o.operation else None,
        "operation_date": iso(o.operation_date),
        "doctors": o.doctors or [],
        "anaesthetist": o.anaesthetist or [],
        "anaesthesia_type": o.anaesthesia_type,
        "operation_details": o.operation_details,
        "support_staff": o.support_staff or [],
        "is_deleted": o.is_deleted,
        "actions": register_actions(o, capabilities),
    }


def serialize_charge_line(line: IpdCharge, capabilities: AdmissionCapabilities) -> dict:
    return {
        "id": line.id,
        "charge_id": line.charge_id,
        "charge_name": line.charge_name,
        "qty": line.qty,
        "standard_charge": money(line.standard_charge),
        "total_amount": money(line.total_amount),
        "discount_percent": money(line.discount_percent) if line.discount_percent is not None else None,
        "discount_amount": money(line.discount_amount),
        "tax_percent": money(line.tax_percent),
        "tax_amount": money(line.tax_amount),
        "net_amount": money(line.net_amount),
        "note": line.note,
        "created_at": iso(line.created_at),
        "actions": [] if capabilities.read_only else ["delete"],
    }


def serialize_ipd_payment(p: IpdPayment, capabilities: AdmissionCapabilities) -> dict:
    return {
        "id": p.id,
        "payment_date": iso(p.payment_date),
        "mode": p.mode,
        "amount": money(p.amount),
        "reference_no": p.reference_no,
        "note": p.note,
        "to_credit": p.to_credit,
        "actions": ["print"] if capabilities.read_only else ["edit", "delete", "print"],
    }

# ==================== ADMISSIONS ====================

@router.post("/admissions", response_model=dict, status_code=201)
async def create_admission(
    request: AdmissionRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """🛏️ Admit a patient"""
    patient = require_patient(db, organization, request.patient_id)
    open_admission = db.query(IpdAdmission).filter(
        IpdAdmission.patient_id == patient.id,
        IpdAdmission.discharge_status == DischargeStatus.PENDING.value,
        IpdAdmission.is_deleted.is_(False)
    ).first()
    if open_admission:
        raise HTTPException(status_code=400, detail="Patient is already admitted")

    doctor = lookup_doctor(db, organization, request.doctor_id)

    admission = IpdAdmission(
        organization_id=organization.id,
        case_id=generate_number(db, IpdAdmission, IpdAdmission.case_id, "IPD"),
        **request.model_dump(exclude={"admission_date", "doctor_id"}),
        doctor_id=doctor.id if doctor else None,
        admission_date=request.admission_date or datetime.now(),
        discharge_status=DischargeStatus.PENDING.value
    )
    patient.is_admitted = True
    db.add(admission)
    db.flush()

    write_audit(db, organization, current_user, "PATIENT_ADMITTED", "ipd_admission", admission.id,
                {"case_id": admission.case_id, "patient_id": patient.id})
    db.commit()
    db.refresh(admission)
    logger.info("Admission %s opened for patient %s", admission.case_id, patient.id)

    return {"status": "success", "message": "Patient admitted", "admission": serialize_admission(admission, True)}


@router.get("/admissions", response_model=dict)
async def list_admissions(
    search: Optional[str] = Query(None, description="Patient name or case id"),
    discharge_status: Optional[DischargeStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(IpdAdmission).options(
        joinedload(IpdAdmission.patient), joinedload(IpdAdmission.doctor)
    ).join(Patient, IpdAdmission.patient_id == Patient.id).filter(
        IpdAdmission.organization_id == organization.id,
        IpdAdmission.is_deleted.is_(False)
    )
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Patient.name.ilike(term), IpdAdmission.case_id.ilike(term)))
    if discharge_status:
        query = query.filter(IpdAdmission.discharge_status == discharge_status.value)

    admissions, pagination = paginate(query.order_by(IpdAdmission.admission_date.desc()), page, limit)
    return {
        "status": "success",
        "admissions": [serialize_admission(a) for a in admissions],
        "pagination": pagination
    }


@router.get("/admissions/{admission_id}", response_model=dict)
async def get_admission(
    scope: AdmissionScope = Depends(get_admission_scope)
):
    """Admission with capabilities and payment summary"""
    return {"status": "success", "admission": serialize_admission(scope.admission, True)}


@router.post("/admissions/{admission_id}/discharge", response_model=dict)
async def discharge_admission(
    request: DischargeRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    🏁 DISCHARGE

    pending -> normal / referral / death. Everything under the admission
    becomes read-only afterwards.
    """
    admission = scope.admission
    if admission.discharge_status != DischargeStatus.PENDING.value:
        raise InvalidTransition(f"Patient already discharged ({admission.discharge_status})")

    admission.discharge_status = request.discharge_status.value
    admission.discharge_date = request.discharge_date or datetime.now()
    admission.discharge_info = request.discharge_info
    if admission.patient:
        admission.patient.is_admitted = False

    write_audit(db, scope.organization, current_user, "PATIENT_DISCHARGED", "ipd_admission", admission.id,
                {"discharge_status": admission.discharge_status})
    db.commit()
    db.refresh(admission)

    return {
        "status": "success",
        "message": f"Patient discharged ({admission.discharge_status})",
        "admission": serialize_admission(admission, True)
    }

# ==================== CONSULTANT REGISTER ====================

@router.get("/admissions/{admission_id}/consultations", response_model=dict)
async def list_consultations(
    show_deleted: bool = Query(False),
    fields: Optional[str] = Query(None, description="Comma separated visible columns"),
    scope: AdmissionScope = Depends(get_admission_scope),
    db: Session = Depends(get_db)
):
    selection = ColumnSelection.from_query("ipd_consultations", fields)
    query = db.query(IpdConsultation).filter(IpdConsultation.admission_id == scope.admission.id)
    if not show_deleted:
        query = query.filter(IpdConsultation.is_deleted.is_(False))
    rows = query.order_by(IpdConsultation.consultation_date.desc()).all()

    return {
        "status": "success",
        "columns": selection.to_dict(),
        "capabilities": scope.capabilities.to_dict(),
        "consultations": [selection.project(serialize_consultation(c, scope.capabilities)) for c in rows]
    }


@router.post("/admissions/{admission_id}/consultations", response_model=dict, status_code=201)
async def add_consultation(
    request: ConsultationRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.ADD)
    doctor = lookup_doctor(db, scope.organization, request.doctor_id)

    consultation = IpdConsultation(
        organization_id=scope.organization.id,
        admission_id=scope.admission.id,
        **request.model_dump(exclude={"doctor_id", "doctor_name"}),
        doctor_id=doctor.id if doctor else None,
        doctor_name=doctor.name if doctor else request.doctor_name
    )
    db.add(consultation)
    db.flush()
    write_audit(db, scope.organization, current_user, "CONSULTATION_ADDED", "ipd_consultation", consultation.id)
    db.commit()
    db.refresh(consultation)

    return {
        "status": "success",
        "message": "Consultation added",
        "consultation": serialize_consultation(consultation, scope.capabilities)
    }


@router.get("/admissions/{admission_id}/consultations/{consultation_id}", response_model=dict)
async def get_consultation(
    consultation_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    db: Session = Depends(get_db)
):
    consultation = child_record(db, scope, IpdConsultation, consultation_id, "Consultation")
    return {"status": "success", "consultation": serialize_consultation(consultation, scope.capabilities)}


@router.put("/admissions/{admission_id}/consultations/{consultation_id}", response_model=dict)
async def update_consultation(
    consultation_id: str,
    request: ConsultationRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.EDIT)
    consultation = child_record(db, scope, IpdConsultation, consultation_id, "Consultation")
    if consultation.is_deleted:
        raise InvalidTransition("Restore the consultation before editing it")
    doctor = lookup_doctor(db, scope.organization, request.doctor_id)

    for key, value in request.model_dump(exclude={"doctor_id", "doctor_name"}).items():
        setattr(consultation, key, value)
    consultation.doctor_id = doctor.id if doctor else None
    consultation.doctor_name = doctor.name if doctor else request.doctor_name

    write_audit(db, scope.organization, current_user, "CONSULTATION_UPDATED", "ipd_consultation", consultation.id)
    db.commit()
    db.refresh(consultation)
    return {
        "status": "success",
        "message": "Consultation updated",
        "consultation": serialize_consultation(consultation, scope.capabilities)
    }


@router.delete("/admissions/{admission_id}/consultations/{consultation_id}", response_model=dict)
async def delete_consultation(
    consultation_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.DELETE)
    consultation = child_record(db, scope, IpdConsultation, consultation_id, "Consultation")
    message = soft_delete(consultation, "Consultation")
    write_audit(db, scope.organization, current_user, "CONSULTATION_DELETED", "ipd_consultation", consultation.id)
    db.commit()
    return {"status": "success", "message": message}


@router.post("/admissions/{admission_id}/consultations/{consultation_id}/restore", response_model=dict)
async def restore_consultation(
    consultation_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.RESTORE)
    consultation = child_record(db, scope, IpdConsultation, consultation_id, "Consultation")
    message = restore(consultation, "Consultation")
    write_audit(db, scope.organization, current_user, "CONSULTATION_RESTORED", "ipd_consultation", consultation.id)
    db.commit()
    return {"status": "success", "message": message}


@router.delete("/admissions/{admission_id}/consultations/{consultation_id}/permanent", response_model=dict)
async def purge_consultation(
    consultation_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.DELETE)
    consultation = child_record(db, scope, IpdConsultation, consultation_id, "Consultation")
    message = permanently_delete(db, consultation, "Consultation")
    write_audit(db, scope.organization, current_user, "CONSULTATION_PURGED", "ipd_consultation", consultation_id)
    db.commit()
    return {"status": "success", "message": message}

# ==================== OPERATIONS ====================

@router.get("/admissions/{admission_id}/operations", response_model=dict)
async def list_operations(
    show_deleted: bool = Query(False),
    fields: Optional[str] = Query(None, description="Comma separated visible columns"),
    scope: AdmissionScope = Depends(get_admission_scope),
    db: Session = Depends(get_db)
):
    selection = ColumnSelection.from_query("ipd_operations", fields)
    query = db.query(IpdOperation).options(joinedload(IpdOperation.operation)).filter(
        IpdOperation.admission_id == scope.admission.id
    )
    if not show_deleted:
        query = query.filter(IpdOperation.is_deleted.is_(False))
    rows = query.order_by(IpdOperation.operation_date.desc()).all()

    return {
        "status": "success",
        "columns": selection.to_dict(),
        "capabilities": scope.capabilities.to_dict(),
        "operations": [selection.project(serialize_operation(o, scope.capabilities)) for o in rows]
    }


def require_catalog_operation(db: Session, organization: Organization, operation_id: str) -> Operation:
    operation = db.query(Operation).filter(
        Operation.id == operation_id,
        Operation.organization_id == organization.id,
        Operation.is_deleted.is_(False)
    ).first()
    if not operation:
        raise HTTPException(status_code=404, detail="Operation not found")
    return operation


@router.post("/admissions/{admission_id}/operations", response_model=dict, status_code=201)
async def add_operation(
    request: OperationRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """🔪 Record an operation performed during the stay"""
    scope.require(Mutation.ADD)
    require_catalog_operation(db, scope.organization, request.operation_id)

    record = IpdOperation(
        organization_id=scope.organization.id,
        admission_id=scope.admission.id,
        **request.model_dump()
    )
    db.add(record)
    db.flush()
    write_audit(db, scope.organization, current_user, "OPERATION_ADDED", "ipd_operation", record.id)
    db.commit()
    db.refresh(record)

    return {"status": "success", "message": "Operation added", "operation": serialize_operation(record, scope.capabilities)}


@router.get("/admissions/{admission_id}/operations/{record_id}", response_model=dict)
async def get_operation(
    record_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    db: Session = Depends(get_db)
):
    record = child_record(db, scope, IpdOperation, record_id, "Operation")
    return {"status": "success", "operation": serialize_operation(record, scope.capabilities)}


@router.put("/admissions/{admission_id}/operations/{record_id}", response_model=dict)
async def update_operation(
    record_id: str,
    request: OperationRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.EDIT)
    record = child_record(db, scope, IpdOperation, record_id, "Operation")
    if record.is_deleted:
        raise InvalidTransition("Restore the operation before editing it")
    require_catalog_operation(db, scope.organization, request.operation_id)

    for key, value in request.model_dump().items():
        setattr(record, key, value)
    write_audit(db, scope.organization, current_user, "OPERATION_UPDATED", "ipd_operation", record.id)
    db.commit()
    db.refresh(record)
    return {"status": "success", "message": "Operation updated", "operation": serialize_operation(record, scope.capabilities)}


@router.delete("/admissions/{admission_id}/operations/{record_id}", response_model=dict)
async def delete_operation(
    record_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.DELETE)
    record = child_record(db, scope, IpdOperation, record_id, "Operation")
    message = soft_delete(record, "Operation")
    write_audit(db, scope.organization, current_user, "OPERATION_DELETED", "ipd_operation", record.id)
    db.commit()
    return {"status": "success", "message": message}


@router.post("/admissions/{admission_id}/operations/{record_id}/restore", response_model=dict)
async def restore_operation(
    record_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.RESTORE)
    record = child_record(db, scope, IpdOperation, record_id, "Operation")
    message = restore(record, "Operation")
    write_audit(db, scope.organization, current_user, "OPERATION_RESTORED", "ipd_operation", record.id)
    db.commit()
    return {"status": "success", "message": message}


@router.delete("/admissions/{admission_id}/operations/{record_id}/permanent", response_model=dict)
async def purge_operation(
    record_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.DELETE)
    record = child_record(db, scope, IpdOperation, record_id, "Operation")
    message = permanently_delete(db, record, "Operation")
    write_audit(db, scope.organization, current_user, "OPERATION_PURGED", "ipd_operation", record_id)
    db.commit()
    return {"status": "success", "message": message}

# ==================== CHARGES ====================

@router.get("/admissions/{admission_id}/charges", response_model=dict)
async def list_charges(
    scope: AdmissionScope = Depends(get_admission_scope)
):
    """Charge lines and their combined totals"""
    lines = sorted(scope.admission.charges, key=lambda c: c.created_at or datetime.min)
    totals = combine_totals(line_totals(line) for line in lines)
    return {
        "status": "success",
        "capabilities": scope.capabilities.to_dict(),
        "charges": [serialize_charge_line(line, scope.capabilities) for line in lines],
        "totals": {key: float(value) for key, value in totals.rounded().items()}
    }


@router.post("/admissions/{admission_id}/charges", response_model=dict, status_code=201)
async def add_charge(
    request: ChargeLineRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    ➕ ADD CHARGE

    total = standard charge * qty, then the shared discount/tax calculation
    """
    scope.require(Mutation.ADD)

    charge = None
    if request.charge_id:
        charge = db.query(Charge).filter(
            Charge.id == request.charge_id,
            Charge.organization_id == scope.organization.id,
            Charge.is_deleted.is_(False)
        ).first()
        if not charge:
            raise HTTPException(status_code=404, detail="Charge not found")

    standard = request.standard_charge if request.standard_charge is not None else (charge.amount if charge else None)
    name = request.charge_name or (charge.name if charge else None)
    if standard is None or not name:
        raise HTTPException(status_code=400, detail="charge_id or charge_name with standard_charge is required")

    tax_percent = request.tax_percent
    if tax_percent is None:
        tax_percent = charge.tax_category.percent if charge and charge.tax_category else 0

    discount = Discount.from_request(request.discount_amount, request.discount_percent)
    totals = compute_bill_totals(Decimal(str(standard)) * request.qty, discount, tax_percent).rounded()

    line = IpdCharge(
        organization_id=scope.organization.id,
        admission_id=scope.admission.id,
        charge_id=charge.id if charge else None,
        charge_name=name,
        qty=request.qty,
        standard_charge=quantize(standard),
        total_amount=totals["base_amount"],
        discount_percent=discount.value if discount.kind == Discount.PERCENT else None,
        discount_amount=totals["discount_amount"],
        tax_percent=totals["tax_percent"],
        tax_amount=totals["tax_amount"],
        net_amount=totals["net_amount"],
        note=request.note
    )
    db.add(line)
    db.flush()
    write_audit(db, scope.organization, current_user, "IPD_CHARGE_ADDED", "ipd_charge", line.id,
                {"net_amount": money(line.net_amount)})
    db.commit()
    db.refresh(line)

    return {"status": "success", "message": "Charge added", "charge": serialize_charge_line(line, scope.capabilities)}


@router.delete("/admissions/{admission_id}/charges/{line_id}", response_model=dict)
async def delete_charge(
    line_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.DELETE)
    line = child_record(db, scope, IpdCharge, line_id, "Charge")
    scope.admission.charges.remove(line)
    write_audit(db, scope.organization, current_user, "IPD_CHARGE_DELETED", "ipd_charge", line_id)
    db.commit()
    return {"status": "success", "message": "Charge deleted"}

# ==================== PAYMENTS ====================

@router.get("/admissions/{admission_id}/payments", response_model=dict)
async def list_payments(
    fields: Optional[str] = Query(None, description="Comma separated visible columns"),
    scope: AdmissionScope = Depends(get_admission_scope)
):
    selection = ColumnSelection.from_query("ipd_payments", fields)
    return {
        "status": "success",
        "columns": selection.to_dict(),
        "capabilities": scope.capabilities.to_dict(),
        "payments": [
            selection.project(serialize_ipd_payment(p, scope.capabilities))
            for p in scope.admission.payments
        ],
        "summary": payment_summary(scope.admission).rounded()
    }


@router.get("/admissions/{admission_id}/payments/summary", response_model=dict)
async def get_payment_summary(
    scope: AdmissionScope = Depends(get_admission_scope)
):
    """
    💰 PAYMENT SUMMARY

    - total charges: sum of charge lines (net)
    - credit limit: admission limit + credit top-ups
    - balance: charges - payments - used credit (negative = advance)
    """
    return {"status": "success", "summary": payment_summary(scope.admission).rounded()}


@router.post("/admissions/{admission_id}/payments", response_model=dict, status_code=201)
async def add_payment(
    request: IpdPaymentRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.ADD)
    amount = check_ipd_payment(scope, request)

    payment = IpdPayment(
        organization_id=scope.organization.id,
        amount=quantize(amount),
        mode=request.mode,
        reference_no=(request.reference_no or "").strip() or None,
        note=request.note,
        to_credit=request.to_credit,
        payment_date=request.payment_date or datetime.now()
    )
    scope.admission.payments.append(payment)
    db.flush()

    write_audit(db, scope.organization, current_user, "IPD_PAYMENT_ADDED", "ipd_payment", payment.id,
                {"amount": money(payment.amount), "mode": payment.mode, "to_credit": payment.to_credit})
    db.commit()
    db.refresh(payment)
    logger.info("IPD payment %s recorded on admission %s", payment.id, scope.admission.id)

    return {
        "status": "success",
        "message": "Credit limit increased" if payment.to_credit else "Payment recorded",
        "payment": serialize_ipd_payment(payment, scope.capabilities),
        "summary": payment_summary(scope.admission).rounded()
    }


@router.put("/admissions/{admission_id}/payments/{payment_id}", response_model=dict)
async def update_payment(
    payment_id: str,
    request: IpdPaymentRequest,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """✏️ Edit a payment; re-validated against the remaining credit"""
    scope.require(Mutation.EDIT)
    payment = child_record(db, scope, IpdPayment, payment_id, "Payment")
    amount = check_ipd_payment(scope, request, exclude_id=payment.id)

    payment.amount = quantize(amount)
    payment.mode = request.mode
    payment.reference_no = (request.reference_no or "").strip() or None
    payment.note = request.note
    payment.to_credit = request.to_credit
    if request.payment_date:
        payment.payment_date = request.payment_date
    ensure_credit_covered(scope.admission, scope.admission.payments)

    write_audit(db, scope.organization, current_user, "IPD_PAYMENT_UPDATED", "ipd_payment", payment.id,
                {"amount": money(payment.amount), "mode": payment.mode})
    db.commit()
    db.refresh(payment)
    return {
        "status": "success",
        "message": "Payment updated",
        "payment": serialize_ipd_payment(payment, scope.capabilities),
        "summary": payment_summary(scope.admission).rounded()
    }


@router.delete("/admissions/{admission_id}/payments/{payment_id}", response_model=dict)
async def delete_payment(
    payment_id: str,
    scope: AdmissionScope = Depends(get_admission_scope),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scope.require(Mutation.DELETE)
    payment = child_record(db, scope, IpdPayment, payment_id, "Payment")
    ensure_credit_covered(scope.admission, [p for p in scope.admission.payments if p.id != payment.id])

    scope.admission.payments.remove(payment)
    write_audit(db, scope.organization, current_user, "IPD_PAYMENT_DELETED", "ipd_payment", payment_id)
    db.commit()
    return {
        "status": "success",
        "message": "Payment deleted",
        "summary": payment_summary(scope.admission).rounded()
    }


@router.get("/admissions/{admission_id}/receipt", response_model=dict)
async def admission_receipt(
    scope: AdmissionScope = Depends(get_admission_scope)
):
    """🧾 IPD bill: charge lines, totals and payment history"""
    admission = scope.admission
    summary = payment_summary(admission)
    lines = sorted(admission.charges, key=lambda c: c.created_at or datetime.min)
    specialization = None
    if admission.doctor and admission.doctor.specialization:
        specialization = ", ".join(admission.doctor.specialization)

    receipt = build_receipt(
        title="IPD Bill",
        organization=scope.organization,
        number=admission.case_id,
        issued_at=admission.discharge_date or datetime.now(),
        patient=patient_block(admission.patient),
        lines=[
            {
                "description": line.charge_name,
                "qty": line.qty,
                "unit_price": format_currency(line.standard_charge),
                "discount": format_currency(line.discount_amount),
                "tax": format_currency(line.tax_amount),
                "amount": format_currency(line.net_amount),
            }
            for line in lines
        ],
        totals=combine_totals(line_totals(line) for line in lines),
        paid_amount=summary.total_paid + summary.used_credit,
        balance_amount=summary.balance,
        payments=[p for p in admission.payments if not p.to_credit],
        doctor_name=admission.doctor.name if admission.doctor else None,
        doctor_specialization=specialization,
        status=admission.discharge_status,
    )
    receipt["credit"] = {
        "credit_limit": format_currency(summary.credit_limit),
        "used_credit": format_currency(summary.used_credit),
        "available_credit": format_currency(summary.available_credit),
    }
    return {"status": "success", "receipt": receipt}
