from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_
from database.connection import get_db
from database.models import User, Organization, Patient
from api.auth import get_current_user, get_active_organization
from api.common import paginate, iso, write_audit
from billing import soft_delete, restore
from billing.lifecycle import get_or_404, visible
from pydantic import BaseModel, Field, EmailStr
from typing import Optional
from datetime import date

router = APIRouter(prefix="/api/patients", tags=["Patients"])

# ==================== PYDANTIC MODELS ====================

class PatientRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    gender: str = Field(..., description="male/female/other")
    dob: Optional[date] = None
    email: Optional[EmailStr] = None
    mobile_number: str = Field(..., min_length=10, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    area_or_pin: Optional[str] = None
    blood_group: Optional[str] = Field(None, description="A+, B+, O+, etc.")
    referred_by_dr: Optional[str] = None

    class Config:
        str_strip_whitespace = True

# ==================== HELPER FUNCTIONS ====================

def serialize_patient(patient: Patient) -> dict:
    return {
        "id": patient.id,
        "name": patient.name,
        "gender": patient.gender,
        "dob": iso(patient.dob),
        "email": patient.email,
        "mobile_number": patient.mobile_number,
        "address": patient.address,
        "city": patient.city,
        "state": patient.state,
        "area_or_pin": patient.area_or_pin,
        "blood_group": patient.blood_group,
        "referred_by_dr": patient.referred_by_dr,
        "is_admitted": patient.is_admitted,
        "is_deleted": patient.is_deleted,
    }

# ==================== ENDPOINTS ====================

@router.get("", response_model=dict)
async def list_patients(
    search: Optional[str] = Query(None, description="Name or mobile"),
    show_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = visible(db.query(Patient).filter(Patient.organization_id == organization.id), Patient, show_deleted)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Patient.name.ilike(term), Patient.mobile_number.ilike(term)))

    patients, pagination = paginate(query.order_by(Patient.created_at.desc()), page, limit)
    return {
        "status": "success",
        "patients": [serialize_patient(p) for p in patients],
        "pagination": pagination
    }


@router.post("", response_model=dict, status_code=201)
async def create_patient(
    request: PatientRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    patient = Patient(organization_id=organization.id, **request.model_dump())
    db.add(patient)
    db.flush()
    write_audit(db, organization, current_user, "PATIENT_CREATED", "patient", patient.id)
    db.commit()
    db.refresh(patient)
    return {"status": "success", "message": "Patient registered", "patient": serialize_patient(patient)}


@router.get("/{patient_id}", response_model=dict)
async def get_patient(
    patient_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(Patient).filter(Patient.organization_id == organization.id)
    patient = get_or_404(query, Patient, patient_id, "Patient")
    return {"status": "success", "patient": serialize_patient(patient)}


@router.put("/{patient_id}", response_model=dict)
async def update_patient(
    patient_id: str,
    request: PatientRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(Patient).filter(Patient.organization_id == organization.id)
    patient = get_or_404(query, Patient, patient_id, "Patient")
    for key, value in request.model_dump().items():
        setattr(patient, key, value)
    write_audit(db, organization, current_user, "PATIENT_UPDATED", "patient", patient.id)
    db.commit()
    db.refresh(patient)
    return {"status": "success", "message": "Patient updated", "patient": serialize_patient(patient)}


@router.delete("/{patient_id}", response_model=dict)
async def delete_patient(
    patient_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(Patient).filter(Patient.organization_id == organization.id)
    patient = get_or_404(query, Patient, patient_id, "Patient")
    message = soft_delete(patient, "Patient")
    write_audit(db, organization, current_user, "PATIENT_DELETED", "patient", patient.id)
    db.commit()
    return {"status": "success", "message": message}


@router.post("/{patient_id}/restore", response_model=dict)
async def restore_patient(
    patient_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(Patient).filter(Patient.organization_id == organization.id)
    patient = get_or_404(query, Patient, patient_id, "Patient")
    message = restore(patient, "Patient")
    write_audit(db, organization, current_user, "PATIENT_RESTORED", "patient", patient.id)
    db.commit()
    return {"status": "success", "message": message}
