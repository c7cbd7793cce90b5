from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from database.connection import get_db
from database.models import User, Organization, Doctor, Appointment
from api.auth import get_current_user, get_active_organization
from api.common import paginate, iso, write_audit, require_patient
from billing.lifecycle import get_or_404
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])

# ==================== PYDANTIC MODELS ====================

class AppointmentRequest(BaseModel):
    patient_id: str
    doctor_id: str
    appointment_date: date
    appointment_time: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$", description="HH:MM")
    reason: Optional[str] = None
    notes: Optional[str] = None
    is_follow_up: bool = False

    class Config:
        str_strip_whitespace = True

class AppointmentUpdateRequest(BaseModel):
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    status: Optional[str] = Field(None, min_length=1, max_length=20, description="scheduled/completed/cancelled/...")
    notes: Optional[str] = None

    class Config:
        str_strip_whitespace = True

# ==================== HELPER FUNCTIONS ====================

def appointment_query(db: Session, organization: Organization):
    return db.query(Appointment).options(
        joinedload(Appointment.patient), joinedload(Appointment.doctor)
    ).filter(Appointment.organization_id == organization.id)


def serialize_appointment(appointment: Appointment) -> dict:
    return {
        "id": appointment.id,
        "patient_id": appointment.patient_id,
        "patient_name": appointment.patient.name if appointment.patient else None,
        "doctor_id": appointment.doctor_id,
        "doctor_name": appointment.doctor.name if appointment.doctor else None,
        "appointment_date": iso(appointment.appointment_date),
        "appointment_time": appointment.appointment_time,
        "status": appointment.status,
        "reason": appointment.reason,
        "notes": appointment.notes,
        "is_follow_up": appointment.is_follow_up,
    }

# ==================== ENDPOINTS ====================

@router.get("", response_model=dict)
async def list_appointments(
    patient_id: Optional[str] = Query(None),
    doctor_id: Optional[str] = Query(None),
    on_date: Optional[date] = Query(None, alias="date"),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """📅 Appointment list, newest day first"""
    query = appointment_query(db, organization)
    if patient_id:
        query = query.filter(Appointment.patient_id == patient_id)
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if on_date:
        query = query.filter(Appointment.appointment_date == on_date)
    if status:
        query = query.filter(Appointment.status == status)

    query = query.order_by(Appointment.appointment_date.desc(), Appointment.appointment_time)
    appointments, pagination = paginate(query, page, limit)
    return {
        "status": "success",
        "appointments": [serialize_appointment(a) for a in appointments],
        "pagination": pagination
    }


@router.post("", response_model=dict, status_code=201)
async def create_appointment(
    request: AppointmentRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    patient = require_patient(db, organization, request.patient_id)
    doctor = db.query(Doctor).filter(
        Doctor.id == request.doctor_id,
        Doctor.organization_id == organization.id,
        Doctor.is_deleted.is_(False)
    ).first()
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")

    appointment = Appointment(
        organization_id=organization.id,
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=request.appointment_date,
        appointment_time=request.appointment_time,
        reason=request.reason,
        notes=request.notes,
        is_follow_up=request.is_follow_up,
        scheduled_by=current_user.id,
    )
    db.add(appointment)
    db.flush()
    write_audit(db, organization, current_user, "APPOINTMENT_CREATED", "appointment", appointment.id)
    db.commit()
    db.refresh(appointment)
    return {"status": "success", "message": "Appointment scheduled", "appointment": serialize_appointment(appointment)}


@router.get("/{appointment_id}", response_model=dict)
async def get_appointment(
    appointment_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    appointment = get_or_404(appointment_query(db, organization), Appointment, appointment_id, "Appointment")
    return {"status": "success", "appointment": serialize_appointment(appointment)}


@router.put("/{appointment_id}", response_model=dict)
async def update_appointment(
    appointment_id: str,
    request: AppointmentUpdateRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """Reschedule or change status; any status text is accepted"""
    appointment = get_or_404(appointment_query(db, organization), Appointment, appointment_id, "Appointment")

    updates = request.model_dump(exclude_none=True)
    for key, value in updates.items():
        setattr(appointment, key, value)

    write_audit(db, organization, current_user, "APPOINTMENT_UPDATED", "appointment", appointment.id,
                {"fields": sorted(updates.keys())})
    db.commit()
    db.refresh(appointment)
    return {"status": "success", "message": "Appointment updated", "appointment": serialize_appointment(appointment)}
