from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from database.connection import get_db
from database.models import User, Staff, Doctor, Organization, UserRole
from api.auth import get_current_user, get_active_organization, hash_password
from api.common import paginate, money, iso, write_audit
from billing import ColumnSelection, soft_delete, restore
from billing.lifecycle import get_or_404
from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator
from typing import List, Optional
from datetime import date
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/employees", tags=["Employees"])

# ==================== PYDANTIC MODELS ====================

class DoctorData(BaseModel):
    specialization: List[str] = Field(..., min_length=1)
    qualification: str = Field(..., min_length=2)
    experience: str = Field(..., min_length=1)
    consultation_fee: Decimal = Field(..., ge=0)
    availability: Optional[str] = None

class CreateEmployeeRequest(BaseModel):
    """Employee onboarding form"""
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.STAFF
    mobile_number: Optional[str] = Field(None, min_length=10, max_length=15)
    gender: str = Field(..., description="male/female/other")
    dob: Optional[date] = None
    department: Optional[str] = None
    joining_date: Optional[date] = None
    address: Optional[str] = None
    doctor_data: Optional[DoctorData] = None

    @model_validator(mode='after')
    def check_doctor_data(self):
        if self.role == UserRole.DOCTOR and self.doctor_data is None:
            raise ValueError('doctor_data is required when role is doctor')
        return self

    class Config:
        str_strip_whitespace = True

class UpdateEmployeeRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    role: Optional[UserRole] = None
    mobile_number: Optional[str] = Field(None, min_length=10, max_length=15)
    gender: Optional[str] = None
    dob: Optional[date] = None
    department: Optional[str] = None
    joining_date: Optional[date] = None
    address: Optional[str] = None
    doctor_data: Optional[DoctorData] = None

    @field_validator('name', 'role', 'gender', mode='before')
    @classmethod
    def not_null(cls, value):
        # omitted means unchanged; these columns are required on the row
        if value is None:
            raise ValueError('cannot be null')
        return value

    class Config:
        str_strip_whitespace = True

class ToggleEmployeeRequest(BaseModel):
    is_deleted: bool

# ==================== HELPER FUNCTIONS ====================

def employee_query(db: Session, organization: Organization):
    return db.query(Staff).options(
        joinedload(Staff.user), joinedload(Staff.doctor)
    ).join(User, Staff.user_id == User.id).filter(
        Staff.organization_id == organization.id
    )


def serialize_employee(staff: Staff) -> dict:
    doctor = staff.doctor
    return {
        "id": staff.id,
        "user_id": staff.user_id,
        "name": staff.user.name,
        "email": staff.user.email,
        "role": staff.user.role,
        "mobile_number": staff.mobile_number,
        "gender": staff.gender,
        "dob": iso(staff.dob),
        "department": staff.department,
        "joining_date": iso(staff.joining_date),
        "address": staff.address,
        "specialization": ", ".join(doctor.specialization or []) if doctor else None,
        "qualification": doctor.qualification if doctor else None,
        "experience": doctor.experience if doctor else None,
        "consultation_fee": money(doctor.consultation_fee) if doctor else None,
        "status": "Inactive" if staff.is_deleted else "Active",
        "is_deleted": staff.is_deleted,
        "actions": ["restore"] if staff.is_deleted else ["edit", "delete"],
    }


def upsert_doctor(db: Session, staff: Staff, data: DoctorData) -> Doctor:
    doctor = staff.doctor
    if doctor is None:
        doctor = Doctor(organization_id=staff.organization_id, staff_id=staff.id)
        db.add(doctor)
        staff.doctor = doctor
    doctor.specialization = data.specialization
    doctor.qualification = data.qualification
    doctor.experience = data.experience
    doctor.consultation_fee = data.consultation_fee
    doctor.availability = data.availability
    return doctor


def set_employee_deleted(staff: Staff, deleted: bool) -> str:
    if deleted:
        message = soft_delete(staff, "Employee")
        if staff.doctor and not staff.doctor.is_deleted:
            soft_delete(staff.doctor, "Doctor")
    else:
        message = restore(staff, "Employee")
        if staff.doctor and staff.doctor.is_deleted:
            restore(staff.doctor, "Doctor")
    staff.user.is_active = not deleted
    return message


# ==================== ENDPOINTS ====================

@router.get("", response_model=dict)
async def list_employees(
    search: Optional[str] = Query(None, description="Name, email or mobile"),
    show_deleted: bool = Query(False),
    fields: Optional[str] = Query(None, description="Comma separated visible columns"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """👥 Employee list with search, pagination and column selection"""
    selection = ColumnSelection.from_query("employees", fields)

    query = employee_query(db, organization)
    if not show_deleted:
        query = query.filter(Staff.is_deleted.is_(False))
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            User.name.ilike(term),
            User.email.ilike(term),
            Staff.mobile_number.ilike(term)
        ))

    staff_rows, pagination = paginate(query.order_by(Staff.created_at.desc()), page, limit)

    return {
        "status": "success",
        "columns": selection.to_dict(),
        "employees": [selection.project(serialize_employee(s)) for s in staff_rows],
        "pagination": pagination
    }


@router.post("", response_model=dict, status_code=201)
async def create_employee(
    request: CreateEmployeeRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """
    📝 EMPLOYEE ONBOARDING

    Creates in one transaction:
    - User account (email + bcrypt password)
    - Staff profile
    - Doctor profile (when doctor_data is given)
    """
    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        user = User(
            organization_id=organization.id,
            name=request.name,
            email=request.email,
            password_hash=hash_password(request.password),
            role=request.role.value,
        )
        db.add(user)
        db.flush()

        staff = Staff(
            organization_id=organization.id,
            user_id=user.id,
            mobile_number=request.mobile_number,
            gender=request.gender,
            dob=request.dob,
            department=request.department,
            joining_date=request.joining_date or date.today(),
            address=request.address,
            created_by=current_user.id,
        )
        db.add(staff)
        db.flush()

        if request.doctor_data:
            upsert_doctor(db, staff, request.doctor_data)

        write_audit(db, organization, current_user, "EMPLOYEE_CREATED", "staff", staff.id,
                    {"email": request.email, "role": request.role.value})
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Employee creation failed for %s", request.email)
        raise

    db.refresh(staff)
    return {
        "status": "success",
        "message": "Employee created successfully",
        "employee": serialize_employee(staff)
    }


@router.get("/{staff_id}", response_model=dict)
async def get_employee(
    staff_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    staff = get_or_404(employee_query(db, organization), Staff, staff_id, "Employee")
    return {"status": "success", "employee": serialize_employee(staff)}


@router.put("/{staff_id}", response_model=dict)
async def update_employee(
    staff_id: str,
    request: UpdateEmployeeRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """✏️ Update staff details; creates the doctor profile if it does not exist yet"""
    staff = get_or_404(employee_query(db, organization), Staff, staff_id, "Employee")
    if request.role == UserRole.DOCTOR and staff.doctor is None and request.doctor_data is None:
        raise HTTPException(status_code=400, detail="doctor_data is required when role is doctor")

    updates = request.model_dump(exclude_unset=True, exclude={"doctor_data", "name", "role"})
    for key, value in updates.items():
        setattr(staff, key, value)
    if request.name is not None:
        staff.user.name = request.name
    if request.role is not None:
        staff.user.role = request.role.value
    if request.doctor_data:
        upsert_doctor(db, staff, request.doctor_data)

    write_audit(db, organization, current_user, "EMPLOYEE_UPDATED", "staff", staff.id,
                {"fields": sorted(request.model_dump(exclude_unset=True).keys())})
    db.commit()
    db.refresh(staff)

    return {
        "status": "success",
        "message": "Employee updated successfully",
        "employee": serialize_employee(staff)
    }


@router.delete("/{staff_id}", response_model=dict)
async def delete_employee(
    staff_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """🗑️ Soft delete: staff and doctor profile are hidden, login is disabled"""
    staff = get_or_404(employee_query(db, organization), Staff, staff_id, "Employee")
    message = set_employee_deleted(staff, True)

    write_audit(db, organization, current_user, "EMPLOYEE_DELETED", "staff", staff.id)
    db.commit()
    return {"status": "success", "message": message}


@router.patch("/{staff_id}", response_model=dict)
async def toggle_employee(
    staff_id: str,
    request: ToggleEmployeeRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """Deactivate / reactivate an employee"""
    staff = get_or_404(employee_query(db, organization), Staff, staff_id, "Employee")
    message = set_employee_deleted(staff, request.is_deleted)

    write_audit(db, organization, current_user,
                "EMPLOYEE_DEACTIVATED" if request.is_deleted else "EMPLOYEE_REACTIVATED",
                "staff", staff.id)
    db.commit()
    db.refresh(staff)
    return {"status": "success", "message": message, "employee": serialize_employee(staff)}
