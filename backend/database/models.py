"""
HMS Billing - Database Models
Multi-tenant schema: every tenant row hangs off organizations.id
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean, Numeric, Date, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
from .connection import Base
import enum
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(12, 2)
Percent = Numeric(5, 2)


def org_fk():
    return Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)


# ============================================
# ENUMS
# ============================================

class UserRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    MEMBER = "member"


class AmbulanceStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class AmbulanceType(str, enum.Enum):
    OWNED = "owned"
    RENTED = "rented"


class BookingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ============================================
# TENANT & USERS
# ============================================

class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    logo = Column(String(500))
    # address / phone / email / org_mode
    metadata_ = Column("metadata", JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    users = relationship("User", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    staff = relationship("Staff", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    patients = relationship("Patient", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    appointments = relationship("Appointment", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    email = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.MEMBER.value)
    image = Column(String(500))
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    organization = relationship("Organization", back_populates="users")
    staff_profile = relationship("Staff", back_populates="user", uselist=False, foreign_keys="Staff.user_id")
    audit_logs = relationship("AuditLog", back_populates="user")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = org_fk()
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    action = Column(String(100))
    entity_type = Column(String(50))
    entity_id = Column(String(50))
    details = Column(JSONType)
    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    user = relationship("User", back_populates="audit_logs")


# ============================================
# EMPLOYEES
# ============================================

class Specialization(Base):
    __tablename__ = "specializations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mobile_number = Column(String(20))
    gender = Column(String(10), nullable=False)
    dob = Column(Date)
    department = Column(String(100))
    joining_date = Column(Date)
    address = Column(Text)
    created_by = Column(String(36))
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    organization = relationship("Organization", back_populates="staff")
    user = relationship("User", back_populates="staff_profile", foreign_keys=[user_id])
    doctor = relationship("Doctor", back_populates="staff", uselist=False, cascade="all, delete-orphan", passive_deletes=True)


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    staff_id = Column(String(36), ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, unique=True)
    specialization = Column(JSONType, nullable=False)  # ["Cardiology", "General"]
    qualification = Column(String(200), nullable=False)
    experience = Column(String(50), nullable=False)
    consultation_fee = Column(Money, nullable=False)
    availability = Column(Text)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    staff = relationship("Staff", back_populates="doctor")

    @property
    def name(self):
        return self.staff.user.name if self.staff and self.staff.user else None


# ============================================
# PATIENTS & APPOINTMENTS
# ============================================

class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(100), nullable=False)
    gender = Column(String(10), nullable=False)
    dob = Column(Date)
    email = Column(String(100))
    mobile_number = Column(String(20), nullable=False)
    address = Column(Text)
    city = Column(String(50))
    state = Column(String(50))
    area_or_pin = Column(String(20))
    blood_group = Column(String(5))
    referred_by_dr = Column(String(100))
    is_admitted = Column(Boolean, default=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    organization = relationship("Organization", back_populates="patients")
    appointments = relationship("Appointment", back_populates="patient", cascade="all, delete-orphan", passive_deletes=True)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(10), nullable=False)  # "10:30"
    # free text: scheduled / completed / cancelled / ...
    status = Column(String(20), default="scheduled", nullable=False)
    reason = Column(Text)
    notes = Column(Text)
    is_follow_up = Column(Boolean, default=False)
    scheduled_by = Column(String(36))

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    organization = relationship("Organization", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor")


# ============================================
# PRICING CATALOG
# ============================================

class ChargeType(Base):
    __tablename__ = "charge_types"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(100), nullable=False)
    modules = Column(JSONType, nullable=False, default=list)  # ["ipd", "ambulance", ...]
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class ChargeCategory(Base):
    __tablename__ = "charge_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(100), nullable=False)
    description = Column(Text)
    charge_type_id = Column(String(36), ForeignKey("charge_types.id"), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    charge_type = relationship("ChargeType")


class Unit(Base):
    __tablename__ = "units"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(50), nullable=False)


class TaxCategory(Base):
    __tablename__ = "tax_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(100), nullable=False)
    percent = Column(Percent, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class Charge(Base):
    __tablename__ = "charges"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(100), nullable=False)
    description = Column(Text)
    charge_category_id = Column(String(36), ForeignKey("charge_categories.id"), nullable=False)
    charge_type_id = Column(String(36), ForeignKey("charge_types.id"), nullable=False)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False)
    tax_category_id = Column(String(36), ForeignKey("tax_categories.id"), nullable=False)
    amount = Column(Money, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    category = relationship("ChargeCategory")
    charge_type = relationship("ChargeType")
    unit = relationship("Unit")
    tax_category = relationship("TaxCategory")


# ============================================
# AMBULANCE
# ============================================

class Ambulance(Base):
    __tablename__ = "ambulances"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    vehicle_number = Column(String(30), nullable=False)
    vehicle_type = Column(String(10), nullable=False)  # owned | rented
    vehicle_model = Column(String(100), nullable=False)
    vehicle_year = Column(String(4), nullable=False)
    driver_name = Column(String(100), nullable=False)
    driver_contact_no = Column(String(20), nullable=False)
    driver_license_no = Column(String(50), nullable=False)
    status = Column(String(15), default=AmbulanceStatus.ACTIVE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class AmbulanceBooking(Base):
    __tablename__ = "ambulance_bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    ambulance_id = Column(String(36), ForeignKey("ambulances.id"), nullable=False)
    charge_id = Column(String(36), ForeignKey("charges.id"), nullable=True)
    driver_name = Column(String(100))
    driver_contact_no = Column(String(20))
    pickup_location = Column(Text, nullable=False)
    drop_location = Column(Text, nullable=False)
    trip_type = Column(String(20), default="one_way")
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(10))
    notes = Column(Text)

    # Billing
    standard_charge = Column(Money, nullable=False)
    discount_amount = Column(Money, default=0, nullable=False)
    tax_percent = Column(Percent, default=0, nullable=False)
    tax_amount = Column(Money, default=0, nullable=False)
    net_amount = Column(Money, nullable=False)
    paid_amount = Column(Money, default=0, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    booking_status = Column(String(20), default=BookingStatus.SCHEDULED.value, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    patient = relationship("Patient")
    ambulance = relationship("Ambulance")
    charge = relationship("Charge")
    payments = relationship(
        "AmbulancePayment", back_populates="booking",
        cascade="all, delete-orphan", order_by="AmbulancePayment.payment_date"
    )

    @property
    def base_amount(self):
        return self.standard_charge


class AmbulancePayment(Base):
    __tablename__ = "ambulance_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    booking_id = Column(String(36), ForeignKey("ambulance_bookings.id", ondelete="CASCADE"), nullable=False)
    payment_date = Column(DateTime, default=datetime.now, nullable=False)
    amount = Column(Money, nullable=False)
    mode = Column(String(20), nullable=False)
    reference_no = Column(String(100))
    note = Column(Text)
    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    booking = relationship("AmbulanceBooking", back_populates="payments")


# ============================================
# PATHOLOGY
# ============================================

class PathologyBill(Base):
    __tablename__ = "pathology_bills"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    bill_no = Column(String(30), unique=True, nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=True)
    doctor_name = Column(String(100))
    remarks = Column(Text)
    bill_date = Column(DateTime, default=datetime.now, nullable=False)

    total_amount = Column(Money, nullable=False)
    discount_amount = Column(Money, default=0, nullable=False)
    tax_percent = Column(Percent, default=0, nullable=False)
    tax_amount = Column(Money, default=0, nullable=False)
    net_amount = Column(Money, nullable=False)
    paid_amount = Column(Money, default=0, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    items = relationship("PathologyBillItem", back_populates="bill", cascade="all, delete-orphan")
    payments = relationship(
        "PathologyPayment", back_populates="bill",
        cascade="all, delete-orphan", order_by="PathologyPayment.payment_date"
    )

    @property
    def base_amount(self):
        return self.total_amount


class PathologyBillItem(Base):
    __tablename__ = "pathology_bill_items"

    id = Column(String(36), primary_key=True, default=new_id)
    bill_id = Column(String(36), ForeignKey("pathology_bills.id", ondelete="CASCADE"), nullable=False)
    test_name = Column(String(200), nullable=False)
    qty = Column(Integer, default=1, nullable=False)
    unit_price = Column(Money, nullable=False)
    amount = Column(Money, nullable=False)

    bill = relationship("PathologyBill", back_populates="items")
    result = relationship("PathologyResult", back_populates="item", uselist=False, cascade="all, delete-orphan")


class PathologyResult(Base):
    """Reported values for one test line"""
    __tablename__ = "pathology_results"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    item_id = Column(String(36), ForeignKey("pathology_bill_items.id", ondelete="CASCADE"), nullable=False, unique=True)
    # [{"name": "Hemoglobin", "value": "13.5", "unit": "g/dL"}]
    parameter_values = Column(JSONType, nullable=False, default=list)
    remarks = Column(Text)
    technician_name = Column(String(100))
    approved_by = Column(String(100), nullable=False)
    approved_at = Column(DateTime, nullable=False)
    result_date = Column(DateTime, default=datetime.now, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    item = relationship("PathologyBillItem", back_populates="result")


class PathologyPayment(Base):
    __tablename__ = "pathology_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    bill_id = Column(String(36), ForeignKey("pathology_bills.id", ondelete="CASCADE"), nullable=False)
    payment_date = Column(DateTime, default=datetime.now, nullable=False)
    amount = Column(Money, nullable=False)
    mode = Column(String(20), nullable=False)
    reference_no = Column(String(100))
    note = Column(Text)
    created_at = Column(DateTime, default=datetime.now)

    bill = relationship("PathologyBill", back_populates="payments")


# ============================================
# RADIOLOGY
# ============================================

class RadiologyBill(Base):
    __tablename__ = "radiology_bills"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    bill_no = Column(String(30), unique=True, nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=True)
    doctor_name = Column(String(100))
    remarks = Column(Text)
    bill_date = Column(DateTime, default=datetime.now, nullable=False)

    total_amount = Column(Money, nullable=False)
    discount_amount = Column(Money, default=0, nullable=False)
    tax_percent = Column(Percent, default=0, nullable=False)
    tax_amount = Column(Money, default=0, nullable=False)
    net_amount = Column(Money, nullable=False)
    paid_amount = Column(Money, default=0, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    items = relationship("RadiologyBillItem", back_populates="bill", cascade="all, delete-orphan")
    payments = relationship(
        "RadiologyPayment", back_populates="bill",
        cascade="all, delete-orphan", order_by="RadiologyPayment.payment_date"
    )

    @property
    def base_amount(self):
        return self.total_amount


class RadiologyBillItem(Base):
    __tablename__ = "radiology_bill_items"

    id = Column(String(36), primary_key=True, default=new_id)
    bill_id = Column(String(36), ForeignKey("radiology_bills.id", ondelete="CASCADE"), nullable=False)
    test_name = Column(String(200), nullable=False)
    qty = Column(Integer, default=1, nullable=False)
    unit_price = Column(Money, nullable=False)
    amount = Column(Money, nullable=False)

    bill = relationship("RadiologyBill", back_populates="items")
    result = relationship("RadiologyResult", back_populates="item", uselist=False, cascade="all, delete-orphan")


class RadiologyResult(Base):
    __tablename__ = "radiology_results"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    item_id = Column(String(36), ForeignKey("radiology_bill_items.id", ondelete="CASCADE"), nullable=False, unique=True)
    parameter_values = Column(JSONType, nullable=False, default=list)
    remarks = Column(Text)
    technician_name = Column(String(100))
    approved_by = Column(String(100), nullable=False)
    approved_at = Column(DateTime, nullable=False)
    result_date = Column(DateTime, default=datetime.now, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    item = relationship("RadiologyBillItem", back_populates="result")


class RadiologyPayment(Base):
    __tablename__ = "radiology_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    bill_id = Column(String(36), ForeignKey("radiology_bills.id", ondelete="CASCADE"), nullable=False)
    payment_date = Column(DateTime, default=datetime.now, nullable=False)
    amount = Column(Money, nullable=False)
    mode = Column(String(20), nullable=False)
    reference_no = Column(String(100))
    note = Column(Text)
    created_at = Column(DateTime, default=datetime.now)

    bill = relationship("RadiologyBill", back_populates="payments")


# ============================================
# OPERATION CATALOG
# ============================================

class OperationCategory(Base):
    __tablename__ = "operation_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    name = Column(String(100), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    operations = relationship("Operation", back_populates="category")


class Operation(Base):
    __tablename__ = "operations"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    operation_category_id = Column(String(36), ForeignKey("operation_categories.id"), nullable=False)
    name = Column(String(200), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    category = relationship("OperationCategory", back_populates="operations")


# ============================================
# IPD
# ============================================

class IpdAdmission(Base):
    __tablename__ = "ipd_admissions"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    case_id = Column(String(30))
    case_details = Column(Text)
    diagnosis = Column(JSONType)
    casualty = Column(Boolean, default=False)
    credit_limit = Column(Money, default=0, nullable=False)
    reference_from = Column(String(100))
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=True)
    bed_label = Column(String(50))
    notes = Column(Text)
    medical_history = Column(Text)
    admission_date = Column(DateTime, default=datetime.now, nullable=False)
    discharge_date = Column(DateTime, nullable=True)
    discharge_status = Column(String(20), default="pending", nullable=False)
    discharge_info = Column(JSONType)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    consultations = relationship("IpdConsultation", back_populates="admission", cascade="all, delete-orphan")
    operations = relationship("IpdOperation", back_populates="admission", cascade="all, delete-orphan")
    charges = relationship("IpdCharge", back_populates="admission", cascade="all, delete-orphan")
    payments = relationship(
        "IpdPayment", back_populates="admission",
        cascade="all, delete-orphan", order_by="IpdPayment.payment_date.desc()"
    )


class IpdConsultation(Base):
    __tablename__ = "ipd_consultations"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    admission_id = Column(String(36), ForeignKey("ipd_admissions.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=True)
    doctor_name = Column(String(100), nullable=False)
    applied_date = Column(Date, nullable=False)
    consultation_date = Column(Date, nullable=False)
    consultation_time = Column(String(10))
    consultation_details = Column(Text)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    admission = relationship("IpdAdmission", back_populates="consultations")


class IpdOperation(Base):
    __tablename__ = "ipd_operations"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    admission_id = Column(String(36), ForeignKey("ipd_admissions.id", ondelete="CASCADE"), nullable=False)
    operation_id = Column(String(36), ForeignKey("operations.id"), nullable=False)
    operation_date = Column(DateTime, nullable=False)
    doctors = Column(JSONType, nullable=False)  # ["Dr. A", "Dr. B"]
    anaesthetist = Column(JSONType)
    anaesthesia_type = Column(String(50))
    operation_details = Column(Text)
    support_staff = Column(JSONType)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    admission = relationship("IpdAdmission", back_populates="operations")
    operation = relationship("Operation")


class IpdCharge(Base):
    __tablename__ = "ipd_charges"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    admission_id = Column(String(36), ForeignKey("ipd_admissions.id", ondelete="CASCADE"), nullable=False)
    charge_id = Column(String(36), ForeignKey("charges.id"), nullable=True)
    charge_name = Column(String(100), nullable=False)
    qty = Column(Integer, default=1, nullable=False)
    standard_charge = Column(Money, nullable=False)
    total_amount = Column(Money, nullable=False)
    discount_percent = Column(Percent, nullable=True)  # set when the discount was entered as a percent
    discount_amount = Column(Money, default=0, nullable=False)
    tax_percent = Column(Percent, default=0, nullable=False)
    tax_amount = Column(Money, default=0, nullable=False)
    net_amount = Column(Money, nullable=False)
    note = Column(Text)
    created_at = Column(DateTime, default=datetime.now)

    admission = relationship("IpdAdmission", back_populates="charges")
    charge = relationship("Charge")


class IpdPayment(Base):
    __tablename__ = "ipd_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = org_fk()
    admission_id = Column(String(36), ForeignKey("ipd_admissions.id", ondelete="CASCADE"), nullable=False)
    payment_date = Column(DateTime, default=datetime.now, nullable=False)
    mode = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False)
    reference_no = Column(String(100))
    note = Column(Text)
    to_credit = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    admission = relationship("IpdAdmission", back_populates="payments")
