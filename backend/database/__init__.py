# Database Package - Centralized imports
# Allows easy importing of models, connection utilities, and ORM objects

from .connection import (
    engine,
    Base,
    SessionLocal,
    get_db,
)

from .models import (
    # Tenant & Auth Models
    Organization,
    User,
    AuditLog,

    # Employee Models
    Specialization,
    Staff,
    Doctor,

    # Patient Models
    Patient,
    Appointment,

    # Pricing Catalog
    ChargeType,
    ChargeCategory,
    Unit,
    TaxCategory,
    Charge,

    # Ambulance Models
    Ambulance,
    AmbulanceBooking,
    AmbulancePayment,

    # Diagnostics Models
    PathologyBill,
    PathologyBillItem,
    PathologyPayment,
    PathologyResult,
    RadiologyBill,
    RadiologyBillItem,
    RadiologyPayment,
    RadiologyResult,

    # Operation Catalog
    OperationCategory,
    Operation,

    # IPD Models
    IpdAdmission,
    IpdConsultation,
    IpdOperation,
    IpdCharge,
    IpdPayment,
)

__all__ = [
    # Connection
    "engine",
    "Base",
    "SessionLocal",
    "get_db",

    # Tenant & Auth
    "Organization",
    "User",
    "AuditLog",

    # Employees
    "Specialization",
    "Staff",
    "Doctor",

    # Patients
    "Patient",
    "Appointment",

    # Pricing Catalog
    "ChargeType",
    "ChargeCategory",
    "Unit",
    "TaxCategory",
    "Charge",

    # Ambulance
    "Ambulance",
    "AmbulanceBooking",
    "AmbulancePayment",

    # Diagnostics
    "PathologyBill",
    "PathologyBillItem",
    "PathologyPayment",
    "PathologyResult",
    "RadiologyBill",
    "RadiologyBillItem",
    "RadiologyPayment",
    "RadiologyResult",

    # Operation Catalog
    "OperationCategory",
    "Operation",

    # IPD
    "IpdAdmission",
    "IpdConsultation",
    "IpdOperation",
    "IpdCharge",
    "IpdPayment",
]
