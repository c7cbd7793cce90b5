from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from database.connection import get_db
from database.models import (
    User, Organization, Patient, Ambulance, AmbulanceBooking, AmbulancePayment, Charge,
    AmbulanceStatus, AmbulanceType, BookingStatus
)
from api.auth import get_current_user, get_active_organization
from api.common import (
    PaymentRequest, paginate, money, iso, write_audit, require_patient, patient_block,
    apply_totals, add_bill_payment, remove_bill_payment, serialize_payment,
    billing_block, bill_balance, bill_totals_of, require_action,
)
from billing import BillAction, ColumnSelection, Discount, compute_bill_totals
from billing.lifecycle import get_or_404
from billing.documents import build_receipt
from billing.formatting import format_currency
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ambulance", tags=["Ambulance"])

# ==================== PYDANTIC MODELS ====================

class AmbulanceRequest(BaseModel):
    vehicle_number: str = Field(..., min_length=2, max_length=30)
    vehicle_type: AmbulanceType
    vehicle_model: str = Field(..., min_length=1)
    vehicle_year: str = Field(..., pattern=r'^\d{4}$')
    driver_name: str = Field(..., min_length=2)
    driver_contact_no: str = Field(..., min_length=10, max_length=15)
    driver_license_no: str = Field(..., min_length=2)
    status: AmbulanceStatus = AmbulanceStatus.ACTIVE

    class Config:
        str_strip_whitespace = True

class BookingRequest(BaseModel):
    """Ambulance booking with its bill"""
    patient_id: str
    ambulance_id: str
    charge_id: Optional[str] = None
    driver_name: Optional[str] = None
    driver_contact_no: Optional[str] = None
    pickup_location: str = Field(..., min_length=2)
    drop_location: str = Field(..., min_length=2)
    trip_type: str = Field("one_way", description="one_way/round_trip")
    booking_date: date
    booking_time: Optional[str] = None
    notes: Optional[str] = None

    # Billing
    standard_charge: Optional[Decimal] = Field(None, description="Defaults to the selected charge's amount")
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = Field(None, description="Defaults to the charge's tax category")
    booking_status: BookingStatus = BookingStatus.SCHEDULED

    # Initial payment
    paid_amount: Decimal = Decimal("0")
    payment_mode: str = "Cash"
    reference_no: Optional[str] = None

# ==================== HELPER FUNCTIONS ====================

def serialize_ambulance(ambulance: Ambulance) -> dict:
    return {
        "id": ambulance.id,
        "vehicle_number": ambulance.vehicle_number,
        "vehicle_type": ambulance.vehicle_type,
        "vehicle_model": ambulance.vehicle_model,
        "vehicle_year": ambulance.vehicle_year,
        "driver_name": ambulance.driver_name,
        "driver_contact_no": ambulance.driver_contact_no,
        "driver_license_no": ambulance.driver_license_no,
        "status": ambulance.status,
    }


def serialize_booking(booking: AmbulanceBooking) -> dict:
    row = {
        "id": booking.id,
        "patient_id": booking.patient_id,
        "patient_name": booking.patient.name if booking.patient else None,
        "patient_phone": booking.patient.mobile_number if booking.patient else None,
        "ambulance_id": booking.ambulance_id,
        "vehicle_number": booking.ambulance.vehicle_number if booking.ambulance else None,
        "charge_id": booking.charge_id,
        "driver_name": booking.driver_name,
        "driver_contact_no": booking.driver_contact_no,
        "pickup_location": booking.pickup_location,
        "drop_location": booking.drop_location,
        "trip_type": booking.trip_type,
        "booking_date": iso(booking.booking_date),
        "booking_time": booking.booking_time,
        "booking_status": booking.booking_status,
        "notes": booking.notes,
        "standard_charge": money(booking.standard_charge),
    }
    row.update(billing_block(booking))
    return row


def booking_query(db: Session, organization: Organization):
    return db.query(AmbulanceBooking).options(
        joinedload(AmbulanceBooking.patient), joinedload(AmbulanceBooking.ambulance)
    ).filter(AmbulanceBooking.organization_id == organization.id)


def fill_booking(db: Session, organization: Organization, booking: AmbulanceBooking, request: BookingRequest) -> None:
    """Copy trip data onto the booking and (re)compute its totals"""
    require_patient(db, organization, request.patient_id)

    ambulance = db.query(Ambulance).filter(
        Ambulance.id == request.ambulance_id,
        Ambulance.organization_id == organization.id
    ).first()
    if not ambulance:
        raise HTTPException(status_code=404, detail="Ambulance not found")
    if ambulance.status != AmbulanceStatus.ACTIVE.value and booking.ambulance_id != ambulance.id:
        raise HTTPException(status_code=400, detail=f"Ambulance is {ambulance.status}")

    charge = None
    if request.charge_id:
        charge = db.query(Charge).filter(
            Charge.id == request.charge_id,
            Charge.organization_id == organization.id,
            Charge.is_deleted.is_(False)
        ).first()
        if not charge:
            raise HTTPException(status_code=404, detail="Charge not found")

    base = request.standard_charge
    if base is None:
        if charge is None:
            raise HTTPException(status_code=400, detail="standard_charge or charge_id is required")
        base = charge.amount

    tax_percent = request.tax_percent
    if tax_percent is None:
        tax_percent = charge.tax_category.percent if charge and charge.tax_category else 0

    totals = compute_bill_totals(
        base,
        Discount.from_request(request.discount_amount, request.discount_percent),
        tax_percent
    )

    booking.patient_id = request.patient_id
    booking.ambulance_id = ambulance.id
    booking.charge_id = charge.id if charge else None
    booking.driver_name = request.driver_name or ambulance.driver_name
    booking.driver_contact_no = request.driver_contact_no or ambulance.driver_contact_no
    booking.pickup_location = request.pickup_location
    booking.drop_location = request.drop_location
    booking.trip_type = request.trip_type
    booking.booking_date = request.booking_date
    booking.booking_time = request.booking_time
    booking.notes = request.notes
    booking.booking_status = request.booking_status.value
    booking.standard_charge = totals.rounded()["base_amount"]
    apply_totals(booking, totals)

# ==================== AMBULANCES ====================

@router.get("/ambulances", response_model=dict)
async def list_ambulances(
    active_only: bool = Query(True),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """🚑 Fleet; active vehicles only unless active_only=false"""
    query = db.query(Ambulance).filter(Ambulance.organization_id == organization.id)
    if active_only:
        query = query.filter(Ambulance.status == AmbulanceStatus.ACTIVE.value)
    ambulances = query.order_by(Ambulance.vehicle_number.asc()).all()
    return {"status": "success", "ambulances": [serialize_ambulance(a) for a in ambulances]}


@router.post("/ambulances", response_model=dict, status_code=201)
async def create_ambulance(
    request: AmbulanceRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    ambulance = Ambulance(
        organization_id=organization.id,
        **request.model_dump(exclude={"vehicle_type", "status"}),
        vehicle_type=request.vehicle_type.value,
        status=request.status.value
    )
    db.add(ambulance)
    db.flush()
    write_audit(db, organization, current_user, "AMBULANCE_CREATED", "ambulance", ambulance.id,
                {"vehicle_number": ambulance.vehicle_number})
    db.commit()
    db.refresh(ambulance)
    return {"status": "success", "message": "Ambulance added", "ambulance": serialize_ambulance(ambulance)}


@router.put("/ambulances/{ambulance_id}", response_model=dict)
async def update_ambulance(
    ambulance_id: str,
    request: AmbulanceRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(Ambulance).filter(Ambulance.organization_id == organization.id)
    ambulance = get_or_404(query, Ambulance, ambulance_id, "Ambulance")

    for key, value in request.model_dump(exclude={"vehicle_type", "status"}).items():
        setattr(ambulance, key, value)
    ambulance.vehicle_type = request.vehicle_type.value
    ambulance.status = request.status.value

    write_audit(db, organization, current_user, "AMBULANCE_UPDATED", "ambulance", ambulance.id,
                {"status": ambulance.status})
    db.commit()
    db.refresh(ambulance)
    return {"status": "success", "message": "Ambulance updated", "ambulance": serialize_ambulance(ambulance)}

# ==================== BOOKINGS ====================

@router.get("/bookings", response_model=dict)
async def list_bookings(
    search: Optional[str] = Query(None, description="Patient name, phone or vehicle number"),
    payment_status: Optional[str] = Query(None, description="pending/partially_paid/paid"),
    fields: Optional[str] = Query(None, description="Comma separated visible columns"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    selection = ColumnSelection.from_query("ambulance_bookings", fields)

    query = booking_query(db, organization).join(
        Patient, AmbulanceBooking.patient_id == Patient.id
    ).join(Ambulance, AmbulanceBooking.ambulance_id == Ambulance.id)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            Patient.name.ilike(term),
            Patient.mobile_number.ilike(term),
            Ambulance.vehicle_number.ilike(term)
        ))
    if payment_status:
        query = query.filter(AmbulanceBooking.payment_status == payment_status)

    bookings, pagination = paginate(query.order_by(AmbulanceBooking.created_at.desc()), page, limit)
    return {
        "status": "success",
        "columns": selection.to_dict(),
        "bookings": [selection.project(serialize_booking(b)) for b in bookings],
        "pagination": pagination
    }


@router.post("/bookings", response_model=dict, status_code=201)
async def create_booking(
    request: BookingRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """
    🚑 BOOK AN AMBULANCE

    - Totals: (standard charge - discount) + tax
    - Optional initial payment; its reference is dropped when nothing is paid
    """
    booking = AmbulanceBooking(organization_id=organization.id, paid_amount=0)
    fill_booking(db, organization, booking, request)
    db.add(booking)
    db.flush()

    if request.paid_amount > 0:
        add_bill_payment(booking, AmbulancePayment, organization, PaymentRequest(
            amount=request.paid_amount,
            mode=request.payment_mode,
            reference_no=request.reference_no,
            note="Initial payment"
        ), "Booking")

    write_audit(db, organization, current_user, "AMBULANCE_BOOKED", "ambulance_booking", booking.id,
                {"net_amount": money(booking.net_amount), "paid_amount": money(booking.paid_amount)})
    db.commit()
    db.refresh(booking)

    return {"status": "success", "message": "Booking created", "booking": serialize_booking(booking)}


@router.get("/bookings/{booking_id}", response_model=dict)
async def get_booking(
    booking_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    details = serialize_booking(booking)
    details["payments"] = [serialize_payment(p) for p in booking.payments]
    return {"status": "success", "booking": details}


@router.put("/bookings/{booking_id}", response_model=dict)
async def update_booking(
    booking_id: str,
    request: BookingRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """✏️ Edit a booking; only while nothing has been paid"""
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    require_action(booking, BillAction.EDIT, "Booking")

    fill_booking(db, organization, booking, request)
    write_audit(db, organization, current_user, "AMBULANCE_BOOKING_UPDATED", "ambulance_booking", booking.id)
    db.commit()
    db.refresh(booking)
    return {"status": "success", "message": "Booking updated", "booking": serialize_booking(booking)}


@router.delete("/bookings/{booking_id}", response_model=dict)
async def delete_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    require_action(booking, BillAction.DELETE, "Booking")

    db.delete(booking)
    write_audit(db, organization, current_user, "AMBULANCE_BOOKING_DELETED", "ambulance_booking", booking_id)
    db.commit()
    return {"status": "success", "message": "Booking deleted"}

# ==================== PAYMENTS ====================

@router.get("/bookings/{booking_id}/payments", response_model=dict)
async def list_booking_payments(
    booking_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    return {
        "status": "success",
        "payments": [serialize_payment(p) for p in booking.payments],
        "net_amount": money(booking.net_amount),
        "paid_amount": money(booking.paid_amount),
        "balance_amount": money(bill_balance(booking)),
        "payment_status": booking.payment_status
    }


@router.post("/bookings/{booking_id}/payments", response_model=dict, status_code=201)
async def add_booking_payment(
    booking_id: str,
    request: PaymentRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """💳 Record a payment against the booking balance"""
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    payment = add_bill_payment(booking, AmbulancePayment, organization, request, "Booking")
    db.flush()

    write_audit(db, organization, current_user, "AMBULANCE_PAYMENT_ADDED", "ambulance_booking", booking.id,
                {"payment_id": payment.id, "amount": money(payment.amount), "mode": payment.mode})
    db.commit()
    db.refresh(booking)
    return {
        "status": "success",
        "message": "Payment recorded",
        "payment": serialize_payment(payment),
        "booking": serialize_booking(booking)
    }


@router.delete("/bookings/{booking_id}/payments/{payment_id}", response_model=dict)
async def delete_booking_payment(
    booking_id: str,
    payment_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    if remove_bill_payment(booking, payment_id, "Booking") is None:
        raise HTTPException(status_code=404, detail="Payment not found")

    write_audit(db, organization, current_user, "AMBULANCE_PAYMENT_DELETED", "ambulance_booking", booking.id,
                {"payment_id": payment_id})
    db.commit()
    db.refresh(booking)
    return {"status": "success", "message": "Payment deleted", "booking": serialize_booking(booking)}


@router.get("/bookings/{booking_id}/receipt", response_model=dict)
async def booking_receipt(
    booking_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """🧾 Structured ambulance bill"""
    booking = get_or_404(booking_query(db, organization), AmbulanceBooking, booking_id, "Booking")
    receipt = build_receipt(
        title="Ambulance Bill",
        organization=organization,
        number=f"AMB-{booking.id[:8].upper()}",
        issued_at=booking.booking_date,
        patient=patient_block(booking.patient),
        lines=[{
            "description": f"{booking.pickup_location} to {booking.drop_location} ({booking.trip_type})",
            "vehicle_number": booking.ambulance.vehicle_number,
            "driver_name": booking.driver_name,
            "amount": format_currency(booking.standard_charge),
        }],
        totals=bill_totals_of(booking, booking.standard_charge),
        paid_amount=booking.paid_amount,
        balance_amount=bill_balance(booking),
        payments=booking.payments,
        status=booking.payment_status,
    )
    return {"status": "success", "receipt": receipt}
