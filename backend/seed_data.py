# backend/seed_data.py
from database.connection import SessionLocal, Base, engine
from database.models import (
    Organization, User, Staff, Doctor, Specialization, Patient, Appointment,
    ChargeType, ChargeCategory, Unit, TaxCategory, Charge,
    Ambulance, OperationCategory, Operation,
)
from api.auth import hash_password
from datetime import date
from decimal import Decimal

DEMO_ORG_SLUG = "demo-hospital"
DEMO_OWNER_EMAIL = "owner@demo-hospital.in"
DEMO_PASSWORD = "Demo@12345"


def seed_data(db=None, interactive: bool = True) -> dict:
    """Demo hospital with its owner, a doctor, patients and the pricing catalog"""
    owns_session = db is None
    db = db or SessionLocal()
    print("🌱 Starting database seeding...")
    counts = {}

    try:
        existing = db.query(Organization).filter(Organization.slug == DEMO_ORG_SLUG).first()
        if existing:
            print(f"⚠️ Organization '{DEMO_ORG_SLUG}' already exists.")
            if not interactive:
                return counts
            response = input("Do you want to clear and re-seed it? (yes/no): ")
            if response.lower() != 'yes':
                return counts

            print("🗑️ Clearing existing demo data...")
            # tenant tables cascade from organizations.id in the database
            db.query(Organization).filter(Organization.id == existing.id).delete(synchronize_session=False)
            db.commit()
            print("✅ Demo data cleared!")

        # ==================== ORGANIZATION ====================
        print("\n🏥 Creating organization...")
        org = Organization(
            name="Demo Hospital",
            slug=DEMO_ORG_SLUG,
            metadata_={
                "address": "12 MG Road, Pune",
                "phone": "+912012345678",
                "email": "contact@demo-hospital.in",
                "org_mode": True,
            }
        )
        db.add(org)
        db.flush()

        # ==================== USERS ====================
        print("\n👤 Creating users...")
        owner = User(organization_id=org.id, email=DEMO_OWNER_EMAIL, name="Hospital Owner",
                     password_hash=hash_password(DEMO_PASSWORD), role="owner")
        doctor_user = User(organization_id=org.id, email="dr.mehta@demo-hospital.in", name="Anil Mehta",
                           password_hash=hash_password(DEMO_PASSWORD), role="doctor")
        db.add_all([owner, doctor_user])
        db.flush()

        staff = Staff(organization_id=org.id, user_id=doctor_user.id, mobile_number="9876543210",
                      gender="male", department="General Medicine", joining_date=date.today(),
                      created_by=owner.id)
        db.add(staff)
        db.flush()
        doctor = Doctor(organization_id=org.id, staff_id=staff.id, specialization=["General Medicine"],
                        qualification="MBBS, MD", experience="12 years", consultation_fee=Decimal("500"))
        db.add(doctor)
        counts["users"] = 2

        for name in ("General Medicine", "Cardiology", "Orthopedics", "Pathology", "Radiology"):
            if not db.query(Specialization).filter(Specialization.name == name).first():
                db.add(Specialization(name=name))

        # ==================== PATIENTS ====================
        print("\n🧑 Creating patients...")
        patients_data = [
            {"name": "Rahul Kumar", "gender": "male", "mobile_number": "9876500001", "blood_group": "O+"},
            {"name": "Priya Sharma", "gender": "female", "mobile_number": "9876500002", "blood_group": "A+"},
            {"name": "Ankit Patel", "gender": "male", "mobile_number": "9876500003", "blood_group": "B+"},
        ]
        patients = [Patient(organization_id=org.id, **patient_data) for patient_data in patients_data]
        db.add_all(patients)
        db.flush()
        counts["patients"] = len(patients)

        for patient, slot in zip(patients[:2], ("10:00", "10:30")):
            db.add(Appointment(organization_id=org.id, patient_id=patient.id, doctor_id=doctor.id,
                               appointment_date=date.today(), appointment_time=slot,
                               reason="General consultation", scheduled_by=owner.id))
        counts["appointments"] = 2

        # ==================== PRICING CATALOG ====================
        print("\n💰 Creating pricing catalog...")
        unit = Unit(organization_id=org.id, name="Per Trip")
        day_unit = Unit(organization_id=org.id, name="Per Day")
        gst = TaxCategory(organization_id=org.id, name="GST 12%", percent=Decimal("12"))
        exempt = TaxCategory(organization_id=org.id, name="Exempt", percent=Decimal("0"))
        ambulance_type = ChargeType(organization_id=org.id, name="Ambulance", modules=["ambulance"])
        ipd_type = ChargeType(organization_id=org.id, name="IPD", modules=["ipd"])
        db.add_all([unit, day_unit, gst, exempt, ambulance_type, ipd_type])
        db.flush()

        transport = ChargeCategory(organization_id=org.id, name="Transport", charge_type_id=ambulance_type.id)
        room = ChargeCategory(organization_id=org.id, name="Room Rent", charge_type_id=ipd_type.id)
        db.add_all([transport, room])
        db.flush()

        charges_data = [
            ("City Ambulance", transport, ambulance_type, unit, gst, "1500"),
            ("General Ward", room, ipd_type, day_unit, exempt, "2000"),
            ("Private Room", room, ipd_type, day_unit, gst, "4500"),
        ]
        for name, category, charge_type, charge_unit, tax, amount in charges_data:
            db.add(Charge(organization_id=org.id, name=name, charge_category_id=category.id,
                          charge_type_id=charge_type.id, unit_id=charge_unit.id,
                          tax_category_id=tax.id, amount=Decimal(amount)))
        counts["charges"] = len(charges_data)

        # ==================== AMBULANCES & OPERATIONS ====================
        print("\n🚑 Creating ambulances and operations...")
        db.add(Ambulance(organization_id=org.id, vehicle_number="MH12AB1234", vehicle_type="owned",
                         vehicle_model="Force Traveller", vehicle_year="2022", driver_name="Suresh",
                         driver_contact_no="9876511111", driver_license_no="MH1220220001234"))

        surgery = OperationCategory(organization_id=org.id, name="General Surgery")
        db.add(surgery)
        db.flush()
        for name in ("Appendectomy", "Hernia Repair"):
            db.add(Operation(organization_id=org.id, operation_category_id=surgery.id, name=name))
        counts["ambulances"] = 1
        counts["operations"] = 2

        db.commit()
        counts["organization_id"] = org.id

        print("\n" + "="*50)
        print("🎉 Database seeding completed successfully!")
        print("="*50)
        print(f"\n📊 Summary:")
        print(f"   Login: {DEMO_OWNER_EMAIL} / {DEMO_PASSWORD}")
        print(f"   Patients: {counts['patients']}")
        print(f"   Charges: {counts['charges']}")
        print(f"   Operations: {counts['operations']}")
        return counts

    except Exception as e:
        print(f"\n❌ Error during seeding: {e}")
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()

if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    seed_data()
