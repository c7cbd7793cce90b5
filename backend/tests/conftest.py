import os

# must be set before the app modules read their config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import bcrypt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.connection import Base, get_db
from database.models import Organization, User, Patient, Staff, Doctor
from api.auth import create_access_token
from main import app

TEST_PASSWORD = "Secret@123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def fast_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=4)).decode()


def bearer(user: User) -> dict:
    token = create_access_token({
        "user_id": user.id,
        "organization_id": user.organization_id,
        "role": user.role,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def organization(db):
    org = Organization(
        name="City Hospital",
        slug="city-hospital",
        metadata_={
            "address": "1 Station Road, Pune",
            "phone": "02012345678",
            "email": "info@cityhospital.in",
            "org_mode": True,
        },
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture()
def owner(db, organization):
    user = User(
        organization_id=organization.id,
        email="owner@cityhospital.in",
        name="City Owner",
        password_hash=fast_hash(TEST_PASSWORD),
        role="owner",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def auth_headers(owner):
    return bearer(owner)


@pytest.fixture()
def other_org_headers(db):
    org = Organization(name="Other Clinic", slug="other-clinic", metadata_={})
    db.add(org)
    db.flush()
    user = User(
        organization_id=org.id,
        email="owner@otherclinic.in",
        name="Other Owner",
        password_hash=fast_hash(TEST_PASSWORD),
        role="owner",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return bearer(user)


@pytest.fixture()
def patient(db, organization):
    row = Patient(
        organization_id=organization.id,
        name="Rahul Kumar",
        gender="male",
        mobile_number="9876500001",
        address="Kothrud, Pune",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def doctor(db, organization, owner):
    user = User(
        organization_id=organization.id,
        email="dr.sharma@cityhospital.in",
        name="Neha Sharma",
        password_hash=fast_hash(TEST_PASSWORD),
        role="doctor",
    )
    db.add(user)
    db.flush()
    staff = Staff(organization_id=organization.id, user_id=user.id, gender="female",
                  mobile_number="9876512345", department="Pathology", created_by=owner.id)
    db.add(staff)
    db.flush()
    row = Doctor(organization_id=organization.id, staff_id=staff.id, specialization=["Pathology"],
                 qualification="MBBS, MD", experience="8 years", consultation_fee=500)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
