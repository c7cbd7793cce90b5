from database.models import Appointment, Charge, Organization, Patient, User
from seed_data import DEMO_ORG_SLUG, seed_data


def test_seed_creates_demo_hospital(db):
    counts = seed_data(db, interactive=False)

    org = db.query(Organization).filter(Organization.slug == DEMO_ORG_SLUG).one()
    assert counts["organization_id"] == org.id
    assert db.query(User).filter(User.organization_id == org.id).count() == 2
    assert db.query(Patient).filter(Patient.organization_id == org.id).count() == counts["patients"]
    assert db.query(Charge).filter(Charge.organization_id == org.id).count() == counts["charges"]
    assert db.query(Appointment).filter(Appointment.organization_id == org.id).count() == counts["appointments"]


def test_seed_is_skipped_when_demo_exists(db):
    seed_data(db, interactive=False)

    assert seed_data(db, interactive=False) == {}
    assert db.query(Organization).filter(Organization.slug == DEMO_ORG_SLUG).count() == 1
