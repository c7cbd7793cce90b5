import pytest


@pytest.fixture()
def catalog(client, auth_headers):
    def post(path, payload):
        response = client.post(f"/api/charges{path}", json=payload, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    tax = post("/tax-categories", {"name": "GST 12%", "percent": 12})
    unit = post("/units", {"name": "Per Day"})
    charge_type = post("/types", {"name": "IPD", "modules": ["ipd"]})
    category = post("/categories", {"name": "Room Rent", "charge_type_id": charge_type["id"]})
    room = post("", {
        "name": "Private Room",
        "charge_category_id": category["id"],
        "charge_type_id": charge_type["id"],
        "unit_id": unit["id"],
        "tax_category_id": tax["id"],
        "amount": 4500,
    })

    op_category = client.post("/api/operations/categories", json={"name": "General Surgery"},
                              headers=auth_headers).json()["category"]
    operation = client.post("/api/operations", json={"name": "Appendectomy",
                                                     "operation_category_id": op_category["id"]},
                            headers=auth_headers).json()["operation"]
    return {"room": room, "operation": operation}


@pytest.fixture()
def admission(client, auth_headers, patient):
    response = client.post("/api/ipd/admissions", json={
        "patient_id": patient.id,
        "diagnosis": ["Fever"],
        "credit_limit": 1000,
        "bed_label": "Ward A / Bed 4",
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()["admission"]


def url(admission, suffix=""):
    return f"/api/ipd/admissions/{admission['id']}{suffix}"


def add_payment(client, headers, admission, amount, mode="Cash", reference_no=None, to_credit=False):
    return client.post(url(admission, "/payments"), json={
        "amount": amount, "mode": mode, "reference_no": reference_no, "to_credit": to_credit
    }, headers=headers)


@pytest.fixture()
def charged_admission(client, auth_headers, admission, catalog):
    room = client.post(url(admission, "/charges"), json={
        "charge_id": catalog["room"]["id"], "qty": 2, "discount_percent": 10
    }, headers=auth_headers)
    assert room.status_code == 201, room.text
    nursing = client.post(url(admission, "/charges"), json={
        "charge_name": "Nursing", "standard_charge": 1000, "discount_amount": 100, "tax_percent": 0
    }, headers=auth_headers)
    assert nursing.status_code == 201, nursing.text
    return admission


# ==================== ADMISSIONS ====================

def test_admit_patient(admission):
    assert admission["case_id"].startswith("IPD-")
    assert admission["discharge_status"] == "pending"
    assert admission["capabilities"]["can_add"] is True
    assert admission["payment_summary"]["credit_limit"] == 1000.0


def test_patient_cannot_be_admitted_twice(client, auth_headers, patient, admission):
    response = client.post("/api/ipd/admissions", json={"patient_id": patient.id}, headers=auth_headers)
    assert response.status_code == 400


def test_list_admissions(client, auth_headers, admission):
    data = client.get("/api/ipd/admissions", params={"search": "Rahul"}, headers=auth_headers).json()

    assert [a["id"] for a in data["admissions"]] == [admission["id"]]
    assert data["admissions"][0]["patient_name"] == "Rahul Kumar"


# ==================== CHARGES ====================

def test_charge_lines_and_totals(client, auth_headers, charged_admission):
    data = client.get(url(charged_admission, "/charges"), headers=auth_headers).json()

    room, nursing = data["charges"]
    assert room["charge_name"] == "Private Room"
    assert room["total_amount"] == 9000.0
    assert room["discount_percent"] == 10.0
    assert room["tax_amount"] == 972.0
    assert room["net_amount"] == 9072.0
    assert nursing["discount_percent"] is None
    assert nursing["net_amount"] == 900.0
    assert data["totals"]["net_amount"] == 9972.0


def test_charge_needs_catalog_entry_or_name_and_amount(client, auth_headers, admission):
    response = client.post(url(admission, "/charges"), json={"charge_name": "Oxygen"}, headers=auth_headers)
    assert response.status_code == 400


def test_delete_charge(client, auth_headers, charged_admission):
    lines = client.get(url(charged_admission, "/charges"), headers=auth_headers).json()["charges"]

    client.delete(url(charged_admission, f"/charges/{lines[1]['id']}"), headers=auth_headers)

    data = client.get(url(charged_admission, "/charges"), headers=auth_headers).json()
    assert len(data["charges"]) == 1
    assert data["totals"]["net_amount"] == 9072.0


# ==================== PAYMENTS & CREDIT ====================

def test_payments_top_ups_and_credit(client, auth_headers, charged_admission):
    cash = add_payment(client, auth_headers, charged_admission, 5000)
    assert cash.json()["summary"]["balance"] == 4972.0

    top_up = add_payment(client, auth_headers, charged_admission, 2000, to_credit=True)
    assert top_up.json()["message"] == "Credit limit increased"
    assert top_up.json()["summary"]["credit_limit"] == 3000.0
    assert top_up.json()["summary"]["balance"] == 4972.0

    too_much = add_payment(client, auth_headers, charged_admission, 3500, "Credit", "CR-1")
    assert too_much.status_code == 400
    assert too_much.json()["error"]["code"] == "invalid_payment"

    credit = add_payment(client, auth_headers, charged_admission, 3000, "Credit", "CR-1")
    summary = credit.json()["summary"]
    assert summary["used_credit"] == 3000.0
    assert summary["available_credit"] == 0.0
    assert summary["balance"] == 1972.0
    assert summary["total_paid"] == 5000.0

    # the top-up is already spent
    top_up_id = top_up.json()["payment"]["id"]
    blocked = client.delete(url(charged_admission, f"/payments/{top_up_id}"), headers=auth_headers)
    assert blocked.status_code == 400
    assert blocked.json()["error"]["field"] == "to_credit"

    cash_id = cash.json()["payment"]["id"]
    edited = client.put(url(charged_admission, f"/payments/{cash_id}"), json={"amount": 6000, "mode": "Cash"},
                        headers=auth_headers)
    assert edited.json()["summary"]["balance"] == 972.0

    receipt = client.get(url(charged_admission, "/receipt"), headers=auth_headers).json()["receipt"]
    totals = {row["label"]: row["value"] for row in receipt["totals"]}
    assert totals["Net Amount"] == "₹9,972.00"
    assert totals["Paid"] == "₹9,000.00"
    assert totals["Balance"] == "₹972.00"
    assert len(receipt["payments"]) == 2
    assert receipt["credit"]["credit_limit"] == "₹3,000.00"


def test_top_up_cannot_use_credit_mode(client, auth_headers, admission):
    response = add_payment(client, auth_headers, admission, 100, "Credit", "CR-2", to_credit=True)

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "mode"


def test_advance_payment_gives_negative_balance(client, auth_headers, charged_admission):
    response = add_payment(client, auth_headers, charged_admission, 10000)
    assert response.json()["summary"]["balance"] == -28.0


def test_payment_summary_endpoint(client, auth_headers, admission):
    add_payment(client, auth_headers, admission, 500, "UPI", "UTR-77")

    summary = client.get(url(admission, "/payments/summary"), headers=auth_headers).json()["summary"]
    assert summary["total_paid"] == 500.0
    assert summary["balance"] == -500.0


# ==================== CONSULTANT REGISTER ====================

def test_consultation_lifecycle(client, auth_headers, admission):
    created = client.post(url(admission, "/consultations"), json={
        "doctor_name": "Dr. Kulkarni",
        "applied_date": "2024-05-01",
        "consultation_date": "2024-05-02",
        "consultation_details": "Routine round",
    }, headers=auth_headers)
    assert created.status_code == 201
    consultation_id = created.json()["consultation"]["id"]
    record_url = url(admission, f"/consultations/{consultation_id}")

    assert client.delete(f"{record_url}/permanent", headers=auth_headers).status_code == 409

    client.delete(record_url, headers=auth_headers)
    assert client.get(url(admission, "/consultations"), headers=auth_headers).json()["consultations"] == []

    deleted = client.get(url(admission, "/consultations"), params={"show_deleted": True},
                         headers=auth_headers).json()["consultations"]
    assert deleted[0]["actions"] == ["restore", "permanent_delete"]
    assert client.get(record_url, headers=auth_headers).json()["consultation"]["is_deleted"] is True

    editing_deleted = client.put(record_url, json={
        "doctor_name": "Dr. Kulkarni", "applied_date": "2024-05-01", "consultation_date": "2024-05-03"
    }, headers=auth_headers)
    assert editing_deleted.status_code == 409

    assert client.post(f"{record_url}/restore", headers=auth_headers).status_code == 200
    client.delete(record_url, headers=auth_headers)
    purged = client.delete(f"{record_url}/permanent", headers=auth_headers)
    assert purged.json()["message"] == "Consultation permanently deleted. This action cannot be undone."

    assert client.post(f"{record_url}/restore", headers=auth_headers).status_code == 404
    assert client.get(record_url, headers=auth_headers).status_code == 404


def test_consultation_needs_a_doctor(client, auth_headers, admission):
    response = client.post(url(admission, "/consultations"), json={
        "applied_date": "2024-05-01", "consultation_date": "2024-05-02"
    }, headers=auth_headers)
    assert response.status_code == 422


def test_operation_register_and_catalog_purge(client, auth_headers, admission, catalog):
    operation_id = catalog["operation"]["id"]
    created = client.post(url(admission, "/operations"), json={
        "operation_id": operation_id,
        "operation_date": "2024-05-02T10:30:00",
        "doctors": ["Dr. Kulkarni"],
        "anaesthesia_type": "General",
    }, headers=auth_headers)
    assert created.status_code == 201
    assert created.json()["operation"]["operation_name"] == "Appendectomy"

    listed = client.get(url(admission, "/operations"), params={"fields": "operation_name"},
                        headers=auth_headers).json()
    assert listed["columns"]["visible"] == ["operation_name", "actions"]
    assert listed["operations"][0]["actions"] == ["edit", "delete"]

    client.delete(f"/api/operations/{operation_id}", headers=auth_headers)
    in_use = client.delete(f"/api/operations/{operation_id}/permanent", headers=auth_headers)
    assert in_use.status_code == 409


def test_operation_record_purge(client, auth_headers, admission, catalog):
    created = client.post(url(admission, "/operations"), json={
        "operation_id": catalog["operation"]["id"],
        "operation_date": "2024-05-02T10:30:00",
        "doctors": ["Dr. Kulkarni"],
    }, headers=auth_headers)
    record_url = url(admission, f"/operations/{created.json()['operation']['id']}")

    assert client.get(record_url, headers=auth_headers).json()["operation"]["operation_name"] == "Appendectomy"

    client.delete(record_url, headers=auth_headers)
    assert client.delete(f"{record_url}/permanent", headers=auth_headers).status_code == 200

    assert client.get(record_url, headers=auth_headers).status_code == 404
    assert client.post(f"{record_url}/restore", headers=auth_headers).status_code == 404


# ==================== DISCHARGE ====================

def test_discharge_makes_admission_read_only(client, auth_headers, charged_admission):
    payment = add_payment(client, auth_headers, charged_admission, 1000).json()["payment"]
    lines = client.get(url(charged_admission, "/charges"), headers=auth_headers).json()["charges"]

    response = client.post(url(charged_admission, "/discharge"), json={
        "discharge_status": "normal", "discharge_info": {"summary": "Recovered"}
    }, headers=auth_headers)
    admission = response.json()["admission"]
    assert admission["discharge_status"] == "normal"
    assert admission["capabilities"]["read_only"] is True
    assert admission["discharge_info"] == {"summary": "Recovered"}

    blocked = [
        client.post(url(charged_admission, "/consultations"), json={
            "doctor_name": "Dr. Rao", "applied_date": "2024-05-01", "consultation_date": "2024-05-01"
        }, headers=auth_headers),
        add_payment(client, auth_headers, charged_admission, 100),
        client.delete(url(charged_admission, f"/payments/{payment['id']}"), headers=auth_headers),
        client.delete(url(charged_admission, f"/charges/{lines[0]['id']}"), headers=auth_headers),
        client.post(url(charged_admission, "/charges"), json={
            "charge_name": "Oxygen", "standard_charge": 100
        }, headers=auth_headers),
    ]
    for result in blocked:
        assert result.status_code == 423
        assert result.json()["error"]["code"] == "admission_read_only"

    payments = client.get(url(charged_admission, "/payments"), headers=auth_headers).json()
    assert payments["payments"][0]["actions"] == ["print"]
    assert client.get(url(charged_admission, "/receipt"), headers=auth_headers).status_code == 200

    again = client.post(url(charged_admission, "/discharge"), json={"discharge_status": "death"},
                        headers=auth_headers)
    assert again.status_code == 409


@pytest.mark.parametrize("status", ["pending", "referal"])
def test_discharge_status_must_be_final(client, auth_headers, admission, status):
    response = client.post(url(admission, "/discharge"), json={"discharge_status": status}, headers=auth_headers)
    assert response.status_code == 422


def test_discharged_patient_can_be_admitted_again(client, auth_headers, patient, admission):
    client.post(url(admission, "/discharge"), json={"discharge_status": "referral"}, headers=auth_headers)

    response = client.post("/api/ipd/admissions", json={"patient_id": patient.id}, headers=auth_headers)
    assert response.status_code == 201
