from datetime import datetime

import pytest

DEPARTMENTS = [("pathology", "PATH"), ("radiology", "RAD")]


@pytest.fixture(params=DEPARTMENTS, ids=[d for d, _ in DEPARTMENTS])
def department(request):
    return request.param


@pytest.fixture()
def bill_payload(patient):
    return {
        "patient_id": patient.id,
        "doctor_name": "Sharma",
        "items": [
            {"test_name": "CBC", "qty": 2, "unit_price": 250},
            {"test_name": "Lipid Profile", "qty": 1, "unit_price": 1000},
        ],
        "discount_percent": 10,
        "tax_percent": 5,
    }


def bills_url(department):
    return f"/api/{department[0]}/bills"


def create_bill(client, headers, department, payload):
    response = client.post(bills_url(department), json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["bill"]


def test_create_bill_computes_totals_and_number(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)

    prefix = f"{department[1]}-{datetime.now():%Y%m}-"
    assert bill["bill_no"] == f"{prefix}0001"
    assert bill["total_amount"] == 1500.0
    assert bill["discount_amount"] == 150.0
    assert bill["tax_amount"] == 67.5
    assert bill["net_amount"] == 1417.5
    assert [item["amount"] for item in bill["items"]] == [500.0, 1000.0]
    assert bill["payment_status"] == "pending"

    second = create_bill(client, auth_headers, department, bill_payload)
    assert second["bill_no"] == f"{prefix}0002"


def test_bill_needs_items(client, auth_headers, department, bill_payload):
    response = client.post(bills_url(department), json={**bill_payload, "items": []}, headers=auth_headers)
    assert response.status_code == 422


def test_both_discount_forms_are_rejected(client, auth_headers, department, bill_payload):
    response = client.post(bills_url(department), json={**bill_payload, "discount_amount": 50},
                           headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "discount_percent"


def test_tax_percent_is_bounded(client, auth_headers, department, bill_payload):
    response = client.post(bills_url(department), json={**bill_payload, "tax_percent": 1000}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "tax_percent"


def test_discount_above_total_is_rejected(client, auth_headers, department, bill_payload):
    payload = {**bill_payload, "discount_percent": None, "discount_amount": 2000}
    response = client.post(bills_url(department), json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_amount"


def test_unknown_patient(client, auth_headers, department, bill_payload):
    response = client.post(bills_url(department), json={**bill_payload, "patient_id": "missing"},
                           headers=auth_headers)
    assert response.status_code == 404


def test_update_discount(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)

    response = client.put(f"{bills_url(department)}/{bill['id']}/discount", json={"discount_amount": 100},
                          headers=auth_headers)
    assert response.json()["bill"]["net_amount"] == 1470.0

    client.post(f"{bills_url(department)}/{bill['id']}/payments", json={"amount": 1000}, headers=auth_headers)
    below_paid = client.put(f"{bills_url(department)}/{bill['id']}/discount", json={"discount_percent": 100},
                            headers=auth_headers)
    assert below_paid.status_code == 400

    client.post(f"{bills_url(department)}/{bill['id']}/payments", json={"amount": 470}, headers=auth_headers)
    paid = client.put(f"{bills_url(department)}/{bill['id']}/discount", json={"discount_amount": 0},
                      headers=auth_headers)
    assert paid.status_code == 409


def test_payment_flow(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, {**bill_payload, "paid_amount": 417.5})
    assert bill["payment_status"] == "partially_paid"
    assert bill["payments"][0]["note"] == "Initial payment"

    url = f"{bills_url(department)}/{bill['id']}/payments"
    too_much = client.post(url, json={"amount": 1001}, headers=auth_headers)
    assert too_much.status_code == 400

    paid = client.post(url, json={"amount": 1000, "mode": "Card", "reference_no": "TXN-42"}, headers=auth_headers)
    assert paid.json()["bill"]["payment_status"] == "paid"
    assert paid.json()["bill"]["balance_amount"] == 0.0

    listing = client.get(url, headers=auth_headers).json()
    assert len(listing["payments"]) == 2
    assert listing["paid_amount"] == 1417.5

    payment_id = paid.json()["payment"]["id"]
    removed = client.delete(f"{url}/{payment_id}", headers=auth_headers)
    assert removed.json()["bill"]["payment_status"] == "partially_paid"


def test_edit_and_delete_gated_by_status(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    url = f"{bills_url(department)}/{bill['id']}"

    edited = client.put(url, json={**bill_payload, "items": [{"test_name": "ESR", "unit_price": 200}]},
                        headers=auth_headers)
    assert edited.status_code == 200
    assert [item["test_name"] for item in edited.json()["bill"]["items"]] == ["ESR"]
    # 200 - 10% = 180, + 5% = 189
    assert edited.json()["bill"]["net_amount"] == 189.0

    client.post(f"{url}/payments", json={"amount": 89}, headers=auth_headers)
    assert client.put(url, json=bill_payload, headers=auth_headers).status_code == 409
    assert client.delete(url, headers=auth_headers).status_code == 409


def test_delete_pending_bill(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    url = f"{bills_url(department)}/{bill['id']}"

    assert client.delete(url, headers=auth_headers).json()["status"] == "success"

    missing = client.get(url, headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"


def test_list_search_status_and_columns(client, auth_headers, department, bill_payload):
    first = create_bill(client, auth_headers, department, bill_payload)
    create_bill(client, auth_headers, department, {**bill_payload, "paid_amount": 1417.5})

    pending = client.get(bills_url(department), params={"payment_status": "pending"}, headers=auth_headers).json()
    assert [b["id"] for b in pending["bills"]] == [first["id"]]

    by_number = client.get(bills_url(department), params={"search": first["bill_no"], "fields": "bill_no,net_amount"},
                           headers=auth_headers).json()
    assert by_number["pagination"]["total"] == 1
    assert by_number["columns"]["visible"] == ["bill_no", "net_amount", "actions"]
    assert set(by_number["bills"][0]) == {"id", "bill_no", "net_amount", "actions"}

    bad_status = client.get(bills_url(department), params={"payment_status": "cancelled"}, headers=auth_headers)
    assert bad_status.status_code == 422


def test_receipt_header_follows_org_mode(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    url = f"{bills_url(department)}/{bill['id']}/receipt"

    receipt = client.get(url, headers=auth_headers).json()["receipt"]
    assert receipt["number"] == bill["bill_no"]
    assert [b["type"] for b in receipt["header"]["blocks"]] == ["hospital", "doctor"]
    assert [line["description"] for line in receipt["lines"]] == ["CBC", "Lipid Profile"]

    client.put("/api/clinic", json={"org_mode": False}, headers=auth_headers)
    receipt = client.get(url, headers=auth_headers).json()["receipt"]
    assert [b["type"] for b in receipt["header"]["blocks"]] == ["doctor", "hospital"]
    assert receipt["header"]["blocks"][0]["name"] == "Dr. Sharma"


def test_linked_doctor_name_is_used(client, auth_headers, department, bill_payload, doctor):
    bill = create_bill(client, auth_headers, department,
                       {**bill_payload, "doctor_id": doctor.id, "doctor_name": None})
    assert bill["doctor_name"] == "Neha Sharma"

    receipt = client.get(f"{bills_url(department)}/{bill['id']}/receipt", headers=auth_headers).json()["receipt"]
    assert receipt["header"]["blocks"][1]["specialization"] == "Pathology"


def test_bills_are_scoped_to_organization(client, auth_headers, other_org_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)

    response = client.get(f"{bills_url(department)}/{bill['id']}", headers=other_org_headers)
    assert response.status_code == 404


# ==================== PAYMENT REGISTER ====================

def register_url(department):
    return f"/api/{department[0]}/payments"


def test_payment_register_lists_payments_across_bills(client, auth_headers, department, bill_payload):
    first = create_bill(client, auth_headers, department, {**bill_payload, "paid_amount": 400})
    second = create_bill(client, auth_headers, department, bill_payload)
    client.post(f"{bills_url(department)}/{second['id']}/payments",
                json={"amount": 100, "mode": "UPI", "reference_no": "UTR-77"}, headers=auth_headers)

    register = client.get(register_url(department), headers=auth_headers).json()
    assert register["pagination"]["total"] == 2
    assert register["total_received"] == 500.0
    assert {p["bill_no"] for p in register["payments"]} == {first["bill_no"], second["bill_no"]}
    assert register["payments"][0]["patient_name"] == "Rahul Kumar"

    by_reference = client.get(register_url(department), params={"search": "UTR-77"}, headers=auth_headers).json()
    assert [p["bill_id"] for p in by_reference["payments"]] == [second["id"]]
    assert by_reference["total_received"] == 100.0

    by_mode = client.get(register_url(department), params={"mode": "Cash"}, headers=auth_headers).json()
    assert [p["amount"] for p in by_mode["payments"]] == [400.0]


def test_payment_register_is_scoped_to_organization(client, auth_headers, other_org_headers, department,
                                                    bill_payload):
    create_bill(client, auth_headers, department, {**bill_payload, "paid_amount": 400})

    register = client.get(register_url(department), headers=other_org_headers).json()
    assert register["payments"] == []
    assert register["total_received"] == 0.0


# ==================== RESULTS ====================

RESULT_PAYLOAD = {
    "parameter_values": [
        {"name": "Hemoglobin", "value": "13.2", "unit": "g/dL"},
        {"name": "WBC", "value": "", "unit": "cells/uL"},
    ],
    "approved_by": "Dr. Mehta",
    "approved_at": "2024-05-02T11:00:00",
    "technician_name": "Anil",
}


def result_url(department, bill, item):
    return f"{bills_url(department)}/{bill['id']}/items/{item['id']}/result"


def test_save_and_replace_result(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    item = bill["items"][0]
    url = result_url(department, bill, item)

    empty = client.get(url, headers=auth_headers).json()
    assert empty["test_name"] == "CBC"
    assert empty["result"] is None

    saved = client.put(url, json=RESULT_PAYLOAD, headers=auth_headers)
    assert saved.status_code == 200
    # blank values are not stored
    assert [v["name"] for v in saved.json()["result"]["parameter_values"]] == ["Hemoglobin"]

    replaced = client.put(url, json={
        **RESULT_PAYLOAD, "parameter_values": [{"name": "Hemoglobin", "value": "12.8", "unit": "g/dL"}]
    }, headers=auth_headers).json()["result"]
    assert replaced["id"] == saved.json()["result"]["id"]
    assert replaced["parameter_values"][0]["value"] == "12.8"

    fetched = client.get(f"{bills_url(department)}/{bill['id']}", headers=auth_headers).json()["bill"]
    assert [i["has_result"] for i in fetched["items"]] == [True, False]


def test_result_needs_a_value(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    url = result_url(department, bill, bill["items"][0])

    blank = client.put(url, json={**RESULT_PAYLOAD, "parameter_values": [{"name": "WBC", "value": " "}]},
                       headers=auth_headers)
    assert blank.status_code == 400
    assert client.get(url, headers=auth_headers).json()["result"] is None


def test_result_needs_approver(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    payload = {k: v for k, v in RESULT_PAYLOAD.items() if k != "approved_by"}

    response = client.put(result_url(department, bill, bill["items"][0]), json=payload, headers=auth_headers)
    assert response.status_code == 422


def test_reported_bill_cannot_be_edited(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)
    client.put(result_url(department, bill, bill["items"][0]), json=RESULT_PAYLOAD, headers=auth_headers)

    response = client.put(f"{bills_url(department)}/{bill['id']}", json=bill_payload, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "invalid_transition"


def test_result_for_unknown_test(client, auth_headers, department, bill_payload):
    bill = create_bill(client, auth_headers, department, bill_payload)

    response = client.get(result_url(department, bill, {"id": "missing"}), headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"
