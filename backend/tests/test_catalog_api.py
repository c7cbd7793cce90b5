import pytest


@pytest.fixture()
def refs(client, auth_headers):
    def post(path, payload):
        return client.post(f"/api/charges{path}", json=payload, headers=auth_headers).json()["data"]

    charge_type = post("/types", {"name": "Ambulance", "modules": ["ambulance"]})
    return {
        "charge_type": charge_type,
        "category": post("/categories", {"name": "Transport", "charge_type_id": charge_type["id"]}),
        "unit": post("/units", {"name": "Per Trip"}),
        "tax": post("/tax-categories", {"name": "GST 5%", "percent": 5}),
    }


def charge_payload(refs, **overrides):
    payload = {
        "name": "City Ambulance",
        "charge_category_id": refs["category"]["id"],
        "charge_type_id": refs["charge_type"]["id"],
        "unit_id": refs["unit"]["id"],
        "tax_category_id": refs["tax"]["id"],
        "amount": 1500,
    }
    payload.update(overrides)
    return payload


# ==================== CHARGES ====================

def test_charge_type_modules_are_validated(client, auth_headers):
    response = client.post("/api/charges/types", json={"name": "Pharmacy", "modules": ["pharmacy"]},
                           headers=auth_headers)
    assert response.status_code == 422


def test_category_needs_known_charge_type(client, auth_headers):
    response = client.post("/api/charges/categories", json={"name": "Beds", "charge_type_id": "missing"},
                           headers=auth_headers)
    assert response.status_code == 400


def test_create_and_filter_charges(client, auth_headers, refs):
    created = client.post("/api/charges", json=charge_payload(refs), headers=auth_headers)
    assert created.status_code == 201
    charge = created.json()["data"]
    assert charge["tax_percent"] == 5.0
    assert charge["unit"] == "Per Trip"

    assert len(client.get("/api/charges", params={"module": "ambulance"}, headers=auth_headers).json()["charges"]) == 1
    assert client.get("/api/charges", params={"module": "ipd"}, headers=auth_headers).json()["charges"] == []

    fetched = client.get(f"/api/charges/{charge['id']}", headers=auth_headers).json()["charge"]
    assert fetched["category"] == "Transport"


def test_charge_refs_must_exist(client, auth_headers, refs):
    response = client.post("/api/charges", json=charge_payload(refs, unit_id="missing"), headers=auth_headers)

    assert response.status_code == 400
    assert "unit_id" in response.json()["detail"]


def test_update_charge(client, auth_headers, refs):
    charge = client.post("/api/charges", json=charge_payload(refs), headers=auth_headers).json()["data"]

    response = client.put(f"/api/charges/{charge['id']}", json=charge_payload(refs, amount=1800),
                          headers=auth_headers)
    assert response.json()["data"]["amount"] == 1800.0


def test_tax_category_soft_delete_and_restore(client, auth_headers, refs):
    tax_id = refs["tax"]["id"]

    client.delete(f"/api/charges/tax-categories/{tax_id}", headers=auth_headers)
    assert client.get("/api/charges/tax-categories", headers=auth_headers).json()["tax_categories"] == []

    hidden = client.get("/api/charges/tax-categories", params={"show_deleted": True}, headers=auth_headers)
    assert hidden.json()["tax_categories"][0]["is_deleted"] is True

    restored = client.post(f"/api/charges/tax-categories/{tax_id}/restore", headers=auth_headers)
    assert restored.json()["data"]["is_deleted"] is False


def test_units_are_removed_outright(client, auth_headers):
    unit = client.post("/api/charges/units", json={"name": "Per Hour"}, headers=auth_headers).json()["data"]

    response = client.delete(f"/api/charges/units/{unit['id']}", headers=auth_headers)

    assert response.json()["message"] == "Unit deleted"
    assert client.get("/api/charges/units", headers=auth_headers).json()["units"] == []


def test_deleted_charge_cannot_be_billed(client, auth_headers, refs, patient):
    charge = client.post("/api/charges", json=charge_payload(refs), headers=auth_headers).json()["data"]
    ambulance = client.post("/api/ambulance/ambulances", json={
        "vehicle_number": "MH12XY0001", "vehicle_type": "rented", "vehicle_model": "Tata Winger",
        "vehicle_year": "2021", "driver_name": "Ganesh", "driver_contact_no": "9876522222",
        "driver_license_no": "MH1220210000001",
    }, headers=auth_headers).json()["ambulance"]
    booking = {
        "patient_id": patient.id, "ambulance_id": ambulance["id"], "charge_id": charge["id"],
        "pickup_location": "Home", "drop_location": "City Hospital", "booking_date": "2024-05-01",
    }

    # amount and tax come from the catalog entry
    created = client.post("/api/ambulance/bookings", json=booking, headers=auth_headers).json()["booking"]
    assert created["standard_charge"] == 1500.0
    assert created["net_amount"] == 1575.0

    client.delete(f"/api/charges/{charge['id']}", headers=auth_headers)
    response = client.post("/api/ambulance/bookings", json=booking, headers=auth_headers)
    assert response.status_code == 404


# ==================== OPERATIONS ====================

@pytest.fixture()
def operation_category(client, auth_headers):
    return client.post("/api/operations/categories", json={"name": "Orthopaedic"},
                       headers=auth_headers).json()["category"]


def test_operation_catalog_lifecycle(client, auth_headers, operation_category):
    operation = client.post("/api/operations", json={
        "name": "Knee Replacement", "operation_category_id": operation_category["id"]
    }, headers=auth_headers).json()["operation"]
    assert operation["category"] == "Orthopaedic"
    assert operation["actions"] == ["edit", "delete"]

    assert client.delete(f"/api/operations/{operation['id']}/permanent", headers=auth_headers).status_code == 409

    client.delete(f"/api/operations/{operation['id']}", headers=auth_headers)
    assert client.get("/api/operations", headers=auth_headers).json()["operations"] == []

    edit_deleted = client.put(f"/api/operations/{operation['id']}", json={
        "name": "Knee Replacement (TKR)", "operation_category_id": operation_category["id"]
    }, headers=auth_headers)
    assert edit_deleted.status_code == 409

    assert client.get(f"/api/operations/{operation['id']}", headers=auth_headers).json()["operation"]["is_deleted"] is True

    purged = client.delete(f"/api/operations/{operation['id']}/permanent", headers=auth_headers)
    assert purged.status_code == 200
    assert client.get("/api/operations", params={"show_deleted": True}, headers=auth_headers).json()["operations"] == []
    assert client.get(f"/api/operations/{operation['id']}", headers=auth_headers).status_code == 404
    assert client.post(f"/api/operations/{operation['id']}/restore", headers=auth_headers).status_code == 404


def test_operation_needs_active_category(client, auth_headers, operation_category):
    client.delete(f"/api/operations/categories/{operation_category['id']}", headers=auth_headers)

    response = client.post("/api/operations", json={
        "name": "Arthroscopy", "operation_category_id": operation_category["id"]
    }, headers=auth_headers)
    assert response.status_code == 400

    client.post(f"/api/operations/categories/{operation_category['id']}/restore", headers=auth_headers)
    response = client.post("/api/operations", json={
        "name": "Arthroscopy", "operation_category_id": operation_category["id"]
    }, headers=auth_headers)
    assert response.status_code == 201
