from tests.conftest import TEST_PASSWORD

REGISTER_PAYLOAD = {
    "organization_name": "Sunrise Clinic",
    "name": "Asha Rao",
    "email": "asha@sunrise.in",
    "password": "Sunrise@123",
    "org_mode": False,
}


def test_register_creates_owner_and_returns_tokens(client):
    response = client.post("/api/auth/register", json=REGISTER_PAYLOAD)

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "owner"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "asha@sunrise.in"

    clinic = client.get("/api/clinic", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert clinic.json()["clinic"]["org_mode"] is False


def test_register_rejects_duplicate_email(client):
    client.post("/api/auth/register", json=REGISTER_PAYLOAD)
    response = client.post("/api/auth/register", json=REGISTER_PAYLOAD)

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_register_validates_password_length(client):
    response = client.post("/api/auth/register", json={**REGISTER_PAYLOAD, "password": "short"})
    assert response.status_code == 422


def test_login(client, owner):
    response = client.post("/api/auth/login", json={"email": owner.email, "password": TEST_PASSWORD})

    assert response.status_code == 200
    assert response.json()["user"]["email"] == owner.email


def test_login_with_wrong_password(client, owner):
    response = client.post("/api/auth/login", json={"email": owner.email, "password": "wrong-password"})
    assert response.status_code == 401


def test_refresh_token_issues_new_access_token(client, owner):
    tokens = client.post("/api/auth/login", json={"email": owner.email, "password": TEST_PASSWORD}).json()

    response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    assert response.json()["access_token"]

    wrong_type = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert wrong_type.status_code == 400


def test_protected_routes_need_a_valid_token(client):
    assert client.get("/api/employees").status_code in (401, 403)

    response = client.get("/api/employees", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
