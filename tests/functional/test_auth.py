import uuid

from fastapi.testclient import TestClient

from library_api.core.security import create_access_token, decode_access_token


def _unique_email(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def test_register_creates_patron(client: TestClient):
    email = _unique_email("register")
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": email, "full_name": "Nuevo Lector", "password": "secret123"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["email"] == email
    assert body["role"] == "patron"
    assert "hashed_password" not in body


def test_register_ignores_requested_role(client: TestClient):
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "email": _unique_email("sneaky"),
            "full_name": "Sneaky",
            "password": "secret123",
            "role": "admin",
        },
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["role"] == "patron"


def test_register_duplicate_email_is_conflict(client: TestClient):
    email = _unique_email("dup")
    payload = {"email": email, "full_name": "Dup", "password": "secret123"}

    assert client.post("/api/v1/auth/register", json=payload).status_code == 201
    resp = client.post("/api/v1/auth/register", json=payload)
    assert resp.status_code == 409
    assert resp.json()["kind"] == "conflict"


def test_register_invalid_email_is_validation_error(client: TestClient):
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": "not-an-email", "full_name": "X", "password": "secret123"},
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "validation_error"


def test_login_returns_token_with_user_and_role(client: TestClient, patron_user, patron_credentials):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": patron_credentials["email"], "password": patron_credentials["password"]},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["token_type"] == "bearer"

    payload = decode_access_token(body["access_token"])
    assert payload["user_id"] == patron_user.id
    assert payload["role"] == "patron"


def test_login_wrong_password(client: TestClient, admin_credentials):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": admin_credentials["email"], "password": "wrong"},
    )
    assert resp.status_code == 401
    assert resp.json()["kind"] == "unauthorized"


def test_invalid_token_is_rejected(client: TestClient):
    resp = client.get("/api/v1/books/", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_token_for_unknown_user_is_rejected(client: TestClient):
    token = create_access_token(user_id=987654, role="admin")
    resp = client.get("/api/v1/books/", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_users_endpoint_is_admin_only(client: TestClient, admin_headers, patron_headers):
    resp = client.post(
        "/api/v1/users/",
        json={
            "email": _unique_email("staff"),
            "full_name": "Staff",
            "password": "secret123",
            "role": "admin",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["role"] == "admin"

    assert client.get("/api/v1/users/", headers=admin_headers).status_code == 200
    assert client.get("/api/v1/users/", headers=patron_headers).status_code == 403
