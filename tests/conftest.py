#configuración de los test
import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Generator

import pytest

# ======================================================
# Base de datos SQLite temporal (antes de importar la app)
# ======================================================
_TMP_DIR = tempfile.mkdtemp(prefix="library-loans-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMP_DIR) / 'test.db'}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.setdefault("BUILTIN_ADMIN_EMAIL", "admin@library.local")
os.environ.setdefault("BUILTIN_ADMIN_PASSWORD", "admin123")

# ======================================================
# Ajuste del sys.path para que 'library_api/' sea importable
# ======================================================
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fastapi.testclient import TestClient

from library_api.main import app
from library_api.db.models import User, UserRole
from library_api.db.session import SessionLocal, init_db
from library_api.schemas.auth import ActingUser
from library_api.services import users as users_service


@pytest.fixture(scope="session", autouse=True)
def _schema():
    """Crea las tablas una vez para toda la sesión (tests de servicios incluidos)."""
    init_db()


# ======================================================
# DB SESSION FIXTURE
# ======================================================
@pytest.fixture
def db_session() -> Generator:
    """
    Sesión de DB para tests de servicios.
    OJO: no mezclar con requests del client mientras tenga una transacción abierta.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ======================================================
# CLIENT FIXTURE
# ======================================================
@pytest.fixture(scope="session")
def client():
    """
    TestClient de FastAPI (con contexto, así corre el startup).
    """
    with TestClient(app) as c:
        yield c


# ======================================================
# Helpers
# ======================================================
@pytest.fixture
def unique_isbn():
    """ISBN único (solo dígitos y guiones)."""
    def _make() -> str:
        return f"978-{uuid.uuid4().int % 10**10:010d}"

    return _make


def _ensure_user(email: str, password: str, role: UserRole) -> User:
    with SessionLocal() as db:
        user = users_service.find_user_by_email(db, email)
        if user is None:
            user = users_service.create_user(
                db,
                email=email,
                full_name=email.split("@")[0],
                password=password,
                role=role,
            )
        db.expunge(user)
        return user


def _login(client: TestClient, email: str, password: str) -> str:
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": email, "password": password},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


# ======================================================
# ADMIN FIXTURES
# ======================================================
@pytest.fixture(scope="session")
def admin_credentials():
    return {"email": "admin@library.local", "password": "admin123"}


@pytest.fixture(scope="session")
def admin_token(client: TestClient, admin_credentials):
    # el startup ya crea el admin embebido
    return _login(client, admin_credentials["email"], admin_credentials["password"])


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


# ======================================================
# PATRON FIXTURES
# ======================================================
@pytest.fixture(scope="session")
def patron_credentials():
    return {"email": "patron_test@example.com", "password": "patron123"}


@pytest.fixture(scope="session")
def patron_user(client: TestClient, patron_credentials) -> User:
    return _ensure_user(patron_credentials["email"], patron_credentials["password"], UserRole.PATRON)


@pytest.fixture(scope="session")
def patron_token(client: TestClient, patron_user, patron_credentials):
    return _login(client, patron_credentials["email"], patron_credentials["password"])


@pytest.fixture
def patron_headers(patron_token):
    return {"Authorization": f"Bearer {patron_token}"}


@pytest.fixture(scope="session")
def other_patron_user(client: TestClient) -> User:
    return _ensure_user("other_patron@example.com", "other123", UserRole.PATRON)


@pytest.fixture(scope="session")
def other_patron_token(client: TestClient, other_patron_user):
    return _login(client, "other_patron@example.com", "other123")


@pytest.fixture
def other_patron_headers(other_patron_token):
    return {"Authorization": f"Bearer {other_patron_token}"}


# ======================================================
# Identidades para tests de servicios (sin HTTP)
# ======================================================
@pytest.fixture
def make_acting_user():
    """Crea un usuario real en la DB y devuelve su ActingUser."""
    def _make(role: UserRole = UserRole.PATRON) -> ActingUser:
        user = _ensure_user(f"svc_{uuid.uuid4().hex[:10]}@example.com", "secret123", role)
        return ActingUser(id=user.id, role=user.role)

    return _make
