import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient

import uuid

from labdesk import models
from labdesk.auth import get_password_hash
from labdesk.config import Settings
from labdesk.main import create_app
from labdesk.services.alerts import AlertService
from labdesk.services.booking import BookingService
from labdesk.services.inventory import InventoryCatalog
from labdesk.services.stock_ledger import StockLedger

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
TEST_SETTINGS = Settings(database_url=SQLALCHEMY_DATABASE_URL, secret_key="test-secret", testing=True)

app = create_app(TEST_SETTINGS)
app.state.store.drop_all()
app.state.store.create_all()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store():
    return app.state.store


@pytest.fixture
def booking_service(store):
    return BookingService(store)


@pytest.fixture
def ledger(store):
    return StockLedger(store)


@pytest.fixture
def catalog(store, ledger):
    return InventoryCatalog(store, ledger)


@pytest.fixture
def alert_service(store):
    return AlertService(store)


def ensure_access_token(client, *, email: str | None = None, password: str = "secret123"):
    """
    labdesk: purpose: register a fresh account, or log in when the email is already taken
    labdesk: outputs: tuple(access_token str, normalized email str)
    """

    normalized_email = email or f"user-{uuid.uuid4()}@example.com"
    payload = {"email": normalized_email, "password": password}
    resp = client.post("/api/auth/register", json=payload)
    if resp.status_code == 200:
        data = resp.json()
    elif resp.status_code == 400 and resp.json().get("detail") == "Email already registered":
        login_resp = client.post("/api/auth/login", json=payload)
        assert login_resp.status_code == 200, f"Login failed for existing user {normalized_email}: {login_resp.text}"
        data = login_resp.json()
    else:
        raise AssertionError(f"Unexpected auth bootstrap failure for {normalized_email}: {resp.status_code} {resp.text}")
    token = data.get("access_token")
    if not token:
        raise AssertionError(f"Authentication response missing token for {normalized_email}: {data}")
    return token, normalized_email


def ensure_auth_headers(client, *, email: str | None = None, password: str = "secret123"):
    token, normalized_email = ensure_access_token(client, email=email, password=password)
    return {"Authorization": f"Bearer {token}"}, normalized_email


def promote(store, email: str) -> None:
    with store.transaction() as db:
        user = db.query(models.User).filter(models.User.email == email).one()
        user.is_admin = True


def ensure_admin_headers(client, store):
    headers, email = ensure_auth_headers(client)
    promote(store, email)
    return headers, email


def create_user(store, *, is_admin: bool = False) -> models.User:
    with store.transaction() as db:
        user = models.User(
            email=f"svc-{uuid.uuid4()}@example.com",
            hashed_password=get_password_hash("secret123"),
            is_admin=is_admin,
        )
        db.add(user)
        db.flush()
        return user


def create_equipment(store, *, status: str = "available", name: str = "Thermocycler") -> models.Equipment:
    with store.transaction() as db:
        eq = models.Equipment(name=name, eq_type="pcr", status=status)
        db.add(eq)
        db.flush()
        return eq
