"""
Test configuration and fixtures.

Provides:
- SQLite in-memory database, schema created and dropped per test
- Users per role with signed session cookies
- HTTPX AsyncClient against the ASGI app
- A recording fake of the Stripe client
"""
import itertools
import os
import uuid
from dataclasses import dataclass
from types import SimpleNamespace
from typing import AsyncGenerator, Generator

# Must be set before the app modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("ENV", "test")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from fertility_api.core.deps import COOKIE_NAME, get_db, get_payment_client
from fertility_api.core.security import create_session_token
from fertility_api.db.base import Base
from fertility_api.db.enums import Role
from fertility_api.db.models import PatientProfile, Provider, User
from fertility_api.db.session import SessionLocal, engine
from fertility_api.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    The in-memory database lives on a single shared connection, so app code
    is free to commit.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


def make_user(
    db: Session,
    role: Role,
    email: str | None = None,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@clinic.com",
        role=role.value,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.flush()

    if role == Role.PROVIDER:
        db.add(Provider(user_id=user.id, first_name=first_name, last_name=last_name))
    elif role == Role.PATIENT:
        db.add(PatientProfile(user_id=user.id, first_name=first_name, last_name=last_name))
    db.commit()
    return user


@pytest.fixture(scope="function")
def admin_user(db: Session) -> User:
    return make_user(db, Role.ADMIN, email="admin@clinic.com", first_name="Ada", last_name="Admin")


@pytest.fixture(scope="function")
def staff_user(db: Session) -> User:
    return make_user(db, Role.STAFF, email="staff@clinic.com")


@pytest.fixture(scope="function")
def patient_user(db: Session) -> User:
    return make_user(db, Role.PATIENT, email="patient@gmail.com", first_name="Pat", last_name="Lee")


@pytest.fixture(scope="function")
def provider_user(db: Session) -> User:
    return make_user(db, Role.PROVIDER, email="doctor@clinic.com", first_name="Dana", last_name="Doe")


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def auth_for(user: User) -> TestAuth:
    return TestAuth(user=user, token=create_session_token(user_id=user.id, email=user.email))


# =============================================================================
# Payment processor fake
# =============================================================================

class _FakeResource:
    def __init__(self, parent: "FakeStripe", name: str):
        self._parent = parent
        self._name = name

    def __getattr__(self, op: str):
        def call(*args, **kwargs):
            self._parent.calls.append((self._name, op, args, kwargs))
            handler = self._parent.handlers.get((self._name, op))
            if handler is not None:
                return handler(*args, **kwargs)
            return self._parent.default_response(self._name, op, *args, **kwargs)
        return call


class FakeStripe:
    """
    Records calls made through `client.v1.<resource>.<op>()`.

    Tests can override a single operation with `handlers[(resource, op)]`.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.handlers: dict = {}
        self._ids = itertools.count(1)
        self.v1 = SimpleNamespace(
            customers=_FakeResource(self, "customers"),
            payment_intents=_FakeResource(self, "payment_intents"),
            subscriptions=_FakeResource(self, "subscriptions"),
            payment_methods=_FakeResource(self, "payment_methods"),
        )

    def calls_for(self, resource: str, op: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == resource and c[1] == op]

    def default_response(self, resource: str, op: str, *args, **kwargs):
        n = next(self._ids)
        params = kwargs.get("params") or {}
        if resource == "customers":
            return SimpleNamespace(id=f"cus_{n}", invoice_settings=SimpleNamespace(default_payment_method=None))
        if resource == "payment_intents":
            return SimpleNamespace(id=f"pi_{n}", client_secret=f"pi_{n}_secret_test")
        if resource == "subscriptions":
            invoice = SimpleNamespace(payment_intent=SimpleNamespace(client_secret=f"seti_{n}_secret"))
            return SimpleNamespace(id=f"sub_{n}", status="incomplete", latest_invoice=invoice)
        if resource == "payment_methods":
            if op == "list":
                return SimpleNamespace(data=[])
            return SimpleNamespace(id=args[0] if args else f"pm_{n}", customer=params.get("customer"))
        return SimpleNamespace(id=f"obj_{n}")


@pytest.fixture(scope="function")
def fake_stripe() -> FakeStripe:
    return FakeStripe()


# =============================================================================
# Client Fixtures
# =============================================================================

def _client(db: Session, fake_stripe: FakeStripe, cookies: dict | None = None) -> AsyncClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_client] = lambda: fake_stripe
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
    )


@pytest.fixture(scope="function")
async def client(db: Session, fake_stripe: FakeStripe) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client."""
    async with _client(db, fake_stripe) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, fake_stripe: FakeStripe, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    auth = auth_for(admin_user)
    async with _client(db, fake_stripe, {auth.cookie_name: auth.token}) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def staff_client(db: Session, fake_stripe: FakeStripe, staff_user: User) -> AsyncGenerator[AsyncClient, None]:
    auth = auth_for(staff_user)
    async with _client(db, fake_stripe, {auth.cookie_name: auth.token}) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def patient_client(db: Session, fake_stripe: FakeStripe, patient_user: User) -> AsyncGenerator[AsyncClient, None]:
    auth = auth_for(patient_user)
    async with _client(db, fake_stripe, {auth.cookie_name: auth.token}) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def provider_client(db: Session, fake_stripe: FakeStripe, provider_user: User) -> AsyncGenerator[AsyncClient, None]:
    auth = auth_for(provider_user)
    async with _client(db, fake_stripe, {auth.cookie_name: auth.token}) as c:
        yield c
    app.dependency_overrides.clear()
