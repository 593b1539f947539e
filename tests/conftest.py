"""Pytest configuration and fixtures."""

import os
import uuid
from datetime import datetime, timezone
from typing import Generator

# Settings are read at import time; point everything at throwaway values first.
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["PUSH_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.auth import actor_for
from app.core.config import get_settings
from app.database import get_session
from app.dependencies import build_services, get_services
from app.main import app
from app.models.driver import Driver
from app.models.merchant import Merchant, MenuItem
from app.models.user import User
from app.schemas.order import OrderCreate

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite://"


class FakePush:
    """Records notifications instead of calling FCM."""

    enabled = True

    def __init__(self):
        self.calls: list[dict] = []

    def initialize(self) -> None:
        pass

    def notify(self, tokens, title, body, data=None):
        self.calls.append({"tokens": list(tokens), "title": title, "body": body, "data": data})
        return {"success_count": len(tokens), "failure_count": 0}


class FakeAuthAdmin:
    """Stands in for the Supabase admin client (auth.admin.create_user)."""

    def __init__(self):
        self.created: list[dict] = []
        self.auth = self
        self.admin = self

    def create_user(self, attributes: dict):
        self.created.append(attributes)
        user = type("AuthUser", (), {"id": str(uuid.uuid4())})()
        return type("AuthResponse", (), {"user": user})()


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def push() -> FakePush:
    return FakePush()


@pytest.fixture
def auth_admin() -> FakeAuthAdmin:
    return FakeAuthAdmin()


@pytest.fixture
def services(settings, push, auth_admin):
    return build_services(settings, push, auth_admin=lambda: auth_admin)


@pytest.fixture(scope="function")
def client(session: Session, services) -> Generator[TestClient, None, None]:
    """Create a test client with database and service overrides."""

    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# -------- Factories --------


def _make_user(session: Session, role: str = "client", **fields) -> User:
    user_id = fields.pop("id", None) or uuid.uuid4()
    user = User(
        id=user_id,
        email=fields.pop("email", f"{role}-{user_id.hex[:8]}@example.com"),
        name=fields.pop("name", role.title()),
        role=role,
        **fields,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def _make_driver(session: Session, **fields) -> Driver:
    user = _make_user(session, role="driver")
    defaults = dict(
        display_name="Driver",
        is_verified=True,
        is_online=True,
        is_available=True,
        fcm_tokens=[f"token-{user.id.hex[:6]}"],
        location_updated_at=datetime.now(timezone.utc),
    )
    defaults.update(fields)
    driver = Driver(id=user.id, **defaults)
    session.add(driver)
    session.commit()
    session.refresh(driver)
    return driver


def _auth_headers(user: User) -> dict:
    token = jwt.encode(
        {"sub": str(user.id), "email": user.email},
        get_settings().SUPABASE_JWT_SECRET,
        algorithm=get_settings().SUPABASE_JWT_ALG,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_user(session: Session) -> User:
    return _make_user(session, role="client", name="Ana")


@pytest.fixture
def merchant(session: Session) -> Merchant:
    merchant = Merchant(name="Tacos El Gordo", is_open=True, fcm_tokens=["merchant-device"])
    session.add(merchant)
    session.commit()
    session.refresh(merchant)
    return merchant


@pytest.fixture
def merchant_user(session: Session, merchant: Merchant) -> User:
    return _make_user(session, role="merchant", merchant_id=merchant.id)


@pytest.fixture
def admin_user(session: Session) -> User:
    return _make_user(session, role="admin")


@pytest.fixture
def taco(session: Session, merchant: Merchant) -> MenuItem:
    """Menu item with a size modifier group."""
    item = MenuItem(
        merchant_id=merchant.id,
        name="Taco",
        price=50.0,
        is_available=True,
        modifier_groups=[
            {
                "id": "size",
                "name": "Size",
                "required": True,
                "multi_select": False,
                "options": [
                    {"id": "regular", "name": "Regular", "price": 0.0},
                    {"id": "large", "name": "Large", "price": 10.0},
                ],
            }
        ],
    )
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


@pytest.fixture
def driver(session: Session) -> Driver:
    return _make_driver(session)


@pytest.fixture
def make_user(session: Session):
    """Factory: make_user(role="client", **fields)."""
    return lambda role="client", **fields: _make_user(session, role=role, **fields)


@pytest.fixture
def make_driver(session: Session):
    """Factory: make_driver(**driver_fields); verified, online and available by default."""
    return lambda **fields: _make_driver(session, **fields)


@pytest.fixture
def auth_headers():
    """Bearer headers carrying a Supabase-style JWT for the given user."""
    return _auth_headers


@pytest.fixture
def place_order(session: Session, services, client_user: User, merchant: Merchant, taco: MenuItem):
    """
    Factory: checkout through OrderService as `client_user`.

    Defaults to two regular tacos paid in cash with the fees shown at checkout.
    """

    def _place(items=None, user: User | None = None, **payload):
        body = {
            "merchant_id": merchant.id,
            "items": items
            or [
                {
                    "item_id": taco.id,
                    "name": "Taco",
                    "quantity": 2,
                    "modifiers": [{"group_id": "size", "selected": [{"id": "regular"}]}],
                    "subtotal": 100.0,
                }
            ],
            "payment_method": "cash",
            "delivery_address": "Calle 5 #12, Centro",
            "delivery_fee": 25.0,
            "service_fee": 5.0,
            **payload,
        }
        return services.orders.create_order(
            session, actor_for(user or client_user), OrderCreate.model_validate(body)
        )

    return _place
