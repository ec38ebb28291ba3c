"""Pytest fixtures."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from safecampus.core.rate_limit import SlidingWindowLimiter
from safecampus.db.base import Base
from safecampus.db.session import get_db
from safecampus.main import app
from safecampus.models import EmergencyContact, Incident, User  # noqa: F401 - register for create_all
from safecampus.services import auth_service
from safecampus.services.change_feed import ChangeFeed, change_feed
from safecampus.services.incident_store import SqlIncidentStore
from safecampus.services.notification_queue import NotificationQueue
from safecampus.services.session_runtime import runtime_registry

from fakes import FakeClock, FakeIncidentStore

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(setup_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(setup_db):
    """Test client with overridden DB and incident store."""
    app.dependency_overrides[get_db] = override_get_db
    runtime_registry.configure(
        store=SqlIncidentStore(TestingSessionLocal, change_feed, insert_limiter=SlidingWindowLimiter(limit=1000))
    )
    auth_service.login_limiter.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def register_and_login(client):
    """Create a fresh user and return (user_id, auth headers)."""

    def _make(password: str = "secret1"):
        email = f"user_{uuid4().hex[:10]}@test.com"
        r = client.post("/auth/register", json={"email": email, "password": password, "full_name": "Test"})
        assert r.status_code == 200, r.text
        user_id = r.json()["id"]
        token = client.post("/auth/login", json={"email": email, "password": password}).json()["access_token"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def store(feed):
    return FakeIncidentStore(feed)


@pytest.fixture
def notifications(clock):
    return NotificationQueue(ttl_seconds=3.0, clock=clock)
