"""Pytest configuration and fixtures."""

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
# Import all models to ensure they're registered with Base.metadata
from app.models import *
from app.models.active_order import ActiveOrder
from app.services.config_store import InMemoryConfigStore

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Jos, Plateau State
RESTAURANT_LAT = 9.8965
RESTAURANT_LON = 8.8583


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine, session_factory, db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # The runtime's config store and pollers use the same database
    app.state.engine = db_engine
    app.state.session_factory = session_factory
    # Disable rate limiter during tests to avoid flaky failures
    from app.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()
    del app.state.engine
    del app.state.session_factory


@pytest.fixture
def store() -> InMemoryConfigStore:
    """Empty in-memory configuration store."""
    return InMemoryConfigStore()


@pytest.fixture
def configured_fence(client: TestClient) -> dict:
    """Geofence around the restaurant with the default 50 m radius."""
    response = client.put(
        "/api/v1/geofence/",
        json={"latitude": RESTAURANT_LAT, "longitude": RESTAURANT_LON, "radius": 50},
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def kitchen_order(db_session: Session) -> ActiveOrder:
    """A confirmed transfer order waiting in the kitchen."""
    order = ActiveOrder(
        customer="Amaka",
        table_number="4",
        items=[{"name": "Jollof Rice", "quantity": 2, "price": 2500.0}],
        payment_method="transfer",
        payment_confirmed=True,
        status="pending",
        total=5000,
    )
    db_session.add(order)
    db_session.commit()
    db_session.refresh(order)
    return order
