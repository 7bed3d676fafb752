"""
Test fixtures for farealert tests.
"""
import pytest
from datetime import datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from farealert.database import Base, get_db, enable_sqlite_foreign_keys
from farealert.main import app
from farealert.models import Destination, NotificationPreference, Subscription


# Create test database engine (SQLite in-memory)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Monday noon in New York (EDT, UTC-4)
NOW = datetime(2026, 10, 19, 16, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def make_destination(db_session):
    def _make(airport_code="LIS", city_name="Lisbon", country="Portugal", is_active=True):
        destination = Destination(
            airport_code=airport_code,
            city_name=city_name,
            country=country,
            is_active=is_active,
        )
        db_session.add(destination)
        db_session.commit()
        return destination
    return _make


@pytest.fixture
def make_subscription(db_session):
    def _make(destination, user_id="user-1", threshold=500, **kwargs):
        subscription = Subscription(
            user_id=user_id,
            destination_id=destination.id,
            price_threshold=Decimal(str(threshold)),
            **kwargs,
        )
        db_session.add(subscription)
        db_session.commit()
        return subscription
    return _make


@pytest.fixture
def make_preference(db_session):
    def _make(user_id="user-1", **kwargs):
        preference = NotificationPreference(user_id=user_id, **kwargs)
        db_session.add(preference)
        db_session.commit()
        return preference
    return _make


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """
    Override the get_db dependency to use the test database session.
    """
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    return _override_get_db


@pytest.fixture(scope="function")
async def client(override_get_db):
    """
    Create an async test client with the database dependency overridden.
    """
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
