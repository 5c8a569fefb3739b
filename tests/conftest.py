import os

# Settings are read at import time, so the environment must be in place first
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_staybnb.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from unittest.mock import MagicMock, AsyncMock

from staybnb.main import app
from staybnb.database import Base, get_db, get_redis_client
from staybnb.routers.booking_router import booking_rate_limiter
from staybnb import auth, models

# --- Test Database Setup ---
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_staybnb.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)


# pysqlite only handles SAVEPOINT correctly when SQLAlchemy emits BEGIN itself
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


# commit()/rollback() inside the code under test only touch a savepoint,
# so every test can still be undone as a whole.
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine, join_transaction_mode="create_savepoint"
)


# --- Database Management Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def setup_db():
    """Creates and drops the test database tables."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Provides a session whose work is rolled back after each test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


# --- Mocking External Services ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the scheduler and the rate limiter setup that run on app lifespan.
    """
    mocker.patch("staybnb.main.run_booking_scheduler", new_callable=AsyncMock)
    mocker.patch("staybnb.main.FastAPILimiter.init", new_callable=AsyncMock)


@pytest.fixture(scope="function")
def redis_mock():
    """A Redis client that always misses."""
    client = MagicMock()
    client.get.return_value = None
    return client


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session, redis_mock):
    def override_get_db():
        yield db_session

    def override_get_redis_client():
        yield redis_mock

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = override_get_redis_client
    app.dependency_overrides[booking_rate_limiter] = lambda: None

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# --- Data helpers ---
@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role: models.UserRole = models.UserRole.GUEST, first_name: str = "Test") -> models.User:
        counter["n"] += 1
        user = models.User(
            username=f"{role.value}{counter['n']}",
            email=f"{role.value}{counter['n']}@staybnb.io",
            password_hash=auth.hash_password("secret123"),
            first_name=first_name,
            last_name="User",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_property(db_session):
    def _make_property(host: models.User, price_per_night="1000", num_guests: int = 4, **overrides) -> models.Property:
        fields = dict(
            host_id=host.user_id,
            title="Lake House",
            description="Quiet place by the lake.",
            address="1 Shore Road",
            city="Udaipur",
            state="Rajasthan",
            zip_code="313001",
            country="India",
            price_per_night=Decimal(price_per_night),
            num_guests=num_guests,
            num_bedrooms=2,
            num_beds=2,
            num_bathrooms=1.5,
            property_type="house",
            amenities=["wifi"],
            images=["https://img.example/1.jpg"],
        )
        fields.update(overrides)
        prop = models.Property(**fields)
        db_session.add(prop)
        db_session.commit()
        db_session.refresh(prop)
        return prop

    return _make_property


@pytest.fixture
def make_booking(db_session):
    def _make_booking(guest: models.User, prop: models.Property, check_in: datetime.date, check_out: datetime.date,
                      status: models.BookingStatus = models.BookingStatus.CONFIRMED) -> models.Booking:
        booking = models.Booking(
            guest_id=guest.user_id,
            property_id=prop.property_id,
            check_in_date=check_in,
            check_out_date=check_out,
            total_guests=1,
            total_price=Decimal((check_out - check_in).days) * prop.price_per_night,
            status=status,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return _make_booking


@pytest.fixture
def auth_headers():
    """Builds Authorization headers carrying a valid token for the given user."""
    def _auth_headers(user: models.User) -> dict:
        return {"Authorization": f"Bearer {auth.create_access_token(user.user_id, user.role)}"}

    return _auth_headers
