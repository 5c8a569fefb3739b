import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from staybnb import auth, crud, models, schemas
from staybnb.database import Base
from staybnb.exceptions import ConflictError

POSTGRES_URL = os.environ.get("STAYBNB_TEST_POSTGRES_URL")

# SQLite has no row locks, so only a real PostgreSQL server shows whether
# the property lock serializes competing admissions.
pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(not POSTGRES_URL, reason="STAYBNB_TEST_POSTGRES_URL is not set"),
]


@pytest.fixture
def pg_sessions():
    pg_engine = create_engine(POSTGRES_URL)
    Base.metadata.create_all(bind=pg_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=pg_engine)
    Base.metadata.drop_all(bind=pg_engine)
    pg_engine.dispose()


@pytest.fixture
def listing(pg_sessions):
    with pg_sessions() as db:
        host = models.User(username="host1", email="host1@staybnb.io", password_hash=auth.hash_password("secret123"),
                           first_name="Hosta", last_name="User", role=models.UserRole.HOST)
        guests = [
            models.User(username=f"guest{n}", email=f"guest{n}@staybnb.io",
                        password_hash=auth.hash_password("secret123"),
                        first_name="Guest", last_name=str(n), role=models.UserRole.GUEST)
            for n in (1, 2)
        ]
        db.add_all([host, *guests])
        db.flush()
        prop = models.Property(
            host_id=host.user_id, title="Lake House", description="Quiet place by the lake.",
            address="1 Shore Road", city="Udaipur", state="Rajasthan", zip_code="313001", country="India",
            price_per_night=Decimal("1000"), num_guests=4, num_bedrooms=2, num_beds=2, num_bathrooms=1.5,
            property_type="house", amenities=["wifi"], images=[],
        )
        db.add(prop)
        db.commit()
        return prop.property_id, [auth.CurrentUser(user_id=g.user_id, role=g.role) for g in guests]


def test_overlapping_admissions_from_two_connections(pg_sessions, listing):
    property_id, guests = listing
    requests = [
        schemas.BookingCreate(property_id=property_id, check_in_date=date(2024, 6, 1),
                              check_out_date=date(2024, 6, 5), total_guests=2),
        schemas.BookingCreate(property_id=property_id, check_in_date=date(2024, 6, 3),
                              check_out_date=date(2024, 6, 8), total_guests=2),
    ]
    start = threading.Barrier(2)

    def admit(request, guest):
        with pg_sessions() as db:
            start.wait(timeout=10)
            try:
                return crud.create_booking(db, request, guest).booking_id
            except ConflictError as e:
                return e

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(admit, requests, guests))

    admitted = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, ConflictError)]
    assert len(admitted) == 1
    assert len(rejected) == 1

    with pg_sessions() as db:
        stored = db.query(models.Booking).filter(models.Booking.property_id == property_id).all()
    assert [b.booking_id for b in stored] == admitted
