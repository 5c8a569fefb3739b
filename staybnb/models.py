from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Float, Boolean, Date, TIMESTAMP, JSON,
    ForeignKey, Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy import Enum as SQLEnum
from enum import Enum as PyEnum
import datetime

from .database import Base


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


# --- ENUM for User Roles ---
class UserRole(str, PyEnum):
    GUEST = "guest"
    HOST = "host"


# --- ENUM for Booking Status ---
class BookingStatus(str, PyEnum):
    CONFIRMED = "confirmed"
    # Set by the booking scheduler once the check-out date has been reached
    COMPLETED = "completed"


# --- User Model ---
class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.GUEST, nullable=False)
    bio = Column(Text, nullable=True)
    profile_picture_url = Column(String(500), nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow)

    properties = relationship("Property", back_populates="host")
    bookings = relationship("Booking", back_populates="guest")


# --- Property Model (the listing) ---
class Property(Base):
    __tablename__ = "properties"

    property_id = Column(Integer, primary_key=True, index=True)
    host_id = Column(Integer, ForeignKey("users.user_id"), index=True, nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(100), index=True, nullable=False)
    state = Column(String(100), nullable=False)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    price_per_night = Column(Numeric(10, 2), nullable=False)
    num_guests = Column(Integer, nullable=False)
    num_bedrooms = Column(Integer, nullable=False)
    num_beds = Column(Integer, nullable=False)
    num_bathrooms = Column(Float, nullable=False)
    property_type = Column(String(50), nullable=False)
    amenities = Column(JSON, default=list, nullable=False)
    images = Column(JSON, default=list, nullable=False)

    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow)

    host = relationship("User", back_populates="properties")
    bookings = relationship("Booking", back_populates="property")

    __table_args__ = (
        CheckConstraint("price_per_night > 0", name="ck_properties_price_positive"),
        CheckConstraint("num_guests >= 1", name="ck_properties_num_guests_min"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    booking_id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("users.user_id"), index=True, nullable=False)
    property_id = Column(Integer, ForeignKey("properties.property_id"), index=True, nullable=False)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    total_guests = Column(Integer, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow)

    guest = relationship("User", back_populates="bookings")
    property = relationship("Property", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_bookings_dates_ordered"),
        CheckConstraint("total_guests > 0", name="ck_bookings_total_guests_positive"),
        # The conflict query filters on the property and both ends of the range
        Index("ix_bookings_property_dates", "property_id", "check_in_date", "check_out_date"),
        # The scheduler looks up confirmed stays by check-out date
        Index("ix_bookings_status_check_out", "status", "check_out_date"),
    )


class Review(Base):
    __tablename__ = "reviews"

    review_id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("users.user_id"), index=True, nullable=False)
    property_id = Column(Integer, ForeignKey("properties.property_id"), index=True, nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.booking_id"), nullable=False)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow)

    guest = relationship("User")

    __table_args__ = (
        UniqueConstraint("guest_id", "booking_id", name="uq_reviews_guest_booking"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )
