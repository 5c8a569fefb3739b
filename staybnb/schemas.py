from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
import datetime

from .models import UserRole, BookingStatus
from .auth import MAX_PASSWORD_BYTES


class CamelModel(BaseModel):
    # The wire format is camelCase; attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Users ---

class UserCreate(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: UserRole = UserRole.GUEST

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return v


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class UserRead(CamelModel):
    user_id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    created_at: Optional[datetime.datetime] = None


class UserRegistered(CamelModel):
    message: str
    user: UserRead


class LoginResponse(CamelModel):
    message: str
    token: str
    user: UserRead


# --- Properties ---

class PropertyBase(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_per_night: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    num_guests: int = Field(ge=1)
    num_bedrooms: int = Field(ge=0)
    num_beds: int = Field(ge=0)
    num_bathrooms: float = Field(ge=0)
    property_type: str
    amenities: List[str] = []
    images: List[str] = []


class PropertyCreate(PropertyBase):
    pass


class PropertyUpdate(CamelModel):
    """Patch body: only the fields the client sends are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_per_night: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    num_guests: Optional[int] = Field(default=None, ge=1)
    num_bedrooms: Optional[int] = Field(default=None, ge=0)
    num_beds: Optional[int] = Field(default=None, ge=0)
    num_bathrooms: Optional[float] = Field(default=None, ge=0)
    property_type: Optional[str] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    is_available: Optional[bool] = None


class PropertyRead(PropertyBase):
    property_id: int
    host_id: int
    is_available: bool
    created_at: Optional[datetime.datetime] = None


class PropertySummary(PropertyRead):
    host_first_name: str
    host_last_name: str


class PropertyDetail(PropertySummary):
    host_bio: Optional[str] = None
    host_profile_picture_url: Optional[str] = None


# --- Bookings ---

class BookingCreate(CamelModel):
    # guest_id comes from the JWT token
    property_id: int
    check_in_date: datetime.date
    check_out_date: datetime.date
    total_guests: int = Field(gt=0)


class BookingRead(CamelModel):
    booking_id: int
    guest_id: int
    property_id: int
    check_in_date: datetime.date
    check_out_date: datetime.date
    total_guests: int
    total_price: Decimal
    status: BookingStatus


class BookingCreated(CamelModel):
    message: str
    booking: BookingRead


class GuestTrip(BookingRead):
    property_title: str
    property_city: str
    property_country: str
    property_images: List[str]


class HostBooking(BookingRead):
    property_title: str
    property_images: List[str]
    guest_first_name: str
    guest_last_name: str


class ReviewEligibility(CamelModel):
    booking_id: int


# --- Reviews ---

class ReviewCreate(CamelModel):
    booking_id: int
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1)


class ReviewRead(CamelModel):
    review_id: int
    guest_id: int
    property_id: int
    booking_id: int
    rating: int
    comment: str
    created_at: Optional[datetime.datetime] = None
