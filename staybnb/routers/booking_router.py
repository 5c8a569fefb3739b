import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, crud, auth, models
from ..database import get_db

from fastapi_limiter.depends import RateLimiter

logger = logging.getLogger("staybnb")

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# Module level so tests can override it by identity
booking_rate_limiter = RateLimiter(times=30, minutes=1, identifier=auth.get_key_by_user_id_or_ip)


def to_guest_trip(db_booking: models.Booking) -> schemas.GuestTrip:
    data = schemas.BookingRead.model_validate(db_booking).model_dump()
    return schemas.GuestTrip(
        **data,
        property_title=db_booking.property.title,
        property_city=db_booking.property.city,
        property_country=db_booking.property.country,
        property_images=db_booking.property.images,
    )


def to_host_booking(db_booking: models.Booking) -> schemas.HostBooking:
    data = schemas.BookingRead.model_validate(db_booking).model_dump()
    return schemas.HostBooking(
        **data,
        property_title=db_booking.property.title,
        property_images=db_booking.property.images,
        guest_first_name=db_booking.guest.first_name,
        guest_last_name=db_booking.guest.last_name,
    )


@router.post("", response_model=schemas.BookingCreated, status_code=status.HTTP_201_CREATED)
def create_booking(
        booking: schemas.BookingCreate,
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_guest)],
        db: Session = Depends(get_db),
        limit: None = Depends(booking_rate_limiter)
):
    """
    Create a new booking for the authenticated guest.
    """
    try:
        db_booking = crud.create_booking(db=db, booking=booking, guest=current_user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error while creating booking for property {booking.property_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the booking."
        )

    return {"message": "Booking created successfully!", "booking": schemas.BookingRead.model_validate(db_booking)}


@router.get("/guest", response_model=List[schemas.GuestTrip])
def read_guest_bookings(
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_guest)],
        db: Session = Depends(get_db)
):
    """
    Get all bookings (trips) of the authenticated guest.
    """
    return [to_guest_trip(b) for b in crud.get_bookings_by_guest(db=db, guest_id=current_user.user_id)]


@router.get("/host", response_model=List[schemas.HostBooking])
def read_host_bookings(
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_host)],
        db: Session = Depends(get_db)
):
    """
    Get incoming bookings across all properties of the authenticated host.
    """
    return [to_host_booking(b) for b in crud.get_bookings_for_host(db=db, host_id=current_user.user_id)]


@router.get("/check-review-eligibility/{property_id}", response_model=schemas.ReviewEligibility)
def check_review_eligibility(
        property_id: int,
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_guest)],
        db: Session = Depends(get_db)
):
    db_booking = crud.get_review_eligible_booking(db=db, guest_id=current_user.user_id, property_id=property_id)
    return {"booking_id": db_booking.booking_id}
