import datetime
import logging
from typing import List, Optional

from sqlalchemy import exists, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas, auth
from .exceptions import ValidationError, NotFoundError, ConflictError, AuthenticationError, AuthorizationError

logger = logging.getLogger("staybnb")


# --- Users ---

def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    existing = db.query(models.User).filter(
        or_(models.User.username == user.username, models.User.email == user.email)
    ).first()
    if existing is not None:
        raise ConflictError("Username or email already exists.")

    db_user = models.User(
        username=user.username,
        email=user.email,
        password_hash=auth.hash_password(user.password),
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same name
        db.rollback()
        raise ConflictError("Username or email already exists.")
    db.refresh(db_user)
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> models.User:
    db_user = get_user_by_email(db, email)
    if db_user is None or not auth.verify_password(password, db_user.password_hash):
        raise AuthenticationError("Invalid credentials.")
    return db_user


# --- Properties ---

def get_property(db: Session, property_id: int):
    return db.query(models.Property).filter(models.Property.property_id == property_id).first()


def get_property_price(db: Session, property_id: int):
    db_property = get_property(db, property_id)
    if db_property is None:
        raise NotFoundError("Property not found.")
    return db_property.price_per_night


def get_properties(
        db: Session,
        location: Optional[str] = None,
        guests: Optional[int] = None,
        check_in: Optional[datetime.date] = None,
        check_out: Optional[datetime.date] = None,
        skip: int = 0,
        limit: int = 100,
) -> List[models.Property]:
    """
    Lists available properties, newest first, optionally narrowed to a location,
    a party size and a free date range.
    """
    query = db.query(models.Property).filter(models.Property.is_available.is_(True))

    if location:
        pattern = f"%{location}%"
        query = query.filter(or_(
            models.Property.city.ilike(pattern),
            models.Property.state.ilike(pattern),
            models.Property.country.ilike(pattern),
        ))
    if guests:
        query = query.filter(models.Property.num_guests >= guests)
    if bool(check_in) != bool(check_out):
        raise ValidationError("Check-in and check-out dates must be given together.")
    if check_in and check_out:
        if check_out <= check_in:
            raise ValidationError("Check-out date must be after check-in date.")
        overlapping = exists().where(
            models.Booking.property_id == models.Property.property_id,
            models.Booking.check_in_date < check_out,
            models.Booking.check_out_date > check_in,
        )
        query = query.filter(~overlapping)

    return query.order_by(
        models.Property.created_at.desc(), models.Property.property_id.desc()
    ).offset(skip).limit(limit).all()


def get_properties_by_host(db: Session, host_id: int) -> List[models.Property]:
    return db.query(models.Property).filter(
        models.Property.host_id == host_id
    ).order_by(models.Property.property_id).all()


def create_property(db: Session, property: schemas.PropertyCreate, host_id: int) -> models.Property:
    db_property = models.Property(**property.model_dump(), host_id=host_id)
    db.add(db_property)
    db.commit()
    db.refresh(db_property)
    return db_property


def _get_owned_property(db: Session, property_id: int, host: auth.CurrentUser) -> models.Property:
    db_property = get_property(db, property_id)
    if db_property is None:
        raise NotFoundError("Property not found.")
    if db_property.host_id != host.user_id:
        raise AuthorizationError("You do not own this property.")
    return db_property


NULLABLE_PROPERTY_FIELDS = ("latitude", "longitude")


def update_property(
        db: Session, property_id: int, changes: schemas.PropertyUpdate, host: auth.CurrentUser
) -> models.Property:
    """
    Applies only the fields present in the request body.
    """
    db_property = _get_owned_property(db, property_id, host)
    patch = changes.model_dump(exclude_unset=True)
    for field, value in patch.items():
        if value is None and field not in NULLABLE_PROPERTY_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be null.")

    for field, value in patch.items():
        setattr(db_property, field, value)
    db.commit()
    db.refresh(db_property)
    return db_property


def delete_property(db: Session, property_id: int, host: auth.CurrentUser) -> None:
    db_property = _get_owned_property(db, property_id, host)
    has_bookings = db.query(models.Booking.booking_id).filter(
        models.Booking.property_id == property_id
    ).first() is not None
    if has_bookings:
        raise ConflictError("Property has bookings and cannot be deleted.")
    db.delete(db_property)
    db.commit()


# --- Bookings ---

def check_booking_conflict(
        db: Session, property_id: int, start_date: datetime.date, end_date: datetime.date
) -> bool:
    """
    Checks if a new booking for a given property and date range conflicts
    with any existing bookings.

    Returns True if a conflict exists, False otherwise.
    """
    # Half-open ranges overlap when:
    # (Existing check-in < New check-out) AND (Existing check-out > New check-in)
    # so a stay starting on another's check-out day is fine.
    existing_booking = db.query(models.Booking).filter(
        models.Booking.property_id == property_id,
        models.Booking.check_in_date < end_date,
        models.Booking.check_out_date > start_date
    ).first()

    return existing_booking is not None


def calculate_nights(check_in: datetime.date, check_out: datetime.date) -> int:
    return abs((check_out - check_in).days)


def create_booking(db: Session, booking: schemas.BookingCreate, guest: auth.CurrentUser) -> models.Booking:
    """
    Admits a booking request: validates it, checks for overlapping stays,
    prices it and persists it in a single transaction.

    The property row is locked for the duration of the transaction so that
    concurrent requests for the same property run the conflict check one at a time.
    """
    if booking.check_out_date <= booking.check_in_date:
        raise ValidationError("Check-out date must be after check-in date.")

    # 1. Lock the property (also the existence check)
    db_property = db.query(models.Property).filter(
        models.Property.property_id == booking.property_id
    ).with_for_update().first()
    if db_property is None:
        db.rollback()
        raise NotFoundError("Property not found.")

    if booking.total_guests > db_property.num_guests:
        db.rollback()
        raise ValidationError(
            f"This property allows at most {db_property.num_guests} guests."
        )

    # 2. Conflict check inside the same transaction
    if check_booking_conflict(db, booking.property_id, booking.check_in_date, booking.check_out_date):
        db.rollback()
        raise ConflictError("The property is already booked for these dates.")

    # 3. Price
    nights = calculate_nights(booking.check_in_date, booking.check_out_date)
    total_price = nights * db_property.price_per_night

    # 4. Persist
    db_booking = models.Booking(
        guest_id=guest.user_id,
        property_id=booking.property_id,
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        total_guests=booking.total_guests,
        total_price=total_price,
        status=models.BookingStatus.CONFIRMED,
    )
    db.add(db_booking)
    try:
        db.commit()
    except IntegrityError as e:
        # The exclusion constraint caught an overlap the lock did not
        db.rollback()
        logger.warning(f"Booking insert for property {booking.property_id} rejected by the database: {e}")
        raise ConflictError("The property is already booked for these dates.")

    db.refresh(db_booking)
    logger.info(
        f"Booking {db_booking.booking_id} created for property {db_booking.property_id} "
        f"({booking.check_in_date} -> {booking.check_out_date}, {nights} nights, total {total_price})"
    )
    return db_booking


def get_bookings_by_guest(db: Session, guest_id: int) -> List[models.Booking]:
    return db.query(models.Booking).filter(
        models.Booking.guest_id == guest_id
    ).order_by(models.Booking.check_in_date.desc()).all()


def get_bookings_for_host(db: Session, host_id: int) -> List[models.Booking]:
    return db.query(models.Booking).join(models.Property).filter(
        models.Property.host_id == host_id
    ).order_by(models.Booking.check_in_date.desc()).all()


def complete_finished_bookings(db: Session, today: datetime.date) -> int:
    """
    Marks every confirmed booking whose check-out date has been reached as completed.
    Returns the number of bookings updated.
    """
    finished = db.query(models.Booking).filter(
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.check_out_date <= today
    ).all()

    for db_booking in finished:
        db_booking.status = models.BookingStatus.COMPLETED

    db.commit()
    return len(finished)


# --- Reviews ---

def get_review_eligible_booking(db: Session, guest_id: int, property_id: int) -> models.Booking:
    """
    Finds a completed stay of this guest at this property that has not been reviewed yet.
    """
    reviewed = exists().where(models.Review.booking_id == models.Booking.booking_id)
    db_booking = db.query(models.Booking).filter(
        models.Booking.guest_id == guest_id,
        models.Booking.property_id == property_id,
        models.Booking.status == models.BookingStatus.COMPLETED,
        ~reviewed
    ).order_by(models.Booking.check_out_date.desc()).first()

    if db_booking is None:
        raise NotFoundError("No completed booking eligible for review was found.")
    return db_booking


def create_review(db: Session, review: schemas.ReviewCreate, guest: auth.CurrentUser) -> models.Review:
    db_booking = db.query(models.Booking).filter(
        models.Booking.booking_id == review.booking_id,
        models.Booking.guest_id == guest.user_id
    ).first()
    if db_booking is None:
        raise NotFoundError("Booking not found.")
    if db_booking.status != models.BookingStatus.COMPLETED:
        raise AuthorizationError("Only completed stays can be reviewed.")

    already_reviewed = db.query(models.Review.review_id).filter(
        models.Review.guest_id == guest.user_id,
        models.Review.booking_id == review.booking_id
    ).first() is not None
    if already_reviewed:
        raise ConflictError("You have already reviewed this stay.")

    db_review = models.Review(
        guest_id=guest.user_id,
        property_id=db_booking.property_id,
        booking_id=db_booking.booking_id,
        rating=review.rating,
        comment=review.comment,
    )
    db.add(db_review)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You have already reviewed this stay.")
    db.refresh(db_review)
    return db_review


def get_reviews_for_property(db: Session, property_id: int) -> List[models.Review]:
    if get_property(db, property_id) is None:
        raise NotFoundError("Property not found.")
    return db.query(models.Review).filter(
        models.Review.property_id == property_id
    ).order_by(models.Review.created_at.desc(), models.Review.review_id.desc()).all()
