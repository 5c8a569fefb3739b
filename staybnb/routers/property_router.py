import datetime
import json
import logging
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from redis import Redis, RedisError
from typing import Annotated, List, Optional

from .. import schemas, crud, auth, models
from ..database import get_db, get_redis_client
from ..exceptions import NotFoundError

logger = logging.getLogger("staybnb")

router = APIRouter(prefix="/properties", tags=["Properties"])

ALL_PROPERTIES_KEY = "all_properties"
CACHE_TTL_SECONDS = 300


def property_cache_key(property_id: int) -> str:
    return f"property_{property_id}"


def read_cache(redis_client: Redis, key: str):
    try:
        cached = redis_client.get(key)
    except RedisError as e:
        logger.error(f"Failed to read Redis cache key {key}: {e}")
        return None
    return json.loads(cached) if cached else None


def write_cache(redis_client: Redis, key: str, value) -> None:
    try:
        redis_client.set(key, json.dumps(value, default=str), ex=CACHE_TTL_SECONDS)
    except RedisError as e:
        logger.error(f"Failed to write Redis cache key {key}: {e}")


def invalidate_cache(redis_client: Redis, property_id: Optional[int] = None) -> None:
    keys = [ALL_PROPERTIES_KEY]
    if property_id is not None:
        keys.append(property_cache_key(property_id))
    try:
        redis_client.delete(*keys)
    except RedisError as e:
        logger.error(f"Failed to invalidate Redis cache: {e}")


def to_summary(db_property: models.Property) -> dict:
    data = schemas.PropertyRead.model_validate(db_property).model_dump()
    data.update(
        host_first_name=db_property.host.first_name,
        host_last_name=db_property.host.last_name,
    )
    return schemas.PropertySummary.model_validate(data).model_dump(mode="json", by_alias=True)


def to_detail(db_property: models.Property) -> dict:
    data = schemas.PropertyRead.model_validate(db_property).model_dump()
    data.update(
        host_first_name=db_property.host.first_name,
        host_last_name=db_property.host.last_name,
        host_bio=db_property.host.bio,
        host_profile_picture_url=db_property.host.profile_picture_url,
    )
    return schemas.PropertyDetail.model_validate(data).model_dump(mode="json", by_alias=True)


@router.post("", response_model=schemas.PropertyRead, status_code=status.HTTP_201_CREATED)
def create_property(
        property: schemas.PropertyCreate,
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_host)],
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    db_property = crud.create_property(db=db, property=property, host_id=current_user.user_id)
    # When a new property is added, invalidate the list cache.
    invalidate_cache(redis_client)
    logger.info(f"Host {current_user.user_id} created property {db_property.property_id}")
    return db_property


@router.get("", response_model=List[schemas.PropertySummary])
def read_properties(
        location: Optional[str] = None,
        guests: Annotated[Optional[int], Query(ge=1)] = None,
        check_in: Annotated[Optional[datetime.date], Query(alias="checkIn")] = None,
        check_out: Annotated[Optional[datetime.date], Query(alias="checkOut")] = None,
        skip: int = 0,
        limit: int = 100,
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    # Only the plain first page is cached; searches always hit the database.
    cacheable = not any([location, guests, check_in, check_out, skip]) and limit == 100
    if cacheable:
        cached_properties = read_cache(redis_client, ALL_PROPERTIES_KEY)
        if cached_properties is not None:
            return cached_properties

    properties = crud.get_properties(
        db, location=location, guests=guests, check_in=check_in, check_out=check_out, skip=skip, limit=limit
    )
    properties_list = [to_summary(p) for p in properties]

    if cacheable:
        write_cache(redis_client, ALL_PROPERTIES_KEY, properties_list)
    return properties_list


@router.get("/host", response_model=List[schemas.PropertyRead])
def read_host_properties(
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_host)],
        db: Session = Depends(get_db)
):
    return crud.get_properties_by_host(db, host_id=current_user.user_id)


@router.get("/{property_id}", response_model=schemas.PropertyDetail)
def read_property(
        property_id: int,
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    cache_key = property_cache_key(property_id)
    cached_property = read_cache(redis_client, cache_key)
    if cached_property is not None:
        return cached_property

    db_property = crud.get_property(db, property_id=property_id)
    if db_property is None:
        raise NotFoundError("Property not found.")

    property_data = to_detail(db_property)
    write_cache(redis_client, cache_key, property_data)
    return property_data


@router.put("/{property_id}", response_model=schemas.PropertyRead)
def update_property(
        property_id: int,
        changes: schemas.PropertyUpdate,
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_host)],
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    db_property = crud.update_property(db=db, property_id=property_id, changes=changes, host=current_user)
    invalidate_cache(redis_client, property_id)
    return db_property


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_property(
        property_id: int,
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_host)],
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    crud.delete_property(db=db, property_id=property_id, host=current_user)

    # Invalidate caches
    invalidate_cache(redis_client, property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{property_id}/reviews", response_model=List[schemas.ReviewRead])
def read_property_reviews(property_id: int, db: Session = Depends(get_db)):
    return crud.get_reviews_for_property(db, property_id=property_id)
