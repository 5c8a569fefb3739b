import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Annotated

from .. import schemas, crud, auth
from ..database import get_db

logger = logging.getLogger("staybnb")

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", response_model=schemas.ReviewRead, status_code=status.HTTP_201_CREATED)
def create_review(
        review: schemas.ReviewCreate,
        current_user: Annotated[auth.CurrentUser, Depends(auth.get_current_guest)],
        db: Session = Depends(get_db)
):
    db_review = crud.create_review(db=db, review=review, guest=current_user)
    logger.info(f"Guest {current_user.user_id} reviewed booking {db_review.booking_id}")
    return db_review
