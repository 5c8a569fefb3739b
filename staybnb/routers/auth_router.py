import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas, crud, auth
from ..database import get_db

logger = logging.getLogger("staybnb")

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=schemas.UserRegistered, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    db_user = crud.create_user(db=db, user=user)
    logger.info(f"Registered user {db_user.user_id} ({db_user.role.value})")
    return {"message": "User registered successfully!", "user": schemas.UserRead.model_validate(db_user)}


@router.post("/login", response_model=schemas.LoginResponse)
def login(credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    db_user = crud.authenticate_user(db=db, email=credentials.email, password=credentials.password)
    token = auth.create_access_token(db_user.user_id, db_user.role)
    return {"message": "Logged in successfully!", "token": token, "user": schemas.UserRead.model_validate(db_user)}
