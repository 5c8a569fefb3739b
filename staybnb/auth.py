import datetime
import logging
from dataclasses import dataclass
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError

from .config import settings
from .models import UserRole

logger = logging.getLogger("staybnb")

# auto_error is off so a missing header is a 401 rather than FastAPI's default 403
api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """The verified identity carried by a token, passed explicitly into CRUD calls."""
    user_id: int
    role: UserRole


# bcrypt only looks at the first 72 bytes and refuses anything longer
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_access_token(user_id: int, role: UserRole, expires_delta: Optional[datetime.timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = datetime.timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "exp": datetime.datetime.now(datetime.timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    """
    Verifies the signature and expiry of a token and returns the identity it carries.
    Raises JWTError or ValueError when the token is unusable.
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        raise JWTError("Token is missing required claims")
    return CurrentUser(user_id=int(user_id), role=UserRole(role))


def _bearer_token(header_value: str) -> str:
    scheme, token = header_value.split()
    if scheme.lower() != "bearer":
        raise ValueError("Unsupported authorization scheme")
    return token


async def get_current_user(
        authorization: Annotated[Optional[str], Depends(api_key_header)]
) -> CurrentUser:
    """
    Decodes the JWT from the 'Authorization: Bearer ...' header.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(_bearer_token(authorization))
    except (JWTError, ValueError, AttributeError) as e:
        logger.info(f"Rejected token: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token.",
        )


def require_role(role: UserRole):
    """
    Builds a dependency that only lets through users holding the given role.
    """
    async def checker(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
        if current_user.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied: Insufficient permissions.",
            )
        return current_user

    return checker


get_current_guest = require_role(UserRole.GUEST)
get_current_host = require_role(UserRole.HOST)


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Rate limit key: the user ID from the JWT, or the client's IP when the token
    is missing or unusable.
    """
    try:
        token = _bearer_token(request.headers.get("Authorization"))
        return str(decode_access_token(token).user_id)
    except (JWTError, ValueError, AttributeError, TypeError):
        return request.client.host
