"""
Domain errors raised by the CRUD layer.

Each error carries the HTTP status it maps to; the handler registered in
``main`` turns them into ``{"detail": ...}`` responses.
"""
from fastapi import status


class StayBnBError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StayBnBError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(StayBnBError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(StayBnBError):
    status_code = status.HTTP_409_CONFLICT


class AuthenticationError(StayBnBError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(StayBnBError):
    status_code = status.HTTP_403_FORBIDDEN
