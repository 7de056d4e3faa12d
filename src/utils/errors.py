"""
Error handling utilities for Lambda functions.

Provides standardized error responses with error codes and the mapping from
database failures onto those codes.
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError


class AppError(Exception):
    """
    Application error with error code and message.

    Raised by handlers and translated to an HTTP error response at the
    handler boundary.
    """

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return status_for(self.error_code)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the JSON error body."""
        return {
            "error": self.error_code,
            "message": self.message,
            **self.details,
        }


# Common error codes
class ErrorCode:
    """Standard error codes for the application."""

    # Request errors
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"

    # Invitation lifecycle
    DUPLICATE_INVITE = "duplicate_invite"
    INVALID_TOKEN = "invalid_token"
    ALREADY_ACCEPTED = "already_accepted"
    EXPIRED = "expired"

    # Store constraint errors
    UNIQUE_VIOLATION = "unique_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    INVALID_IDENTIFIER = "invalid_identifier"

    # System errors
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"


_STATUS_BY_CODE = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DUPLICATE_INVITE: 403,
    ErrorCode.INVALID_TOKEN: 400,
    ErrorCode.ALREADY_ACCEPTED: 409,
    ErrorCode.EXPIRED: 410,
    ErrorCode.UNIQUE_VIOLATION: 409,
    ErrorCode.FOREIGN_KEY_VIOLATION: 409,
    ErrorCode.INVALID_IDENTIFIER: 400,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Postgres SQLSTATE codes we translate
PG_UNIQUE_VIOLATION = "23505"
PG_FOREIGN_KEY_VIOLATION = "23503"
PG_INVALID_TEXT_REPRESENTATION = "22P02"

_GENERIC_MESSAGES = {
    ErrorCode.UNIQUE_VIOLATION: "The record already exists.",
    ErrorCode.FOREIGN_KEY_VIOLATION: "A referenced record does not exist.",
    ErrorCode.INVALID_IDENTIFIER: "Invalid identifier.",
    ErrorCode.DATABASE_ERROR: "A database error occurred.",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again.",
}


def status_for(error_code: str) -> int:
    """HTTP status for an error code; unknown codes are server errors."""
    return _STATUS_BY_CODE.get(error_code, 500)


def _sqlstate(error: SQLAlchemyError) -> Optional[str]:
    orig = getattr(error, "orig", None)
    return getattr(orig, "pgcode", None)


def classify_database_error(error: SQLAlchemyError) -> str:
    """
    Map a store exception to an error code.

    Postgres errors carry a SQLSTATE on the driver exception; any SQLSTATE
    other than the three translated ones is a generic database error. Other
    drivers (SQLite in local runs) only expose a message, so the constraint
    kind is inferred from the exception type and text.

    Args:
        error: SQLAlchemy exception raised by a store call

    Returns:
        One of the store error codes in ErrorCode
    """
    pgcode = _sqlstate(error)
    if pgcode == PG_UNIQUE_VIOLATION:
        return ErrorCode.UNIQUE_VIOLATION
    if pgcode == PG_FOREIGN_KEY_VIOLATION:
        return ErrorCode.FOREIGN_KEY_VIOLATION
    if pgcode == PG_INVALID_TEXT_REPRESENTATION:
        return ErrorCode.INVALID_IDENTIFIER
    if pgcode:
        return ErrorCode.DATABASE_ERROR

    if isinstance(error, IntegrityError):
        text = str(getattr(error, "orig", error)).lower()
        if "foreign key" in text:
            return ErrorCode.FOREIGN_KEY_VIOLATION
        if "unique" in text or "duplicate" in text:
            return ErrorCode.UNIQUE_VIOLATION
    if isinstance(error, DataError):
        return ErrorCode.INVALID_IDENTIFIER
    return ErrorCode.DATABASE_ERROR


def is_unique_violation(error: SQLAlchemyError) -> bool:
    return classify_database_error(error) == ErrorCode.UNIQUE_VIOLATION


def handle_error(error: Exception, debug: bool = False) -> AppError:
    """
    Convert exception to a standardized AppError.

    Args:
        error: Exception to handle
        debug: Include the underlying exception text in the message

    Returns:
        AppError carrying the code and client-facing message
    """
    if isinstance(error, AppError):
        return error

    if isinstance(error, SQLAlchemyError):
        code = classify_database_error(error)
    else:
        code = ErrorCode.INTERNAL_ERROR

    message = str(error) if debug else _GENERIC_MESSAGES[code]
    return AppError(code, message)
