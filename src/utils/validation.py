"""
Input validation utilities.

Validates identifiers, JSON bodies, email addresses and the typed fields of
campaign, session and character requests.
"""

import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

try:  # pragma: no cover
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from .errors import AppError, ErrorCode

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_EMAIL_LENGTH = 255
# Postgres INTEGER
MAX_INTEGER = 2**31 - 1


def parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the JSON request body of an API Gateway event.

    Missing bodies parse as an empty object.

    Raises:
        AppError: If the body is not a JSON object
    """
    raw = event.get("body")
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except (TypeError, ValueError):
        raise AppError(ErrorCode.BAD_REQUEST, "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise AppError(ErrorCode.BAD_REQUEST, "Request body must be a JSON object")
    return body


def parse_identifier(value: Optional[str], field: str = "id") -> uuid.UUID:
    """
    Parse a resource identifier.

    Identifiers are UUIDs; anything else is rejected before the store is
    queried.

    Raises:
        AppError: If the value is missing or not a UUID
    """
    if not value:
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} is required")
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError):
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} must be a valid identifier", {"field": field})


def normalize_email(email: Any) -> str:
    """
    Normalize an email address for storage and comparison.

    Raises:
        AppError: If the email is empty or malformed
    """
    if not isinstance(email, str) or not email.strip():
        raise AppError(ErrorCode.BAD_REQUEST, "email is required")
    normalized = email.strip().lower()
    if len(normalized) > MAX_EMAIL_LENGTH:
        raise AppError(
            ErrorCode.BAD_REQUEST, f"email must be at most {MAX_EMAIL_LENGTH} characters"
        )
    if not EMAIL_PATTERN.match(normalized):
        raise AppError(ErrorCode.BAD_REQUEST, "email must be a valid address")
    return normalized


def require_text(body: Dict[str, Any], field: str, max_length: int = 255) -> str:
    """Require a non-empty string field and return it stripped."""
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} must be at most {max_length} characters")
    return value


def optional_text(body: Dict[str, Any], field: str) -> Optional[str]:
    value = body.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} must be a string")
    return value


def parse_positive_int(value: Any, field: str, default: int, max_value: int = MAX_INTEGER) -> int:
    """
    Parse an optional positive integer field no larger than ``max_value``.

    Booleans are rejected even though they are ints in Python, and floats
    only pass when they are whole numbers.
    """
    if value is None or value == "":
        return default
    invalid = AppError(
        ErrorCode.BAD_REQUEST, f"{field} must be an integer between 1 and {max_value}"
    )
    if isinstance(value, bool):
        raise invalid
    if isinstance(value, float) and not value.is_integer():
        raise invalid
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise invalid
    if number < 1 or number > max_value:
        raise invalid
    return number


def parse_timestamp(value: Any, field: str) -> datetime:
    """
    Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Raises:
        AppError: If missing or not ISO-8601
    """
    if not isinstance(value, str) or not value.strip():
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} is required")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise AppError(ErrorCode.BAD_REQUEST, f"{field} must be an ISO-8601 timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
