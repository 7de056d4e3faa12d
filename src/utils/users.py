"""
Internal user records for authenticated principals.

Users are provisioned lazily: the first authenticated request from a new
Cognito subject inserts its row.
"""

import uuid
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

try:  # pragma: no cover
    from utils.auth import Principal  # type: ignore[import-not-found]
    from utils.database import users  # type: ignore[import-not-found]
    from utils.errors import is_unique_violation  # type: ignore[import-not-found]
    from utils.logging import get_logger  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from .auth import Principal
    from .database import users
    from .errors import is_unique_violation
    from .logging import get_logger

logger = get_logger(__name__)


def placeholder_identity(principal: Principal) -> Tuple[str, str]:
    """
    Email and username to store for a principal.

    Falls back to ``<sub>@example.com`` when the token carries no email, and
    derives the username from the email local part.
    """
    email = principal.email or f"{principal.sub}@example.com"
    username = (principal.email or "user").split("@")[0] or "user"
    return email, username


def find_user_id(conn: Connection, sub: str) -> Optional[uuid.UUID]:
    """Look up the internal user id for a Cognito subject."""
    row = conn.execute(select(users.c.id).where(users.c.cognito_user_id == sub)).first()
    return row.id if row else None


def resolve_user_id(engine: Engine, principal: Principal) -> uuid.UUID:
    """
    Return the caller's internal user id, creating the user on first sight.

    Two first requests from the same subject can race; the unique constraint
    on cognito_user_id rejects the second insert and the loser re-reads the
    winner's row.

    Args:
        engine: Store engine
        principal: Verified caller

    Returns:
        Internal user UUID
    """
    with engine.begin() as conn:
        user_id = find_user_id(conn, principal.sub)
    if user_id is not None:
        return user_id

    email, username = placeholder_identity(principal)
    new_id = uuid.uuid4()
    try:
        with engine.begin() as conn:
            conn.execute(
                users.insert().values(
                    id=new_id, cognito_user_id=principal.sub, email=email, username=username
                )
            )
        logger.info("Provisioned user", user_id=str(new_id), sub=principal.sub)
        return new_id
    except IntegrityError as e:
        if not is_unique_violation(e):
            raise
        logger.info("User provisioned concurrently, re-reading", sub=principal.sub)

    with engine.begin() as conn:
        user_id = find_user_id(conn, principal.sub)
    if user_id is None:
        raise RuntimeError(f"User for subject {principal.sub} vanished after unique violation")
    return user_id


def lookup_user_id(engine: Engine, principal: Principal) -> Optional[uuid.UUID]:
    """Read-only variant for handlers that should not provision users."""
    with engine.begin() as conn:
        return find_user_id(conn, principal.sub)
