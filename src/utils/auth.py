"""
Authentication and authorization utilities.

The API Gateway Cognito authorizer has already verified the bearer token;
handlers only read the verified claims, turn them into a Principal once per
request, and run ownership/membership lookups against the store.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.engine import Connection

try:  # pragma: no cover
    from utils.database import campaign_players, campaigns  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from .database import campaign_players, campaigns
    from .errors import AppError, ErrorCode

_GROUP_SEPARATORS = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as asserted by the identity provider."""

    sub: str
    email: Optional[str] = None
    username: Optional[str] = None
    roles: FrozenSet[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role in self.roles


def parse_groups(claim: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    """
    Parse the cognito:groups claim into a set of role names.

    The claim arrives as a list in some token decoders and as a string in
    API Gateway authorizer contexts, either comma separated ("admin,gm") or
    bracketed and space separated ("[admin gm]").

    Examples:
        >>> sorted(parse_groups("[admin gm]"))
        ['admin', 'gm']
        >>> parse_groups(None)
        frozenset()
    """
    if not claim:
        return frozenset()
    if isinstance(claim, str):
        parts: Iterable[str] = _GROUP_SEPARATORS.split(claim.strip().strip("[]"))
    else:
        parts = claim
    return frozenset(str(part).strip() for part in parts if str(part).strip())


def get_claims(event: Dict[str, Any]) -> Dict[str, Any]:
    """Authorizer claims from an API Gateway REST proxy event."""
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}
    return authorizer.get("claims") or {}


def get_principal(event: Dict[str, Any]) -> Principal:
    """
    Build the caller's Principal from the verified claims.

    Raises:
        AppError: UNAUTHORIZED if the event carries no subject
    """
    claims = get_claims(event)
    sub = claims.get("sub") or claims.get("cognito:username")
    if not sub:
        raise AppError(ErrorCode.UNAUTHORIZED, "Authentication required")

    return Principal(
        sub=str(sub),
        email=claims.get("email") or None,
        username=claims.get("cognito:username") or None,
        roles=parse_groups(claims.get("cognito:groups")),
    )


def require_role(principal: Principal, role: str) -> None:
    """Raise FORBIDDEN unless the caller is in the given group."""
    if not principal.has_role(role):
        raise AppError(ErrorCode.FORBIDDEN, "You do not have access to this resource")


def is_campaign_owner(conn: Connection, campaign_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """Check if user is the game master of the campaign."""
    row = conn.execute(
        select(campaigns.c.id).where(campaigns.c.id == campaign_id, campaigns.c.gm_id == user_id)
    ).first()
    return row is not None


def is_campaign_member(conn: Connection, campaign_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """Check if user owns the campaign or has a membership row in it."""
    if is_campaign_owner(conn, campaign_id, user_id):
        return True
    row = conn.execute(
        select(campaign_players.c.user_id).where(
            campaign_players.c.campaign_id == campaign_id,
            campaign_players.c.user_id == user_id,
        )
    ).first()
    return row is not None


def require_campaign_owner(conn: Connection, campaign_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """
    Require the caller to own the campaign.

    A missing campaign and a campaign owned by someone else produce the same
    FORBIDDEN error.
    """
    if not is_campaign_owner(conn, campaign_id, user_id):
        raise AppError(ErrorCode.FORBIDDEN, "You do not own this campaign")


def require_campaign_member(conn: Connection, campaign_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """Require the caller to be a member (or owner) of the campaign."""
    if not is_campaign_member(conn, campaign_id, user_id):
        raise AppError(ErrorCode.FORBIDDEN, "You are not a member of this campaign")
