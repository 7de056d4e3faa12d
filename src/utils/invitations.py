"""
Campaign invitation lifecycle.

An invitation is issued by a campaign owner for an email address, delivered
asynchronously through the invite queue, and redeemed at most once by
whoever presents its secret before it expires:

    issued -> accepted | expired | invalid

Only the SHA-256 hash of the secret is stored.
"""

import hashlib
import json
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional
from urllib.parse import quote

from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

if TYPE_CHECKING:
    from mypy_boto3_sqs import SQSClient

try:  # pragma: no cover
    from utils.auth import Principal, require_campaign_owner  # type: ignore[import-not-found]
    from utils.config import AppConfig  # type: ignore[import-not-found]
    from utils.database import campaign_players, insert_for, invitations  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode, is_unique_violation  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_logger  # type: ignore[import-not-found]
    from utils.users import resolve_user_id  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from .auth import Principal, require_campaign_owner
    from .config import AppConfig
    from .database import campaign_players, insert_for, invitations
    from .errors import AppError, ErrorCode, is_unique_violation
    from .logging import StructuredLogger, get_logger
    from .users import resolve_user_id

INVITE_TTL = timedelta(days=7)
TOKEN_BYTES = 32  # 256 bits
INVITE_SUBJECT = "Campaign Invite"
INVITE_MESSAGE = "You are invited. Use the acceptance link."


def generate_invite_token() -> str:
    """Generate a 64-character hex invitation secret."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of an invitation secret."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def build_accept_url(base_url: str, token: str) -> str:
    """
    Link the invitee follows to redeem the invitation.

    With a web app base URL configured the link opens its accept page;
    otherwise it is the API path of the accept operation.
    """
    if base_url:
        return f"{base_url}/accept?token={quote(token)}"
    return f"/v1/invites/{quote(token)}/accept"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class IssuedInvitation:
    invitation_id: uuid.UUID
    campaign_id: uuid.UUID
    email: str
    token: str
    expires_at: datetime
    queued: bool


class InvitationIssuer:
    """Creates invitations and queues their delivery."""

    def __init__(
        self,
        config: AppConfig,
        engine: Engine,
        sqs_client: "SQSClient",
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.engine = engine
        self.sqs = sqs_client
        self.logger = logger or get_logger(__name__)
        self.clock = clock

    def issue(self, principal: Principal, campaign_id: uuid.UUID, email: str) -> IssuedInvitation:
        """
        Issue an invitation to ``email`` for ``campaign_id``.

        Args:
            principal: Caller; must own the campaign
            campaign_id: Target campaign
            email: Normalized invitee address

        Returns:
            The issued invitation, including the plaintext token

        Raises:
            AppError: FORBIDDEN if the caller does not own the campaign,
                DUPLICATE_INVITE if a pending invitation already exists
        """
        user_id = resolve_user_id(self.engine, principal)

        with self.engine.begin() as conn:
            require_campaign_owner(conn, campaign_id, user_id)
            pending = conn.execute(
                select(invitations.c.id).where(
                    invitations.c.campaign_id == campaign_id,
                    invitations.c.email == email,
                    invitations.c.accepted_at.is_(None),
                )
            ).first()
        if pending is not None:
            raise AppError(
                ErrorCode.DUPLICATE_INVITE, "An invitation for this email is already pending"
            )

        token = generate_invite_token()
        expires_at = self.clock() + INVITE_TTL
        invitation_id = uuid.uuid4()

        # The partial unique index is what actually prevents duplicates
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    invitations.insert().values(
                        id=invitation_id,
                        campaign_id=campaign_id,
                        email=email,
                        token_hash=hash_token(token),
                        expires_at=expires_at,
                        created_by=user_id,
                    )
                )
        except IntegrityError as e:
            if is_unique_violation(e):
                raise AppError(
                    ErrorCode.DUPLICATE_INVITE, "An invitation for this email is already pending"
                )
            raise

        self.logger.info(
            "Invitation created",
            invitation_id=str(invitation_id),
            campaign_id=str(campaign_id),
            email=email,
        )

        queued = self._enqueue(campaign_id, email, token)
        return IssuedInvitation(
            invitation_id=invitation_id,
            campaign_id=campaign_id,
            email=email,
            token=token,
            expires_at=expires_at,
            queued=queued,
        )

    def build_message(self, campaign_id: uuid.UUID, email: str, token: str) -> Dict[str, Any]:
        """Queue message consumed by the invite email dispatcher."""
        return {
            "email": email,
            "campaignId": str(campaign_id),
            "token": token,
            "accept": build_accept_url(self.config.app_base_url, token),
            "subject": INVITE_SUBJECT,
            "message": INVITE_MESSAGE,
        }

    def _enqueue(self, campaign_id: uuid.UUID, email: str, token: str) -> bool:
        # The invitation stands even if delivery cannot be queued
        if not self.config.invite_queue_url:
            self.logger.warning("INVITE_QUEUE_URL not configured, invite email not queued")
            return False
        try:
            self.sqs.send_message(
                QueueUrl=self.config.invite_queue_url,
                MessageBody=json.dumps(self.build_message(campaign_id, email, token)),
            )
        except Exception as e:
            self.logger.error(
                "Failed to queue invite email",
                campaign_id=str(campaign_id),
                email=email,
                error=str(e),
            )
            return False
        self.logger.info("Invite email queued", campaign_id=str(campaign_id), email=email)
        return True


class InvitationRedeemer:
    """Validates invitation secrets and grants membership."""

    def __init__(
        self,
        engine: Engine,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = engine
        self.logger = logger or get_logger(__name__)
        self.clock = clock

    def redeem(self, principal: Principal, token: Optional[str]) -> uuid.UUID:
        """
        Redeem an invitation secret for the caller.

        Args:
            principal: Caller joining the campaign
            token: Plaintext secret from the acceptance link

        Returns:
            The joined campaign id

        Raises:
            AppError: INVALID_TOKEN, ALREADY_ACCEPTED or EXPIRED
        """
        if not token or not token.strip():
            raise AppError(ErrorCode.INVALID_TOKEN, "Invalid invitation token")
        token_hash = hash_token(token.strip())

        with self.engine.begin() as conn:
            invitation = conn.execute(
                select(
                    invitations.c.id,
                    invitations.c.campaign_id,
                    invitations.c.expires_at,
                    invitations.c.accepted_at,
                ).where(invitations.c.token_hash == token_hash)
            ).first()

        if invitation is None:
            raise AppError(ErrorCode.INVALID_TOKEN, "Invalid invitation token")
        if invitation.accepted_at is not None:
            raise AppError(ErrorCode.ALREADY_ACCEPTED, "Invitation has already been accepted")
        now = self.clock()
        if _as_utc(invitation.expires_at) < now:
            raise AppError(ErrorCode.EXPIRED, "Invitation has expired")

        user_id = resolve_user_id(self.engine, principal)

        with self.engine.begin() as conn:
            # Claim the row first; a concurrent redemption loses here
            claimed = conn.execute(
                update(invitations)
                .where(invitations.c.id == invitation.id, invitations.c.accepted_at.is_(None))
                .values(accepted_at=now)
            )
            if claimed.rowcount != 1:
                raise AppError(ErrorCode.ALREADY_ACCEPTED, "Invitation has already been accepted")

            conn.execute(
                insert_for(conn, campaign_players)
                .values(campaign_id=invitation.campaign_id, user_id=user_id, role="player")
                .on_conflict_do_nothing(index_elements=["campaign_id", "user_id"])
            )

        self.logger.info(
            "Invitation accepted",
            invitation_id=str(invitation.id),
            campaign_id=str(invitation.campaign_id),
            user_id=str(user_id),
        )
        return invitation.campaign_id
