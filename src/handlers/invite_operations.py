"""
Campaign invitation Lambda handlers.

Implements:
- create_invite: owner invites an email address to a campaign (queued email)
- accept_invite: invitee redeems the secret from the acceptance link
"""

from typing import Any, Dict

import boto3

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import get_principal  # type: ignore[import-not-found]
    from utils.database import get_engine  # type: ignore[import-not-found]
    from utils.invitations import InvitationIssuer, InvitationRedeemer  # type: ignore[import-not-found]
    from utils.responses import RequestContext, api_handler  # type: ignore[import-not-found]
    from utils.validation import normalize_email, parse_identifier, parse_json_body  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import get_principal
    from ..utils.database import get_engine
    from ..utils.invitations import InvitationIssuer, InvitationRedeemer
    from ..utils.responses import RequestContext, api_handler
    from ..utils.validation import normalize_email, parse_identifier, parse_json_body


@api_handler("createInvite", status_code=202)
def create_invite(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Invite a player to a campaign by email.

    POST /v1/campaigns/{id}/invites {email} -> 202 {ok: true}

    The campaign id and email are validated before the store is touched.
    Delivery is asynchronous; the response does not wait for the email.

    Errors:
        400 bad_request: malformed campaign id or email
        403 forbidden: caller does not own the campaign
        403 duplicate_invite: a pending invitation exists for this email
    """
    principal = get_principal(event)
    campaign_id = parse_identifier((event.get("pathParameters") or {}).get("id"), "id")
    email = normalize_email(parse_json_body(event).get("email"))

    issuer = InvitationIssuer(
        ctx.config,
        get_engine(ctx.config),
        boto3.client("sqs"),
        logger=ctx.logger,
    )
    issuer.issue(principal, campaign_id, email)
    return {"ok": True}


@api_handler("acceptInvite")
def accept_invite(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Accept an invitation and join its campaign as a player.

    POST /v1/invites/{token}/accept -> 200 {ok: true, campaign_id}

    Errors:
        400 invalid_token: no invitation has this secret
        409 already_accepted: the invitation was already redeemed
        410 expired: the invitation is past its expiry
    """
    principal = get_principal(event)
    token = (event.get("pathParameters") or {}).get("token")

    redeemer = InvitationRedeemer(get_engine(ctx.config), logger=ctx.logger)
    campaign_id = redeemer.redeem(principal, token)
    return {"ok": True, "campaign_id": campaign_id}
