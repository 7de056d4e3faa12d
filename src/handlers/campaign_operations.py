"""Lambda handlers for campaign operations (create, list, get, delete, players)."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import delete, or_, select

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import get_principal, require_campaign_member, require_campaign_owner  # type: ignore[import-not-found]
    from utils.database import campaign_players, campaigns, get_engine, users  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.responses import (  # type: ignore[import-not-found]
        RequestContext,
        api_handler,
        build_campaign_response,
        build_list_response,
        build_player_response,
    )
    from utils.users import lookup_user_id, resolve_user_id  # type: ignore[import-not-found]
    from utils.validation import optional_text, parse_identifier, parse_json_body, require_text  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import get_principal, require_campaign_member, require_campaign_owner
    from ..utils.database import campaign_players, campaigns, get_engine, users
    from ..utils.errors import AppError, ErrorCode
    from ..utils.responses import (
        RequestContext,
        api_handler,
        build_campaign_response,
        build_list_response,
        build_player_response,
    )
    from ..utils.users import lookup_user_id, resolve_user_id
    from ..utils.validation import optional_text, parse_identifier, parse_json_body, require_text

LIST_LIMIT = 50


@api_handler("createCampaign", status_code=201)
def create_campaign(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Create a campaign owned by the caller.

    POST /v1/campaigns {name, description?} -> 201 {id}

    The caller becomes the game master and gets an ``owner`` membership row.
    """
    principal = get_principal(event)
    body = parse_json_body(event)
    name = require_text(body, "name")
    description = optional_text(body, "description")

    engine = get_engine(ctx.config)
    user_id = resolve_user_id(engine, principal)

    campaign_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    with engine.begin() as conn:
        conn.execute(
            campaigns.insert().values(
                id=campaign_id,
                name=name,
                description=description or None,
                gm_id=user_id,
                status="active",
                created_at=now,
                updated_at=now,
            )
        )
        conn.execute(
            campaign_players.insert().values(
                campaign_id=campaign_id, user_id=user_id, role="owner", joined_at=now
            )
        )

    ctx.logger.info("Created campaign", campaign_id=str(campaign_id), user_id=str(user_id))
    return {"id": campaign_id}


@api_handler("listCampaigns")
def list_campaigns(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    List campaigns the caller owns or has joined, newest first.

    GET /v1/campaigns -> 200 {items}
    """
    principal = get_principal(event)
    engine = get_engine(ctx.config)
    user_id = lookup_user_id(engine, principal)
    if user_id is None:
        return {"items": []}

    joined = select(campaign_players.c.campaign_id).where(campaign_players.c.user_id == user_id)
    with engine.begin() as conn:
        rows = conn.execute(
            select(campaigns)
            .where(or_(campaigns.c.gm_id == user_id, campaigns.c.id.in_(joined)))
            .order_by(campaigns.c.created_at.desc())
            .limit(LIST_LIMIT)
        ).all()

    return build_list_response([row._mapping for row in rows], build_campaign_response)


@api_handler("getCampaign")
def get_campaign(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Get one campaign the caller belongs to.

    GET /v1/campaigns/{id} -> 200 campaign | 403
    """
    principal = get_principal(event)
    campaign_id = parse_identifier((event.get("pathParameters") or {}).get("id"), "id")

    engine = get_engine(ctx.config)
    user_id = lookup_user_id(engine, principal)
    if user_id is None:
        raise AppError(ErrorCode.FORBIDDEN, "You are not a member of this campaign")

    with engine.begin() as conn:
        require_campaign_member(conn, campaign_id, user_id)
        row = conn.execute(select(campaigns).where(campaigns.c.id == campaign_id)).first()

    if row is None:  # pragma: no cover - deleted between the two reads
        raise AppError(ErrorCode.NOT_FOUND, "Campaign not found")
    return build_campaign_response(row._mapping)


@api_handler("deleteCampaign")
def delete_campaign(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Delete a campaign and, by cascade, its members, sessions, characters and
    invitations.

    DELETE /v1/campaigns/{id} -> 200 {ok: true} | 403
    """
    principal = get_principal(event)
    campaign_id = parse_identifier((event.get("pathParameters") or {}).get("id"), "id")

    engine = get_engine(ctx.config)
    user_id = lookup_user_id(engine, principal)
    if user_id is None:
        raise AppError(ErrorCode.FORBIDDEN, "You do not own this campaign")

    with engine.begin() as conn:
        require_campaign_owner(conn, campaign_id, user_id)
        conn.execute(delete(campaigns).where(campaigns.c.id == campaign_id))

    ctx.logger.info("Deleted campaign", campaign_id=str(campaign_id), user_id=str(user_id))
    return {"ok": True}


@api_handler("listCampaignPlayers")
def list_campaign_players(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    List the members of a campaign with their roles.

    GET /v1/campaigns/{id}/players -> 200 {items} | 403
    """
    principal = get_principal(event)
    campaign_id = parse_identifier((event.get("pathParameters") or {}).get("id"), "id")

    engine = get_engine(ctx.config)
    user_id = lookup_user_id(engine, principal)
    if user_id is None:
        raise AppError(ErrorCode.FORBIDDEN, "You are not a member of this campaign")

    with engine.begin() as conn:
        require_campaign_member(conn, campaign_id, user_id)
        rows = conn.execute(
            select(
                campaign_players.c.user_id,
                campaign_players.c.role,
                campaign_players.c.joined_at,
                users.c.username,
                users.c.email,
            )
            .join(users, users.c.id == campaign_players.c.user_id)
            .where(campaign_players.c.campaign_id == campaign_id)
            .order_by(campaign_players.c.joined_at)
        ).all()

    return build_list_response([row._mapping for row in rows], build_player_response)
