"""Lambda handlers for the caller's character in a campaign."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import select

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import get_principal, require_campaign_member  # type: ignore[import-not-found]
    from utils.database import characters, get_engine, insert_for  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.responses import RequestContext, api_handler, build_character_response  # type: ignore[import-not-found]
    from utils.users import lookup_user_id, resolve_user_id  # type: ignore[import-not-found]
    from utils.validation import parse_identifier, parse_json_body, parse_positive_int, require_text  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import get_principal, require_campaign_member
    from ..utils.database import characters, get_engine, insert_for
    from ..utils.errors import AppError, ErrorCode
    from ..utils.responses import RequestContext, api_handler, build_character_response
    from ..utils.users import lookup_user_id, resolve_user_id
    from ..utils.validation import parse_identifier, parse_json_body, parse_positive_int, require_text


MAX_LEVEL = 20


@api_handler("getMyCharacter")
def get_my_character(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Get the caller's character in a campaign.

    GET /v1/characters/me?campaign_id= -> 200 character | 403 | 404
    """
    principal = get_principal(event)
    query = event.get("queryStringParameters") or {}
    campaign_id = parse_identifier(query.get("campaign_id"), "campaign_id")

    engine = get_engine(ctx.config)
    user_id = lookup_user_id(engine, principal)
    if user_id is None:
        raise AppError(ErrorCode.NOT_FOUND, "Character not found")

    with engine.begin() as conn:
        require_campaign_member(conn, campaign_id, user_id)
        row = conn.execute(
            select(characters).where(
                characters.c.campaign_id == campaign_id, characters.c.user_id == user_id
            )
        ).first()

    if row is None:
        raise AppError(ErrorCode.NOT_FOUND, "Character not found")
    return build_character_response(row._mapping)


@api_handler("putMyCharacter")
def put_my_character(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Create or replace the caller's character in a campaign.

    PUT /v1/characters/me {campaign_id, name, class, level?} -> 200 {id}

    One character per (campaign, user); a second PUT updates it in place.
    """
    principal = get_principal(event)
    body = parse_json_body(event)
    campaign_id = parse_identifier(body.get("campaign_id"), "campaign_id")
    name = require_text(body, "name")
    char_class = require_text(body, "class", max_length=100)
    level = parse_positive_int(body.get("level"), "level", 1, max_value=MAX_LEVEL)

    engine = get_engine(ctx.config)
    user_id = resolve_user_id(engine, principal)
    now = datetime.now(timezone.utc)

    with engine.begin() as conn:
        require_campaign_member(conn, campaign_id, user_id)
        stmt = insert_for(conn, characters).values(
            id=uuid.uuid4(),
            campaign_id=campaign_id,
            user_id=user_id,
            name=name,
            level=level,
            created_at=now,
            updated_at=now,
            **{"class": char_class},
        )
        conn.execute(
            stmt.on_conflict_do_update(
                index_elements=["campaign_id", "user_id"],
                set_={"name": name, "class": char_class, "level": level, "updated_at": now},
            )
        )
        row = conn.execute(
            select(characters.c.id).where(
                characters.c.campaign_id == campaign_id, characters.c.user_id == user_id
            )
        ).one()

    ctx.logger.info("Saved character", campaign_id=str(campaign_id), character_id=str(row.id))
    return {"id": row.id}
