"""Lambda handlers for campaign game sessions."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import delete, select

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import get_principal, require_campaign_member  # type: ignore[import-not-found]
    from utils.database import get_engine, sessions  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.responses import RequestContext, api_handler, build_list_response, build_session_response  # type: ignore[import-not-found]
    from utils.users import lookup_user_id  # type: ignore[import-not-found]
    from utils.validation import (  # type: ignore[import-not-found]
        optional_text,
        parse_identifier,
        parse_json_body,
        parse_positive_int,
        parse_timestamp,
        require_text,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import get_principal, require_campaign_member
    from ..utils.database import get_engine, sessions
    from ..utils.errors import AppError, ErrorCode
    from ..utils.responses import RequestContext, api_handler, build_list_response, build_session_response
    from ..utils.users import lookup_user_id
    from ..utils.validation import (
        optional_text,
        parse_identifier,
        parse_json_body,
        parse_positive_int,
        parse_timestamp,
        require_text,
    )

DEFAULT_DURATION_MINUTES = 180
MAX_DURATION_MINUTES = 24 * 60
LIST_LIMIT = 100


def _member_user_id(event: Dict[str, Any], ctx: RequestContext, campaign_id: uuid.UUID) -> uuid.UUID:
    principal = get_principal(event)
    engine = get_engine(ctx.config)
    user_id = lookup_user_id(engine, principal)
    if user_id is None:
        raise AppError(ErrorCode.FORBIDDEN, "You are not a member of this campaign")
    with engine.begin() as conn:
        require_campaign_member(conn, campaign_id, user_id)
    return user_id


@api_handler("createSession", status_code=201)
def create_session(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Schedule a session.

    POST /v1/campaigns/{id}/sessions {title, scheduled_at, duration_minutes?, notes?} -> 201 {id}
    """
    campaign_id = parse_identifier((event.get("pathParameters") or {}).get("id"), "id")
    body = parse_json_body(event)
    title = require_text(body, "title")
    scheduled_at = parse_timestamp(body.get("scheduled_at"), "scheduled_at")
    duration = parse_positive_int(
        body.get("duration_minutes"), "duration_minutes",
        DEFAULT_DURATION_MINUTES,
        max_value=MAX_DURATION_MINUTES,
    )
    notes = optional_text(body, "notes")

    _member_user_id(event, ctx, campaign_id)

    session_id = uuid.uuid4()
    with get_engine(ctx.config).begin() as conn:
        conn.execute(
            sessions.insert().values(
                id=session_id,
                campaign_id=campaign_id,
                title=title,
                scheduled_at=scheduled_at,
                duration_minutes=duration,
                status="scheduled",
                notes=notes,
                created_at=datetime.now(timezone.utc),
            )
        )

    ctx.logger.info("Created session", campaign_id=str(campaign_id), session_id=str(session_id))
    return {"id": session_id}


@api_handler("listSessions")
def list_sessions(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    List a campaign's sessions, latest scheduled first.

    GET /v1/campaigns/{id}/sessions -> 200 {items}
    """
    campaign_id = parse_identifier((event.get("pathParameters") or {}).get("id"), "id")
    _member_user_id(event, ctx, campaign_id)

    with get_engine(ctx.config).begin() as conn:
        rows = conn.execute(
            select(sessions)
            .where(sessions.c.campaign_id == campaign_id)
            .order_by(sessions.c.scheduled_at.desc())
            .limit(LIST_LIMIT)
        ).all()

    return build_list_response([row._mapping for row in rows], build_session_response)


@api_handler("deleteSession")
def delete_session(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Delete a session of the campaign.

    DELETE /v1/campaigns/{id}/sessions/{sessionId} -> 200 {ok: true} | 404
    """
    path = event.get("pathParameters") or {}
    campaign_id = parse_identifier(path.get("id"), "id")
    session_id = parse_identifier(path.get("sessionId"), "sessionId")
    _member_user_id(event, ctx, campaign_id)

    with get_engine(ctx.config).begin() as conn:
        result = conn.execute(
            delete(sessions).where(
                sessions.c.id == session_id, sessions.c.campaign_id == campaign_id
            )
        )
    if result.rowcount == 0:
        raise AppError(ErrorCode.NOT_FOUND, "Session not found")

    ctx.logger.info("Deleted session", campaign_id=str(campaign_id), session_id=str(session_id))
    return {"ok": True}
