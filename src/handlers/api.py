"""
API Gateway entry point.

A single Lambda proxy integration serves the whole /v1 API; requests are
routed on the HTTP method and the API Gateway resource template. Each route
function is also a valid standalone handler.
"""

from typing import Any, Callable, Dict, Tuple

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from handlers import admin_operations, campaign_operations, character_operations  # type: ignore[import-not-found]
    from handlers import invite_operations, session_operations  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id  # type: ignore[import-not-found]
    from utils.responses import RequestContext, api_handler, error_response  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from . import admin_operations, campaign_operations, character_operations
    from . import invite_operations, session_operations
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id
    from ..utils.responses import RequestContext, api_handler, error_response


@api_handler("ping")
def ping(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """Unauthenticated liveness check."""
    return {"ok": True, "message": "pong"}


ROUTES: Dict[Tuple[str, str], Callable[..., Any]] = {
    ("GET", "/v1/ping"): ping,
    ("POST", "/v1/campaigns"): campaign_operations.create_campaign,
    ("GET", "/v1/campaigns"): campaign_operations.list_campaigns,
    ("GET", "/v1/campaigns/{id}"): campaign_operations.get_campaign,
    ("DELETE", "/v1/campaigns/{id}"): campaign_operations.delete_campaign,
    ("GET", "/v1/campaigns/{id}/players"): campaign_operations.list_campaign_players,
    ("POST", "/v1/campaigns/{id}/invites"): invite_operations.create_invite,
    ("POST", "/v1/invites/{token}/accept"): invite_operations.accept_invite,
    ("POST", "/v1/campaigns/{id}/sessions"): session_operations.create_session,
    ("GET", "/v1/campaigns/{id}/sessions"): session_operations.list_sessions,
    ("DELETE", "/v1/campaigns/{id}/sessions/{sessionId}"): session_operations.delete_session,
    ("GET", "/v1/characters/me"): character_operations.get_my_character,
    ("PUT", "/v1/characters/me"): character_operations.put_my_character,
    ("GET", "/v1/admin/users"): admin_operations.list_users,
    ("DELETE", "/v1/admin/users/{username}"): admin_operations.delete_user,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Route an API Gateway REST proxy event to its handler."""
    method = str(event.get("httpMethod", "")).upper()
    resource = event.get("resource") or event.get("path") or ""

    route = ROUTES.get((method, resource))
    if route is None:
        error = AppError(ErrorCode.NOT_FOUND, f"No route for {method} {resource}")
        return dict(error_response(error, get_correlation_id(event)))
    return route(event, context)
