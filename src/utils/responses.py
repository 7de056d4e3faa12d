"""
HTTP response builders for API Gateway Lambda proxy handlers.

Provides consistent response envelopes, the handler boundary decorator that
translates exceptions into the error taxonomy, and row serializers.
"""

import functools
import json
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, TypedDict

try:  # pragma: no cover
    from utils.config import AppConfig  # type: ignore[import-not-found]
    from utils.errors import AppError, handle_error  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from .config import AppConfig
    from .errors import AppError, handle_error
    from .logging import StructuredLogger, get_correlation_id

CORRELATION_HEADER = "X-Correlation-Id"


class ApiResponse(TypedDict):
    """Lambda proxy integration response."""

    statusCode: int
    headers: Dict[str, str]
    body: str


class RequestContext:
    """Per-invocation values handed to an API handler."""

    def __init__(self, config: AppConfig, logger: StructuredLogger) -> None:
        self.config = config
        self.logger = logger

    @property
    def correlation_id(self) -> str:
        return self.logger.correlation_id


ApiHandler = Callable[[Dict[str, Any], RequestContext], Any]


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return str(value)


def json_response(
    status_code: int, body: Any, correlation_id: Optional[str] = None
) -> ApiResponse:
    """Build a JSON proxy response."""
    headers = {"Content-Type": "application/json"}
    if correlation_id:
        headers[CORRELATION_HEADER] = correlation_id
    return ApiResponse(
        statusCode=status_code,
        headers=headers,
        body=json.dumps(body, default=_json_default),
    )


def error_response(error: AppError, correlation_id: Optional[str] = None) -> ApiResponse:
    """Build the ``{error, message}`` response for an AppError."""
    return json_response(error.status_code, error.to_dict(), correlation_id)


def api_handler(name: str, status_code: int = 200) -> Callable[[ApiHandler], Callable[..., ApiResponse]]:
    """
    Wrap a handler function as an API Gateway Lambda entry point.

    The wrapped function receives the event and a RequestContext and returns
    either a ready ApiResponse or a JSON-serializable body, which is sent with
    ``status_code``. Exceptions are logged with the correlation id and
    translated to the error taxonomy; unexpected failures get a generic
    message unless DEBUG is enabled.

    Args:
        name: Operation name used in log lines
        status_code: Success status for plain bodies
    """

    def decorator(fn: ApiHandler) -> Callable[..., ApiResponse]:
        @functools.wraps(fn)
        def wrapper(event: Dict[str, Any], context: Any = None) -> ApiResponse:
            correlation_id = get_correlation_id(event)
            logger = StructuredLogger(fn.__module__, correlation_id)
            logger.info("Handling request", operation=name, path=event.get("path"))

            debug = False
            try:
                config = AppConfig.from_env()
                debug = config.debug
                result = fn(event, RequestContext(config, logger))
            except AppError as e:
                logger.warning(
                    "Request rejected", operation=name, error=e.error_code, detail=e.message
                )
                return error_response(e, correlation_id)
            except Exception as e:
                app_error = handle_error(e, debug=debug)
                logger.error(
                    "Request failed",
                    operation=name,
                    error=app_error.error_code,
                    exception=type(e).__name__,
                    detail=str(e),
                )
                return error_response(app_error, correlation_id)

            if isinstance(result, dict) and "statusCode" in result and "body" in result:
                result.setdefault("headers", {})[CORRELATION_HEADER] = correlation_id
                return result  # type: ignore[return-value]
            return json_response(status_code, result, correlation_id)

        return wrapper

    return decorator


def build_campaign_response(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "description": row.get("description"),
        "status": row.get("status"),
        "gm_id": row.get("gm_id"),
        "max_players": row.get("max_players"),
        "created_at": row.get("created_at"),
    }


def build_session_response(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "title": row["title"],
        "scheduled_at": row["scheduled_at"],
        "duration_minutes": row.get("duration_minutes"),
        "status": row.get("status"),
        "notes": row.get("notes"),
    }


def build_character_response(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "class": row["class"],
        "level": row["level"],
    }


def build_player_response(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": row["user_id"],
        "username": row["username"],
        "email": row["email"],
        "role": row["role"],
        "joined_at": row.get("joined_at"),
    }


def build_list_response(rows: List[Mapping[str, Any]], builder: Callable[[Mapping[str, Any]], Dict[str, Any]]) -> Dict[str, Any]:
    """Wrap built rows in the ``{"items": [...]}`` envelope."""
    return {"items": [builder(row) for row in rows]}
