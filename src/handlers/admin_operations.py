"""
Admin-only user management backed by the Cognito user pool.

Access is gated on the caller's cognito:groups claim containing the admin
group (ADMIN_GROUP, default "admin"). The group claim is the source of truth;
nothing about admin status is stored in the database.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import boto3

if TYPE_CHECKING:
    from mypy_boto3_cognito_idp import CognitoIdentityProviderClient

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import get_principal, require_role  # type: ignore[import-not-found]
    from utils.config import AppConfig  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.responses import RequestContext, api_handler  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import get_principal, require_role
    from ..utils.config import AppConfig
    from ..utils.errors import AppError, ErrorCode
    from ..utils.responses import RequestContext, api_handler


def _get_cognito() -> "CognitoIdentityProviderClient":
    return boto3.client("cognito-idp")


def _user_pool_id(config: AppConfig) -> str:
    if not config.user_pool_id:
        raise ValueError("USER_POOL_ID is not configured")
    return config.user_pool_id


def _build_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "username": user.get("Username"),
        "status": user.get("UserStatus"),
        "enabled": user.get("Enabled"),
        "attributes": user.get("Attributes", []),
    }


@api_handler("adminListUsers")
def list_users(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    List all users in the pool.

    GET /v1/admin/users -> 200 {users: [{username, status, enabled, attributes}]}
    """
    principal = get_principal(event)
    require_role(principal, ctx.config.admin_group)

    cognito = _get_cognito()
    pool_id = _user_pool_id(ctx.config)

    result: List[Dict[str, Any]] = []
    pagination_token: Optional[str] = None
    while True:
        kwargs: Dict[str, Any] = {"UserPoolId": pool_id, "Limit": 60}
        if pagination_token:
            kwargs["PaginationToken"] = pagination_token
        response = cognito.list_users(**kwargs)
        result.extend(_build_user(user) for user in response.get("Users", []))
        pagination_token = response.get("PaginationToken")
        if not pagination_token:
            break

    ctx.logger.info("Listed users", count=len(result))
    return {"users": result}


@api_handler("adminDeleteUser")
def delete_user(event: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
    """
    Delete a user from the pool.

    DELETE /v1/admin/users/{username} -> 200 {ok: true} | 404
    """
    principal = get_principal(event)
    require_role(principal, ctx.config.admin_group)

    username = (event.get("pathParameters") or {}).get("username")
    if not username:
        raise AppError(ErrorCode.BAD_REQUEST, "username is required")

    cognito = _get_cognito()
    try:
        cognito.admin_delete_user(UserPoolId=_user_pool_id(ctx.config), Username=username)
    except cognito.exceptions.UserNotFoundException:
        raise AppError(ErrorCode.NOT_FOUND, f"User {username} not found")

    ctx.logger.info("Deleted user", username=username, deleted_by=principal.sub)
    return {"ok": True}
