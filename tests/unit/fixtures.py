"""
Test data builders for Lambda function tests.

Provides factory functions for API Gateway events, SQS records and decoded
responses so test files don't repeat event boilerplate.
"""

import json
from typing import Any, Dict, Optional
from uuid import uuid4

OWNER_SUB = "owner-sub-123"
PLAYER_SUB = "player-sub-456"
OUTSIDER_SUB = "outsider-sub-789"


def make_api_event(
    sub: Optional[str] = OWNER_SUB,
    *,
    method: str = "GET",
    resource: str = "/v1/ping",
    path: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, str]] = None,
    body: Any = None,
    email: Optional[str] = None,
    groups: Optional[str] = None,
) -> Dict[str, Any]:
    """Build an API Gateway REST proxy event with Cognito authorizer claims.

    Args:
        sub: Cognito subject; None builds an unauthenticated event
        body: Dict bodies are JSON encoded, strings are passed through
        email: Email claim, defaults to ``<sub>@players.test``
        groups: Raw cognito:groups claim string

    Returns:
        Lambda proxy event
    """
    claims: Dict[str, Any] = {}
    if sub is not None:
        claims["sub"] = sub
        claims["cognito:username"] = sub
        claims["email"] = email if email is not None else f"{sub}@players.test"
    if groups is not None:
        claims["cognito:groups"] = groups

    if body is not None and not isinstance(body, str):
        body = json.dumps(body)

    return {
        "httpMethod": method,
        "resource": resource,
        "path": resource,
        "pathParameters": path,
        "queryStringParameters": query,
        "headers": {"Content-Type": "application/json"},
        "body": body,
        "requestContext": {
            "requestId": "test-correlation-id",
            "authorizer": {"claims": claims},
        },
    }


def make_sqs_record(body: Any, message_id: Optional[str] = None) -> Dict[str, Any]:
    """Build an SQS event record; dict bodies are JSON encoded."""
    return {
        "messageId": message_id or uuid4().hex,
        "receiptHandle": "handle",
        "body": body if isinstance(body, str) else json.dumps(body),
        "eventSource": "aws:sqs",
    }


def make_invite_message(email: Optional[str] = "player@example.com") -> Dict[str, Any]:
    """Queue message as produced by the invitation issuer."""
    message: Dict[str, Any] = {
        "campaignId": str(uuid4()),
        "token": "a" * 64,
        "accept": "https://app.example.com/accept?token=" + "a" * 64,
        "subject": "Campaign Invite",
        "message": "You are invited. Use the acceptance link.",
    }
    if email is not None:
        message["email"] = email
    return message


def body_of(response: Dict[str, Any]) -> Any:
    """Decode a proxy response body."""
    return json.loads(response["body"])
