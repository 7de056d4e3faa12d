"""
Test fixtures for Lambda function tests.

Provides an in-memory relational store, mocked AWS services and seeded
users and campaigns.
"""

import json
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generator, List, Optional

import boto3
import pytest
from moto import mock_aws
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from src.utils.database import campaign_players, campaigns, metadata, override_engine, reset_engine, users
from tests.unit.fixtures import OWNER_SUB, make_api_event


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set fake AWS credentials for moto and clear app configuration."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for name in (
        "DATABASE_URL",
        "DB_HOST",
        "DB_SECRET_ARN",
        "INVITE_QUEUE_URL",
        "APP_BASE_URL",
        "USER_POOL_ID",
        "ADMIN_GROUP",
        "DEFAULT_GROUP",
        "FROM_EMAIL",
        "DEBUG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite store with the application schema, used by all handlers."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    metadata.create_all(engine)
    override_engine(engine)
    yield engine
    override_engine(None)
    reset_engine()
    engine.dispose()


@pytest.fixture
def invite_queue(monkeypatch: pytest.MonkeyPatch) -> Generator[Any, None, None]:
    """Mock SQS invite queue; INVITE_QUEUE_URL points at it."""
    with mock_aws():
        sqs = boto3.client("sqs", region_name="us-east-1")
        queue_url = sqs.create_queue(QueueName="invite-queue")["QueueUrl"]
        monkeypatch.setenv("INVITE_QUEUE_URL", queue_url)

        class Queue:
            url = queue_url

            def messages(self) -> List[Dict[str, Any]]:
                response = sqs.receive_message(QueueUrl=queue_url, MaxNumberOfMessages=10)
                return [json.loads(m["Body"]) for m in response.get("Messages", [])]

        yield Queue()


@pytest.fixture
def lambda_context() -> Any:
    """Mock Lambda context."""

    class Context:
        function_name = "test-function"
        memory_limit_in_mb = 128
        invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
        aws_request_id = "test-request-id"

    return Context()


@pytest.fixture
def api_event() -> Callable[..., Dict[str, Any]]:
    """Builder for API Gateway REST proxy events with Cognito claims."""
    return make_api_event


@pytest.fixture
def make_user(db_engine: Engine) -> Callable[..., uuid.UUID]:
    """Insert a user row directly."""

    def create(sub: str, email: Optional[str] = None) -> uuid.UUID:
        user_id = uuid.uuid4()
        with db_engine.begin() as conn:
            conn.execute(
                users.insert().values(
                    id=user_id,
                    cognito_user_id=sub,
                    email=email or f"{sub}@players.test",
                    username=sub,
                )
            )
        return user_id

    return create


@pytest.fixture
def make_campaign(db_engine: Engine) -> Callable[..., uuid.UUID]:
    """Insert a campaign owned by ``gm_id`` along with its owner membership."""

    def create(gm_id: uuid.UUID, name: str = "Curse of Strahd") -> uuid.UUID:
        campaign_id = uuid.uuid4()
        with db_engine.begin() as conn:
            conn.execute(
                campaigns.insert().values(
                    id=campaign_id,
                    name=name,
                    gm_id=gm_id,
                    status="active",
                    created_at=datetime.now(timezone.utc),
                )
            )
            conn.execute(
                campaign_players.insert().values(
                    campaign_id=campaign_id, user_id=gm_id, role="owner"
                )
            )
        return campaign_id

    return create


@pytest.fixture
def add_player(db_engine: Engine) -> Callable[[uuid.UUID, uuid.UUID], None]:
    """Add a player membership row."""

    def add(campaign_id: uuid.UUID, user_id: uuid.UUID) -> None:
        with db_engine.begin() as conn:
            conn.execute(
                campaign_players.insert().values(
                    campaign_id=campaign_id, user_id=user_id, role="player"
                )
            )

    return add


@pytest.fixture
def owner_id(make_user: Callable[..., uuid.UUID]) -> uuid.UUID:
    """The game master's user id."""
    return make_user(OWNER_SUB)


@pytest.fixture
def campaign_id(make_campaign: Callable[..., uuid.UUID], owner_id: uuid.UUID) -> uuid.UUID:
    """A campaign owned by OWNER_SUB."""
    return make_campaign(owner_id)
