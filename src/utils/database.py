"""
Centralized relational store access.

Table definitions (SQLAlchemy Core, no ORM mapping) and a lazily created
engine cached per Lambda container, with test override support.
"""

import json
import uuid
from typing import TYPE_CHECKING, Any, Dict, Optional

import boto3
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.sql import func

if TYPE_CHECKING:
    from mypy_boto3_secretsmanager import SecretsManagerClient

try:  # pragma: no cover
    from utils.config import AppConfig  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from .config import AppConfig

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("cognito_user_id", String(255), unique=True, nullable=False),
    Column("email", String(255), nullable=False, index=True),
    Column("username", String(100), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
)

campaigns = Table(
    "campaigns",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("gm_id", Uuid, ForeignKey("users.id"), nullable=False, index=True),
    Column("max_players", Integer, default=6),
    Column("status", String(50), default="active"),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
)

campaign_players = Table(
    "campaign_players",
    metadata,
    Column("campaign_id", Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role", String(50), nullable=False, default="player"),
    Column("joined_at", DateTime(timezone=True), server_default=func.now()),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column(
        "campaign_id",
        Uuid,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("title", String(255), nullable=False),
    Column("scheduled_at", DateTime(timezone=True), nullable=False),
    Column("duration_minutes", Integer, default=180),
    Column("status", String(50), default="scheduled"),
    Column("notes", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

characters = Table(
    "characters",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("campaign_id", Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("class", String(100), nullable=False),
    Column("level", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    UniqueConstraint("campaign_id", "user_id", name="uq_characters_campaign_user"),
)

invitations = Table(
    "invitations",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("campaign_id", Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
    Column("email", String(255), nullable=False),
    Column("token_hash", String(64), unique=True, nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_by", Uuid, ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("accepted_at", DateTime(timezone=True), nullable=True),
)

# At most one pending invitation per (campaign, email)
Index(
    "uq_invitations_pending_email",
    invitations.c.campaign_id,
    invitations.c.email,
    unique=True,
    postgresql_where=invitations.c.accepted_at.is_(None),
    sqlite_where=invitations.c.accepted_at.is_(None),
)


# Module-level cache; one engine per Lambda container
_engine: Optional[Engine] = None
_engine_override: Optional[Engine] = None


def _get_secretsmanager() -> "SecretsManagerClient":
    return boto3.client("secretsmanager")


def get_database_credentials(secret_arn: str) -> Dict[str, Any]:
    """Read the RDS-generated credentials secret (JSON with username/password)."""
    response = _get_secretsmanager().get_secret_value(SecretId=secret_arn)
    return json.loads(response.get("SecretString") or "{}")


def build_database_url(config: AppConfig) -> Any:
    """
    Build the SQLAlchemy URL for the configured store.

    DATABASE_URL wins when set (local development). Otherwise connect to
    DB_HOST with credentials from the DB_SECRET_ARN secret over TLS.
    """
    if config.database_url:
        return config.database_url
    if not config.db_host or not config.db_secret_arn:
        raise ValueError("DB_HOST and DB_SECRET_ARN must be set when DATABASE_URL is not")

    creds = get_database_credentials(config.db_secret_arn)
    return URL.create(
        "postgresql+psycopg2",
        username=creds.get("username"),
        password=creds.get("password"),
        host=config.db_host,
        port=config.db_port,
        database=config.db_name,
        query={"sslmode": "require"},
    )


def get_engine(config: AppConfig) -> Engine:
    """Get the shared engine, creating it on first use."""
    global _engine
    if _engine_override is not None:
        return _engine_override
    if _engine is None:
        _engine = create_engine(
            build_database_url(config),
            pool_pre_ping=True,
            pool_size=1,
            max_overflow=0,
        )
    return _engine


def insert_for(conn: Connection, table: Table) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


# Test utilities
def override_engine(engine: Optional[Engine]) -> None:
    """Override the engine for testing. Set to None to clear override."""
    global _engine_override
    _engine_override = engine


def reset_engine() -> None:
    """Dispose of and forget the cached engine (for testing isolation)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
