"""
Runtime configuration for Lambda functions.

Every handler builds one AppConfig from the environment and passes it to the
components it uses, instead of reading environment variables ad hoc.
"""

import os
from dataclasses import dataclass
from typing import Optional

_TRUTHY = {"1", "true", "yes", "on"}


def get_required_env(name: str, default: Optional[str] = None) -> str:
    """Get a required environment variable.

    Args:
        name: Environment variable name
        default: Optional default for local and test environments

    Returns:
        The environment variable value

    Raises:
        ValueError: If the env var is not set and no default is provided
    """
    value = os.getenv(name, default)
    if value is None:
        raise ValueError(f"Required environment variable '{name}' is not set")
    return value


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class AppConfig:
    """Explicit configuration shared by handlers and components."""

    # Store endpoint and credentials reference
    db_host: Optional[str] = None
    db_port: int = 5432
    db_name: str = "appdb"
    db_secret_arn: Optional[str] = None
    database_url: Optional[str] = None

    # Messaging
    invite_queue_url: Optional[str] = None
    from_email: str = "noreply@yourdomain.com"
    app_base_url: str = ""

    # Identity provider
    user_pool_id: Optional[str] = None
    admin_group: str = "admin"
    default_group: str = "player"

    debug: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            db_host=os.getenv("DB_HOST"),
            db_port=int(os.getenv("DB_PORT", "5432")),
            db_name=os.getenv("DB_NAME", "appdb"),
            db_secret_arn=os.getenv("DB_SECRET_ARN"),
            database_url=os.getenv("DATABASE_URL"),
            invite_queue_url=os.getenv("INVITE_QUEUE_URL"),
            from_email=os.getenv("FROM_EMAIL", "noreply@yourdomain.com"),
            app_base_url=os.getenv("APP_BASE_URL", "").rstrip("/"),
            user_pool_id=os.getenv("USER_POOL_ID"),
            admin_group=os.getenv("ADMIN_GROUP", "admin"),
            default_group=os.getenv("DEFAULT_GROUP", "player"),
            debug=_flag("DEBUG"),
        )
