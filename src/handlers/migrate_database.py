"""
Schema migration Lambda.

Creates the application tables and indexes if they do not exist and seeds a
demo game master with a demo campaign. Invoked once per deployment.
"""

import uuid
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.engine import Connection

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.config import AppConfig  # type: ignore[import-not-found]
    from utils.database import campaign_players, campaigns, get_engine, metadata, users  # type: ignore[import-not-found]
    from utils.logging import get_logger  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.config import AppConfig
    from ..utils.database import campaign_players, campaigns, get_engine, metadata, users
    from ..utils.logging import get_logger

DEMO_GM_SUB = "cognito-demo-gm"
DEMO_GM_EMAIL = "gm@example.com"
DEMO_CAMPAIGN_NAME = "Demo Campaign"


def seed_demo_data(conn: Connection) -> bool:
    """
    Insert the demo GM and campaign unless the GM already exists.

    Returns:
        True if rows were inserted
    """
    existing = conn.execute(select(users.c.id).where(users.c.cognito_user_id == DEMO_GM_SUB)).first()
    if existing is not None:
        return False

    gm_id = uuid.uuid4()
    campaign_id = uuid.uuid4()
    conn.execute(
        users.insert().values(
            id=gm_id, cognito_user_id=DEMO_GM_SUB, email=DEMO_GM_EMAIL, username="demo_gm"
        )
    )
    conn.execute(
        campaigns.insert().values(
            id=campaign_id,
            name=DEMO_CAMPAIGN_NAME,
            description="A seeded demo campaign",
            gm_id=gm_id,
        )
    )
    conn.execute(
        campaign_players.insert().values(campaign_id=campaign_id, user_id=gm_id, role="owner")
    )
    return True


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Run the migration in a single transaction.

    Event (optional): {"seed": false} to skip demo data.

    Raises:
        Exception: Any failure, after the transaction is rolled back
    """
    logger = get_logger(__name__, getattr(context, "aws_request_id", None))
    seed = (event or {}).get("seed", True)

    engine = get_engine(AppConfig.from_env())
    try:
        with engine.begin() as conn:
            metadata.create_all(conn, checkfirst=True)
            seeded = seed_demo_data(conn) if seed else False
    except Exception as e:
        logger.error("Migration failed", error=str(e))
        raise

    logger.info("Migration complete", seeded=seeded)
    return {"statusCode": 200, "body": "migrated"}
