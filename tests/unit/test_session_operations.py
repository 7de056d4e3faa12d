"""Tests for session scheduling Lambda handlers."""

import uuid
from typing import Any, Callable, Dict

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine

from src.handlers.session_operations import create_session, delete_session, list_sessions
from src.utils.database import sessions
from tests.unit.fixtures import OUTSIDER_SUB, OWNER_SUB, PLAYER_SUB, body_of

SESSIONS = "/v1/campaigns/{id}/sessions"


def _create_event(api_event: Any, campaign_id: Any, body: Any, sub: str = OWNER_SUB) -> Dict[str, Any]:
    return api_event(sub, method="POST", resource=SESSIONS, path={"id": str(campaign_id)}, body=body)


def _delete_event(api_event: Any, campaign_id: Any, session_id: Any, sub: str = OWNER_SUB) -> Dict[str, Any]:
    return api_event(
        sub,
        method="DELETE",
        resource=SESSIONS + "/{sessionId}",
        path={"id": str(campaign_id), "sessionId": str(session_id)},
    )


class TestCreateSession:
    """Tests for create_session handler."""

    def test_create_with_defaults(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any
    ) -> None:
        response = create_session(
            _create_event(api_event, campaign_id, {"title": "Session 0", "scheduled_at": "2026-10-31T19:00:00Z"}),
            lambda_context,
        )

        assert response["statusCode"] == 201
        session_id = uuid.UUID(body_of(response)["id"])
        with db_engine.begin() as conn:
            row = conn.execute(select(sessions).where(sessions.c.id == session_id)).one()
        assert row.campaign_id == campaign_id
        assert row.duration_minutes == 180
        assert row.status == "scheduled"
        assert row.notes is None

    def test_player_can_schedule(
        self,
        db_engine: Engine,
        campaign_id: uuid.UUID,
        make_user: Callable[..., uuid.UUID],
        add_player: Callable[[uuid.UUID, uuid.UUID], None],
        api_event: Any,
        lambda_context: Any,
    ) -> None:
        add_player(campaign_id, make_user(PLAYER_SUB))
        body = {
            "title": "Session 1",
            "scheduled_at": "2026-11-07T19:00:00Z",
            "duration_minutes": 240,
            "notes": "Bring dice",
        }

        response = create_session(_create_event(api_event, campaign_id, body, PLAYER_SUB), lambda_context)

        assert response["statusCode"] == 201
        with db_engine.begin() as conn:
            row = conn.execute(select(sessions)).one()
        assert row.duration_minutes == 240
        assert row.notes == "Bring dice"

    def test_outsider_forbidden(
        self, db_engine: Engine, campaign_id: uuid.UUID, make_user: Callable[..., uuid.UUID], api_event: Any, lambda_context: Any
    ) -> None:
        make_user(OUTSIDER_SUB)
        body = {"title": "Session 1", "scheduled_at": "2026-11-07T19:00:00Z"}

        response = create_session(_create_event(api_event, campaign_id, body, OUTSIDER_SUB), lambda_context)

        assert response["statusCode"] == 403
        with db_engine.begin() as conn:
            assert conn.execute(select(sessions)).all() == []

    @pytest.mark.parametrize(
        "body",
        [
            {"scheduled_at": "2026-11-07T19:00:00Z"},
            {"title": "Session 1"},
            {"title": "Session 1", "scheduled_at": "soon"},
            {"title": "Session 1", "scheduled_at": "2026-11-07T19:00:00Z", "duration_minutes": 0},
            {"title": "Session 1", "scheduled_at": "2026-11-07T19:00:00Z", "duration_minutes": 1441},
            {"title": "Session 1", "scheduled_at": "2026-11-07T19:00:00Z", "duration_minutes": 2**70},
            {"title": "Session 1", "scheduled_at": "2026-11-07T19:00:00Z", "duration_minutes": 90.5},
        ],
    )
    def test_invalid_body(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any, body: Dict[str, Any]
    ) -> None:
        response = create_session(_create_event(api_event, campaign_id, body), lambda_context)

        assert response["statusCode"] == 400
        assert body_of(response)["error"] == "bad_request"
        with db_engine.begin() as conn:
            assert conn.execute(select(sessions)).all() == []

    def test_day_long_session_accepted(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any
    ) -> None:
        body = {"title": "Marathon", "scheduled_at": "2026-11-07T09:00:00Z", "duration_minutes": 1440}

        response = create_session(_create_event(api_event, campaign_id, body), lambda_context)

        assert response["statusCode"] == 201
        with db_engine.begin() as conn:
            assert conn.execute(select(sessions.c.duration_minutes)).scalar_one() == 1440


class TestListSessions:
    def test_latest_first(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any
    ) -> None:
        for title, when in (("First", "2026-11-01T19:00:00Z"), ("Second", "2026-11-08T19:00:00Z")):
            create_session(_create_event(api_event, campaign_id, {"title": title, "scheduled_at": when}), lambda_context)

        response = list_sessions(
            api_event(OWNER_SUB, resource=SESSIONS, path={"id": str(campaign_id)}), lambda_context
        )

        items = body_of(response)["items"]
        assert [item["title"] for item in items] == ["Second", "First"]
        assert items[0]["duration_minutes"] == 180

    def test_outsider_forbidden(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any
    ) -> None:
        response = list_sessions(
            api_event(OUTSIDER_SUB, resource=SESSIONS, path={"id": str(campaign_id)}), lambda_context
        )

        assert response["statusCode"] == 403


class TestDeleteSession:
    def _schedule(self, api_event: Any, lambda_context: Any, campaign_id: uuid.UUID) -> str:
        response = create_session(
            _create_event(api_event, campaign_id, {"title": "Session 0", "scheduled_at": "2026-10-31T19:00:00Z"}),
            lambda_context,
        )
        return body_of(response)["id"]

    def test_delete(self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any) -> None:
        session_id = self._schedule(api_event, lambda_context, campaign_id)

        response = delete_session(_delete_event(api_event, campaign_id, session_id), lambda_context)

        assert body_of(response) == {"ok": True}
        with db_engine.begin() as conn:
            assert conn.execute(select(sessions)).all() == []

    def test_unknown_session_not_found(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any
    ) -> None:
        response = delete_session(_delete_event(api_event, campaign_id, uuid.uuid4()), lambda_context)

        assert response["statusCode"] == 404

    def test_session_of_other_campaign_not_found(
        self,
        db_engine: Engine,
        campaign_id: uuid.UUID,
        owner_id: uuid.UUID,
        make_campaign: Callable[..., uuid.UUID],
        api_event: Any,
        lambda_context: Any,
    ) -> None:
        session_id = self._schedule(api_event, lambda_context, campaign_id)
        other = make_campaign(owner_id, name="Other")

        response = delete_session(_delete_event(api_event, other, session_id), lambda_context)

        assert response["statusCode"] == 404
        with db_engine.begin() as conn:
            assert len(conn.execute(select(sessions)).all()) == 1

    def test_malformed_session_id(
        self, db_engine: Engine, campaign_id: uuid.UUID, api_event: Any, lambda_context: Any
    ) -> None:
        response = delete_session(_delete_event(api_event, campaign_id, "nope"), lambda_context)

        assert response["statusCode"] == 400
