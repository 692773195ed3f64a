from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool

from goalify.config import Settings
from goalify.db import Base, make_session_factory
from goalify.db import models  # noqa: F401
from goalify.db.session import DatabaseNotConfigured
from goalify.entities import Conversation, Goal, Message, Preferences, UserProfile
from goalify.errors import (
    GatewayConflict,
    GatewayInvalidInput,
    GatewayNotFound,
    GatewayUnavailable,
    RecordConflict,
)
from goalify.gateway import DatabaseGateway, OfflineGateway, build_gateway, classify_exception
from goalify.telemetry import clear_listeners, recent_events

START = datetime(2025, 1, 1, tzinfo=timezone.utc)
REASON = "Stuck to the plan every single morning."


@pytest.fixture
def gateway():
    clear_listeners()
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield DatabaseGateway(make_session_factory(engine))
    engine.dispose()


def _goal(description: str = "Meditate for ten minutes daily", **fields) -> Goal:
    return Goal(description=description, created_at=START, **fields)


@pytest.mark.parametrize(
    ("exc", "kind"),
    [
        (OperationalError("SELECT 1", {}, Exception("down")), "unavailable"),
        (DatabaseNotConfigured("no url"), "unavailable"),
        (ConnectionRefusedError("refused"), "unavailable"),
        (IntegrityError("INSERT", {}, Exception("dup")), "conflict"),
        (RecordConflict("done twice"), "conflict"),
        (ValueError("too short"), "invalid_input"),
        (LookupError("missing"), "not_found"),
        (RuntimeError("surprise"), "unknown"),
    ],
)
def test_classify_exception(exc: Exception, kind: str) -> None:
    error = classify_exception("op", exc)
    assert error.kind == kind
    assert error.operation == "op"


def test_classify_exception_passes_gateway_errors_through() -> None:
    original = GatewayConflict("op", "already done")
    assert classify_exception("other", original) is original


def test_fetch_missing_profile_is_not_found(gateway: DatabaseGateway) -> None:
    with pytest.raises(GatewayNotFound):
        gateway.fetch_profile("ghost")
    assert recent_events("gateway_failure") == []


def test_profile_round_trip_recomputes_level(gateway: DatabaseGateway) -> None:
    stored = gateway.upsert_profile(
        UserProfile(
            id="user-1",
            name="Ana",
            total_xp=2500,
            daily_streak=3,
            highest_streak=7,
            last_activity=START,
            preferences=Preferences(tone="formal", voice_enabled=True),
        )
    )
    assert stored.level == 3

    fetched = gateway.fetch_profile("user-1")
    assert fetched.name == "Ana"
    assert fetched.highest_streak == 7
    assert fetched.last_activity == START
    assert fetched.preferences.tone == "formal"
    assert fetched.preferences.voice_enabled is True


def test_highest_streak_never_decreases(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="user-1", daily_streak=7))
    gateway.upsert_profile(UserProfile(id="user-1", daily_streak=1))
    fetched = gateway.fetch_profile("user-1")
    assert fetched.daily_streak == 1
    assert fetched.highest_streak == 7


def test_upsert_goal_assigns_remote_id(gateway: DatabaseGateway) -> None:
    local = _goal(xp_value=40)
    stored = gateway.upsert_goal("user-1", local)
    assert stored.id != local.id
    assert not stored.id.startswith("local-")
    assert stored.xp_value == 40

    later = gateway.upsert_goal("user-1", Goal(description="Write one page a day", created_at=START + timedelta(days=1)))
    assert [goal.id for goal in gateway.list_goals("user-1")] == [later.id, stored.id]
    assert gateway.list_goals("user-2") == []


def test_upsert_goal_with_same_local_id_updates_one_row(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="user-1", total_xp=100))
    local = _goal()
    first = gateway.upsert_goal("user-1", local)
    second = gateway.upsert_goal("user-1", local.model_copy(update={"description": "Meditate for fifteen minutes"}))

    assert second.id == first.id
    assert [goal.description for goal in gateway.list_goals("user-1")] == ["Meditate for fifteen minutes"]
    assert gateway.fetch_leaderboard("xp", None)[0].goals_created == 1
    assert gateway.upsert_goal("user-2", local).id != first.id


def test_goal_xp_round_trips_unchanged(gateway: DatabaseGateway) -> None:
    stored = gateway.upsert_goal("user-1", _goal(xp_value=10))
    assert gateway.list_goals("user-1")[0].xp_value == stored.xp_value == 10
    with pytest.raises(ValueError):
        _goal(xp_value=5)


def test_complete_goal_rejects_xp_below_minimum(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="user-1"))
    goal = gateway.upsert_goal("user-1", _goal())
    with pytest.raises(GatewayInvalidInput):
        gateway.complete_goal("user-1", goal.id, REASON, 5, START + timedelta(days=1))
    assert gateway.list_goals("user-1")[0].completed is False


def test_upsert_goal_rejects_short_description(gateway: DatabaseGateway) -> None:
    with pytest.raises(GatewayInvalidInput):
        gateway.upsert_goal("user-1", _goal("Too short"))
    assert recent_events("gateway_failure")[0].payload == {"operation": "upsert_goal", "kind": "invalid_input"}


def test_upsert_goal_for_other_user_is_not_found(gateway: DatabaseGateway) -> None:
    stored = gateway.upsert_goal("user-1", _goal())
    with pytest.raises(GatewayNotFound):
        gateway.upsert_goal("user-2", stored.model_copy(update={"description": "Hijacked goal text"}))
    assert gateway.list_goals("user-1")[0].description == "Meditate for ten minutes daily"


def test_complete_goal_awards_xp_once(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="user-1", total_xp=900))
    goal = gateway.upsert_goal("user-1", _goal())

    completed, profile = gateway.complete_goal("user-1", goal.id, REASON, 113, START + timedelta(days=1))

    assert completed.completed is True
    assert completed.completion_reasoning == REASON
    assert completed.xp_value == 113
    assert profile.total_xp == 1013
    assert profile.level == 2

    with pytest.raises(GatewayConflict):
        gateway.complete_goal("user-1", goal.id, REASON, 113, START + timedelta(days=2))
    assert gateway.fetch_profile("user-1").total_xp == 1013


def test_complete_goal_unknown_or_foreign_goal(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="user-2"))
    goal = gateway.upsert_goal("user-1", _goal())
    with pytest.raises(GatewayNotFound):
        gateway.complete_goal("user-1", "missing", REASON, 50, START)
    with pytest.raises(GatewayNotFound):
        gateway.complete_goal("user-2", goal.id, REASON, 50, START)


def test_complete_goal_short_reasoning_is_invalid(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="user-1"))
    goal = gateway.upsert_goal("user-1", _goal())
    with pytest.raises(GatewayInvalidInput):
        gateway.complete_goal("user-1", goal.id, "done", 50, START)
    assert gateway.list_goals("user-1")[0].completed is False


def test_conversation_and_messages(gateway: DatabaseGateway) -> None:
    conversation = gateway.upsert_conversation(
        "user-1",
        Conversation(id="conv-1", title="Morning routine", created_at=START, updated_at=START),
    )
    assert conversation.title == "Morning routine"

    first = Message(id="m1", conversation_id="conv-1", role="user", content="Hi", timestamp=START + timedelta(minutes=1))
    second = Message(id="m2", conversation_id="conv-1", role="assistant", content="Hello", timestamp=START + timedelta(minutes=2))
    gateway.append_message("user-1", second)
    gateway.append_message("user-1", first)
    gateway.append_message("user-1", first)

    messages = gateway.list_messages("user-1", "conv-1")
    assert [message.id for message in messages] == ["m1", "m2"]
    assert gateway.list_conversations("user-1")[0].updated_at == START + timedelta(minutes=2)

    deleted = gateway.soft_delete_conversation("user-1", "conv-1")
    assert deleted.soft_deleted is True


def test_conversation_ownership_is_enforced(gateway: DatabaseGateway) -> None:
    gateway.upsert_conversation("user-1", Conversation(id="conv-1"))
    with pytest.raises(GatewayNotFound):
        gateway.list_messages("user-2", "conv-1")
    with pytest.raises(GatewayNotFound):
        gateway.append_message("user-2", Message(conversation_id="conv-1", role="user", content="Hi"))
    with pytest.raises(GatewayNotFound):
        gateway.soft_delete_conversation("user-1", "conv-missing")


def test_leaderboard_rows_and_rank(gateway: DatabaseGateway) -> None:
    gateway.upsert_profile(UserProfile(id="a", name="A", total_xp=1200, daily_streak=2))
    gateway.upsert_profile(UserProfile(id="b", name="B", total_xp=300, daily_streak=5))
    gateway.upsert_profile(UserProfile(id="c", name="C"))
    gateway.upsert_profile(UserProfile(id="d"))
    gateway.upsert_conversation("d", Conversation(id="conv-d"))

    rows = gateway.fetch_leaderboard("xp", None)
    assert [row.user_id for row in rows] == ["a", "b", "d"]
    assert [row.server_rank for row in rows] == [1, 2, 3]
    assert rows[2].name == "Anonymous User"
    assert rows[2].total_sessions == 1

    assert [row.user_id for row in gateway.fetch_leaderboard("xp", 2)] == ["a", "b"]
    assert [row.user_id for row in gateway.fetch_leaderboard("streak", None)] == ["b", "a", "d"]

    summary = gateway.fetch_user_rank("b")
    assert (summary.rank_by_xp, summary.rank_by_goals, summary.rank_by_streak) == (2, 2, 1)
    assert summary.total_users == 3


def test_unreachable_database_is_unavailable() -> None:
    clear_listeners()

    def broken_factory():
        raise DatabaseNotConfigured("GOALIFY_DATABASE_URL must be configured")

    gateway = DatabaseGateway(broken_factory)
    with pytest.raises(GatewayUnavailable):
        gateway.ping()
    assert recent_events("gateway_failure")[0].payload["kind"] == "unavailable"


def test_ping_succeeds(gateway: DatabaseGateway) -> None:
    gateway.ping()


def test_offline_gateway_refuses_every_call() -> None:
    offline = OfflineGateway()
    with pytest.raises(GatewayUnavailable):
        offline.fetch_profile("user-1")
    with pytest.raises(GatewayUnavailable):
        offline.fetch_leaderboard("xp", 10)


def test_build_gateway_follows_settings() -> None:
    local = build_gateway(Settings(GOALIFY_PERSISTENCE_MODE="local", GOALIFY_DATABASE_URL="sqlite://"))
    assert isinstance(local, OfflineGateway)
    missing = build_gateway(Settings(GOALIFY_PERSISTENCE_MODE="hybrid", GOALIFY_DATABASE_URL=None))
    assert isinstance(missing, OfflineGateway)
    remote = build_gateway(Settings(GOALIFY_PERSISTENCE_MODE="hybrid", GOALIFY_DATABASE_URL="sqlite://"))
    assert isinstance(remote, DatabaseGateway)
