"""Remote store access with a uniform failure taxonomy.

Every gateway call either returns domain entities or raises a subclass of
``GatewayError``. Callers never see driver exceptions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Tuple, TypeVar

from pydantic import ValidationError
from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import Settings
from .db.session import DatabaseNotConfigured, SessionManager, session_scope
from .entities import Conversation, Goal, Message, UserProfile
from .errors import (
    GatewayConflict,
    GatewayError,
    GatewayInvalidInput,
    GatewayNotFound,
    GatewayUnavailable,
    GatewayUnknown,
    RecordConflict,
)
from .leaderboard import LeaderboardRow, SortDimension, UserRankSummary, rank_summary
from .repositories import conversations, goals, leaderboard, profiles
from .telemetry import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteGateway(Protocol):
    def fetch_profile(self, user_id: str) -> UserProfile: ...

    def upsert_profile(self, profile: UserProfile) -> UserProfile: ...

    def list_goals(self, user_id: str) -> List[Goal]: ...

    def upsert_goal(self, user_id: str, goal: Goal) -> Goal: ...

    def complete_goal(
        self,
        user_id: str,
        goal_id: str,
        reasoning: str,
        xp: int,
        completed_at: datetime,
    ) -> Tuple[Goal, UserProfile]: ...

    def list_conversations(self, user_id: str) -> List[Conversation]: ...

    def upsert_conversation(self, user_id: str, conversation: Conversation) -> Conversation: ...

    def soft_delete_conversation(self, user_id: str, conversation_id: str) -> Conversation: ...

    def append_message(self, user_id: str, message: Message) -> Message: ...

    def list_messages(self, user_id: str, conversation_id: str) -> List[Message]: ...

    def fetch_leaderboard(self, sort_by: SortDimension, limit: Optional[int]) -> List[LeaderboardRow]: ...

    def fetch_user_rank(self, user_id: str) -> UserRankSummary: ...

    def ping(self) -> None: ...


_UNAVAILABLE = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    DatabaseNotConfigured,
    ConnectionError,
    TimeoutError,
)
_INVALID = (sa_exc.DataError, ValidationError, ValueError)
_NOT_FOUND = (LookupError, sa_exc.NoResultFound)
_CONFLICT = (sa_exc.IntegrityError, RecordConflict)


def classify_exception(operation: str, exc: BaseException) -> GatewayError:
    """Map a driver or repository exception onto the gateway taxonomy."""
    if isinstance(exc, GatewayError):
        return exc
    if isinstance(exc, _UNAVAILABLE):
        return GatewayUnavailable(operation, str(exc))
    if isinstance(exc, _CONFLICT):
        return GatewayConflict(operation, str(exc))
    # ValidationError subclasses ValueError; both are caller mistakes.
    if isinstance(exc, _INVALID):
        return GatewayInvalidInput(operation, str(exc))
    if isinstance(exc, _NOT_FOUND):
        return GatewayNotFound(operation, str(exc))
    return GatewayUnknown(operation, str(exc))


class DatabaseGateway:
    """``RemoteGateway`` backed by the SQLAlchemy repositories."""

    def __init__(self, session_factory: Optional[SessionManager] = None) -> None:
        self._session_factory = session_factory

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        try:
            with session_scope(factory=self._session_factory) as session:
                return work(session)
        except Exception as exc:  # noqa: BLE001
            error = classify_exception(operation, exc)
            if isinstance(error, GatewayNotFound):
                logger.debug("Gateway %s found nothing: %s", operation, exc)
            else:
                logger.warning("Gateway %s failed (%s): %s", operation, error.kind, exc)
                emit_event("gateway_failure", operation=operation, kind=error.kind)
            if error is exc:
                raise
            raise error from exc

    def fetch_profile(self, user_id: str) -> UserProfile:
        def work(session: Session) -> UserProfile:
            profile = profiles.get(session, user_id)
            if profile is None:
                raise LookupError(f"Profile for '{user_id}' was not found.")
            return profile

        return self._run("fetch_profile", work)

    def upsert_profile(self, profile: UserProfile) -> UserProfile:
        return self._run("upsert_profile", lambda session: profiles.upsert(session, profile))

    def list_goals(self, user_id: str) -> List[Goal]:
        return self._run("list_goals", lambda session: goals.list(session, user_id))

    def upsert_goal(self, user_id: str, goal: Goal) -> Goal:
        return self._run("upsert_goal", lambda session: goals.upsert(session, user_id, goal))

    def complete_goal(
        self,
        user_id: str,
        goal_id: str,
        reasoning: str,
        xp: int,
        completed_at: datetime,
    ) -> Tuple[Goal, UserProfile]:
        return self._run(
            "complete_goal",
            lambda session: goals.complete(session, user_id, goal_id, reasoning, xp, completed_at),
        )

    def list_conversations(self, user_id: str) -> List[Conversation]:
        return self._run("list_conversations", lambda session: conversations.list(session, user_id))

    def upsert_conversation(self, user_id: str, conversation: Conversation) -> Conversation:
        return self._run(
            "upsert_conversation",
            lambda session: conversations.upsert(session, user_id, conversation),
        )

    def soft_delete_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        return self._run(
            "soft_delete_conversation",
            lambda session: conversations.soft_delete(session, user_id, conversation_id),
        )

    def append_message(self, user_id: str, message: Message) -> Message:
        return self._run("append_message", lambda session: conversations.append_message(session, user_id, message))

    def list_messages(self, user_id: str, conversation_id: str) -> List[Message]:
        return self._run(
            "list_messages",
            lambda session: conversations.list_messages(session, user_id, conversation_id),
        )

    def fetch_leaderboard(self, sort_by: SortDimension = "xp", limit: Optional[int] = None) -> List[LeaderboardRow]:
        return self._run("fetch_leaderboard", lambda session: leaderboard.rows(session, sort_by, limit))

    def fetch_user_rank(self, user_id: str) -> UserRankSummary:
        return self._run(
            "fetch_user_rank",
            lambda session: rank_summary(leaderboard.rows(session), user_id),
        )

    def ping(self) -> None:
        self._run("ping", lambda session: session.execute(text("SELECT 1")).scalar_one())


class OfflineGateway:
    """Gateway used when remote persistence is disabled; every call is unavailable."""

    def __init__(self, reason: str = "remote persistence is disabled") -> None:
        self._reason = reason

    def _refuse(self, operation: str) -> GatewayUnavailable:
        return GatewayUnavailable(operation, self._reason)

    def fetch_profile(self, user_id: str) -> UserProfile:
        raise self._refuse("fetch_profile")

    def upsert_profile(self, profile: UserProfile) -> UserProfile:
        raise self._refuse("upsert_profile")

    def list_goals(self, user_id: str) -> List[Goal]:
        raise self._refuse("list_goals")

    def upsert_goal(self, user_id: str, goal: Goal) -> Goal:
        raise self._refuse("upsert_goal")

    def complete_goal(
        self,
        user_id: str,
        goal_id: str,
        reasoning: str,
        xp: int,
        completed_at: datetime,
    ) -> Tuple[Goal, UserProfile]:
        raise self._refuse("complete_goal")

    def list_conversations(self, user_id: str) -> List[Conversation]:
        raise self._refuse("list_conversations")

    def upsert_conversation(self, user_id: str, conversation: Conversation) -> Conversation:
        raise self._refuse("upsert_conversation")

    def soft_delete_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        raise self._refuse("soft_delete_conversation")

    def append_message(self, user_id: str, message: Message) -> Message:
        raise self._refuse("append_message")

    def list_messages(self, user_id: str, conversation_id: str) -> List[Message]:
        raise self._refuse("list_messages")

    def fetch_leaderboard(self, sort_by: SortDimension = "xp", limit: Optional[int] = None) -> List[LeaderboardRow]:
        raise self._refuse("fetch_leaderboard")

    def fetch_user_rank(self, user_id: str) -> UserRankSummary:
        raise self._refuse("fetch_user_rank")

    def ping(self) -> None:
        raise self._refuse("ping")


def build_gateway(settings: Settings) -> RemoteGateway:
    if settings.persistence_mode == "local":
        return OfflineGateway("persistence mode is local")
    if not settings.database_url:
        return OfflineGateway("GOALIFY_DATABASE_URL is not configured")
    return DatabaseGateway()


__all__ = [
    "DatabaseGateway",
    "OfflineGateway",
    "RemoteGateway",
    "build_gateway",
    "classify_exception",
]
