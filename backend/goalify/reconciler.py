"""Cache-first reads and writes over an unreliable remote store.

Writes land in the local cache before the remote is attempted, so a remote
failure never loses data: the entity is recorded in a per-user pending
manifest and re-pushed lazily the next time that user is touched. Reads try
the remote first and merge the result into the cache, falling back to the
cache on any gateway failure.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Generic, List, Optional, Set, Tuple, TypeVar

from pydantic import BaseModel, ValidationError

from .cache import CacheKey, LocalCacheStore
from .constants import (
    CONVERSATION_TITLE_WORDS,
    DEFAULT_CONVERSATION_TITLE,
    GOAL_DESCRIPTION_MAX_LENGTH,
    GOAL_DESCRIPTION_MIN_LENGTH,
    REASONING_MAX_LENGTH,
)
from .entities import (
    Conversation,
    ConversationCategory,
    Difficulty,
    Goal,
    Message,
    Preferences,
    Role,
    UserProfile,
    as_utc,
    is_local_id,
    utcnow,
)
from .errors import GatewayConflict, GatewayError, GatewayInvalidInput, GatewayNotFound, GatewayUnavailable
from .gamification import (
    GoalStats,
    award_xp,
    complete_goal as apply_completion,
    default_goal_xp,
    summarize_goals,
    update_daily_streak,
)
from .gateway import RemoteGateway
from .stores import SYNC_ORDER, CacheEntityStore, Entity, EntityKind, GatewayEntityStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class WriteResult(Generic[T]):
    entity: T
    synced: bool


@dataclass(frozen=True)
class GoalCompletionResult:
    goal: Goal
    profile: UserProfile
    xp_awarded: int
    synced: bool


class PendingEntry(BaseModel):
    kind: EntityKind
    id: str
    scope: Optional[str] = None
    # Set for a profile invented while the remote could not say whether one exists.
    provisional: bool = False

    def same_target(self, other: "PendingEntry") -> bool:
        return (self.kind, self.id, self.scope) == (other.kind, other.id, other.scope)


class ResyncReport(BaseModel):
    user_id: str
    pushed: int = 0
    dropped: int = 0
    remaining: int = 0
    interrupted: bool = False


def derive_title(first_message: str) -> str:
    """First words of the opening message, with an ellipsis when truncated."""
    words = first_message.split()
    if not words:
        return DEFAULT_CONVERSATION_TITLE
    title = " ".join(words[:CONVERSATION_TITLE_WORDS])
    if len(words) > CONVERSATION_TITLE_WORDS:
        title += "..."
    return title


def _normalize_user_id(user_id: str) -> str:
    normalized = user_id.strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


class Reconciler:
    """Single entry point for every user-scoped read and write."""

    def __init__(
        self,
        cache: LocalCacheStore,
        gateway: RemoteGateway,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._local = CacheEntityStore(cache)
        self._remote = GatewayEntityStore(gateway)
        self._gateway = gateway
        self._clock = clock
        self._lock = threading.RLock()
        self._draining: Set[str] = set()

    @property
    def gateway(self) -> RemoteGateway:
        return self._gateway

    # ------------------------------------------------------------------
    # Pending manifest

    def _pending_key(self, user_id: str) -> CacheKey:
        return CacheKey("pending", user_id)

    def pending(self, user_id: str) -> List[PendingEntry]:
        raw = self._local.cache.get(self._pending_key(user_id))
        if not isinstance(raw, list):
            return []
        entries: List[PendingEntry] = []
        for payload in raw:
            try:
                entries.append(PendingEntry.model_validate(payload))
            except ValidationError:
                logger.warning("Dropping unreadable pending entry for %s: %r", user_id, payload)
        return entries

    def _write_pending(self, user_id: str, entries: List[PendingEntry]) -> None:
        key = self._pending_key(user_id)
        if not entries:
            self._local.cache.delete(key)
            return
        self._local.cache.put(key, [entry.model_dump(mode="json") for entry in entries])

    def _mark_pending(
        self,
        user_id: str,
        kind: EntityKind,
        entity_id: str,
        scope: Optional[str] = None,
        *,
        provisional: bool = False,
    ) -> None:
        entry = PendingEntry(kind=kind, id=entity_id, scope=scope, provisional=provisional)
        with self._lock:
            entries = self.pending(user_id)
            if any(existing.same_target(entry) for existing in entries):
                return
            entries.append(entry)
            self._write_pending(user_id, entries)

    def _clear_pending(self, user_id: str, kind: EntityKind, entity_id: str, scope: Optional[str] = None) -> None:
        target = PendingEntry(kind=kind, id=entity_id, scope=scope)
        with self._lock:
            entries = self.pending(user_id)
            remaining = [entry for entry in entries if not entry.same_target(target)]
            if len(remaining) != len(entries):
                self._write_pending(user_id, remaining)

    def _pending_ids(self, user_id: str, kind: EntityKind, scope: Optional[str]) -> Set[str]:
        return {entry.id for entry in self.pending(user_id) if entry.kind is kind and entry.scope == scope}

    def _has_provisional_profile(self, user_id: str) -> bool:
        return any(entry.kind is EntityKind.PROFILE and entry.provisional for entry in self.pending(user_id))

    def has_pending(self, user_id: str, kind: Optional[EntityKind] = None) -> bool:
        return any(kind is None or entry.kind is kind for entry in self.pending(_normalize_user_id(user_id)))

    # ------------------------------------------------------------------
    # Lazy resync

    def _maybe_resync(self, user_id: str) -> None:
        if user_id in self._draining or not self.pending(user_id):
            return
        self.resync(user_id)

    def resync(self, user_id: str) -> ResyncReport:
        """Re-push every pending write for ``user_id`` in dependency order."""
        user_id = _normalize_user_id(user_id)
        report = ResyncReport(user_id=user_id)
        with self._lock:
            if user_id in self._draining:
                report.remaining = len(self.pending(user_id))
                return report
            self._draining.add(user_id)
        try:
            entries = self.pending(user_id)
            ordered = sorted(entries, key=lambda entry: SYNC_ORDER.index(entry.kind))
            for entry in ordered:
                outcome = self._push_pending(user_id, entry)
                if outcome == "pushed":
                    report.pushed += 1
                elif outcome == "dropped":
                    report.dropped += 1
                elif outcome == "unavailable":
                    report.interrupted = True
                    break
            report.remaining = len(self.pending(user_id))
        finally:
            with self._lock:
                self._draining.discard(user_id)
        emit_event("resync_drain", **report.model_dump())
        if report.pushed or report.dropped:
            logger.info(
                "Resynced %s: %d pushed, %d dropped, %d remaining",
                user_id,
                report.pushed,
                report.dropped,
                report.remaining,
            )
        return report

    def _push_pending(self, user_id: str, entry: PendingEntry) -> str:
        entity = self._local.find(entry.kind, user_id, entry.id, entry.scope)
        if entity is None:
            self._clear_pending(user_id, entry.kind, entry.id, entry.scope)
            return "dropped"
        try:
            if entry.provisional:
                entity = self._fold_provisional_profile(user_id, entity)  # type: ignore[arg-type]
            stored = self._remote.save(entry.kind, user_id, entity, entry.scope)
        except GatewayUnavailable:
            return "unavailable"
        except GatewayConflict:
            canonical = self._refetch(entry.kind, user_id, entity.id, entry.scope)
            if canonical is None:
                return "kept"
            self._store_remote_copy(entry.kind, user_id, entity, canonical, entry.scope)
            return "pushed"
        except GatewayInvalidInput as exc:
            logger.warning("Dropping pending %s %s for %s: %s", entry.kind.value, entry.id, user_id, exc)
            self._clear_pending(user_id, entry.kind, entry.id, entry.scope)
            return "dropped"
        except GatewayError as exc:
            logger.warning("Pending %s %s for %s not pushed: %s", entry.kind.value, entry.id, user_id, exc)
            return "kept"
        self._store_remote_copy(entry.kind, user_id, entity, stored, entry.scope)
        return "pushed"

    def _fold_provisional_profile(self, user_id: str, local: UserProfile) -> UserProfile:
        """Replay offline progress onto the stored remote profile, if there is one.

        A provisional profile starts from zero, so its XP is exactly what was
        earned offline. Everything else about the remote profile stands.
        """
        try:
            remote: UserProfile = self._remote.load(EntityKind.PROFILE, user_id)  # type: ignore[assignment]
        except GatewayNotFound:
            return local
        merged = award_xp(remote, local.total_xp) if local.total_xp else remote
        if local.last_activity is not None and (
            merged.last_activity is None or local.last_activity > merged.last_activity
        ):
            merged = update_daily_streak(merged, local.last_activity)
        logger.info("Folded provisional profile for %s into the stored remote profile", user_id)
        return merged

    # ------------------------------------------------------------------
    # Shared read and write paths

    def _refetch(self, kind: EntityKind, user_id: str, entity_id: str, scope: Optional[str]) -> Optional[Entity]:
        try:
            loaded = self._remote.load(kind, user_id, scope)
        except GatewayError as exc:
            logger.warning("Could not refetch %s %s after conflict: %s", kind.value, entity_id, exc)
            return None
        if not kind.is_collection:
            return loaded  # type: ignore[return-value]
        return next((item for item in loaded if item.id == entity_id), None)  # type: ignore[union-attr]

    def _store_remote_copy(
        self,
        kind: EntityKind,
        user_id: str,
        local: Entity,
        remote: Entity,
        scope: Optional[str],
    ) -> None:
        if kind.is_collection and remote.id != local.id:
            self._local.remove(kind, user_id, local.id, scope)
        self._local.save(kind, user_id, remote, scope)
        self._clear_pending(user_id, kind, local.id, scope)

    def _write(
        self,
        kind: EntityKind,
        user_id: str,
        entity: Entity,
        scope: Optional[str] = None,
        *,
        push: Optional[Callable[[], Entity]] = None,
    ) -> WriteResult:
        self._maybe_resync(user_id)
        self._local.save(kind, user_id, entity, scope)
        if kind is EntityKind.PROFILE and self._has_provisional_profile(user_id):
            # Only a drain may push it, once it has been folded into any stored profile.
            emit_event("reconcile_write", kind=kind.value, user_id=user_id, outcome="pending", reason="provisional")
            return WriteResult(entity, False)
        try:
            stored = push() if push is not None else self._remote.save(kind, user_id, entity, scope)
        except GatewayConflict:
            canonical = self._refetch(kind, user_id, entity.id, scope)
            if canonical is not None:
                self._store_remote_copy(kind, user_id, entity, canonical, scope)
                emit_event("reconcile_write", kind=kind.value, user_id=user_id, outcome="conflict_resolved")
                return WriteResult(canonical, True)
            self._mark_pending(user_id, kind, entity.id, scope)
            emit_event("reconcile_write", kind=kind.value, user_id=user_id, outcome="pending")
            return WriteResult(entity, False)
        except GatewayError as exc:
            logger.warning("Keeping local %s %s for %s until resync: %s", kind.value, entity.id, user_id, exc)
            self._mark_pending(user_id, kind, entity.id, scope)
            emit_event("reconcile_write", kind=kind.value, user_id=user_id, outcome="pending", reason=exc.kind)
            return WriteResult(entity, False)
        self._store_remote_copy(kind, user_id, entity, stored, scope)
        emit_event("reconcile_write", kind=kind.value, user_id=user_id, outcome="synced")
        return WriteResult(stored, True)

    def _read_collection(self, kind: EntityKind, user_id: str, scope: Optional[str] = None) -> List:
        self._maybe_resync(user_id)
        cached: List = self._local.load(kind, user_id, scope)  # type: ignore[assignment]
        try:
            remote: List = self._remote.load(kind, user_id, scope)  # type: ignore[assignment]
        except GatewayError as exc:
            emit_event("reconcile_read", kind=kind.value, user_id=user_id, source="cache", reason=exc.kind)
            return cached
        # Remote copies win for shared ids unless the local copy still awaits a push.
        pending_ids = self._pending_ids(user_id, kind, scope)
        merged: Dict[str, Entity] = {item.id: item for item in remote}
        for item in cached:
            if item.id not in merged or item.id in pending_ids:
                merged[item.id] = item
        result = kind.sort(list(merged.values()))
        self._local.replace(kind, user_id, result, scope)
        emit_event("reconcile_read", kind=kind.value, user_id=user_id, source="remote", size=len(result))
        return result

    # ------------------------------------------------------------------
    # Profiles

    def _read_profile(self, user_id: str) -> Tuple[Optional[UserProfile], Optional[str]]:
        """Return the profile plus the failure kind when the remote could not answer.

        The failure kind is ``None`` both on success and on a confirmed
        "no profile yet".
        """
        self._maybe_resync(user_id)
        cached: Optional[UserProfile] = self._local.load(EntityKind.PROFILE, user_id)  # type: ignore[assignment]
        try:
            remote: UserProfile = self._remote.load(EntityKind.PROFILE, user_id)  # type: ignore[assignment]
        except GatewayNotFound:
            emit_event("reconcile_read", kind="profile", user_id=user_id, source="cache", reason="not_found")
            return cached, None
        except GatewayError as exc:
            emit_event("reconcile_read", kind="profile", user_id=user_id, source="cache", reason=exc.kind)
            return cached, exc.kind
        if user_id in self._pending_ids(user_id, EntityKind.PROFILE, None) and cached is not None:
            return cached, None
        self._local.save(EntityKind.PROFILE, user_id, remote)
        emit_event("reconcile_read", kind="profile", user_id=user_id, source="remote")
        return remote, None

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        profile, _ = self._read_profile(_normalize_user_id(user_id))
        return profile

    def ensure_profile(self, user_id: str, name: Optional[str] = None) -> UserProfile:
        user_id = _normalize_user_id(user_id)
        existing, failure = self._read_profile(user_id)
        if existing is not None:
            return existing
        created = UserProfile(id=user_id, name=name.strip() if name and name.strip() else None)
        if failure is None:
            return self._write(EntityKind.PROFILE, user_id, created).entity
        # The remote may already hold a profile; the next drain folds this one into it.
        self._local.save(EntityKind.PROFILE, user_id, created)
        self._mark_pending(user_id, EntityKind.PROFILE, user_id, provisional=True)
        emit_event("reconcile_write", kind="profile", user_id=user_id, outcome="provisional", reason=failure)
        return created

    def update_profile(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        preferences: Optional[Preferences] = None,
    ) -> WriteResult:
        profile = self.ensure_profile(user_id)
        changes: Dict[str, object] = {"updated_at": self._clock()}
        if name is not None:
            changes["name"] = name.strip() or None
        if preferences is not None:
            changes["preferences"] = preferences
        updated = profile.model_copy(update=changes, deep=True)
        return self._write(EntityKind.PROFILE, profile.id, updated)

    def update_preferences(self, user_id: str, **changes: object) -> WriteResult:
        profile = self.ensure_profile(user_id)
        preferences = Preferences.model_validate({**profile.preferences.model_dump(), **changes})
        return self.update_profile(profile.id, preferences=preferences)

    def record_activity(self, user_id: str, now: Optional[datetime] = None) -> WriteResult:
        profile = self.ensure_profile(user_id)
        updated = update_daily_streak(profile, as_utc(now) or self._clock())
        return self._write(EntityKind.PROFILE, profile.id, updated)

    # ------------------------------------------------------------------
    # Goals

    def list_goals(
        self,
        user_id: str,
        *,
        session_id: Optional[str] = None,
        include_completed: bool = True,
    ) -> List[Goal]:
        goals: List[Goal] = self._read_collection(EntityKind.GOAL, _normalize_user_id(user_id))
        if session_id is not None:
            goals = [goal for goal in goals if goal.session_id == session_id]
        if not include_completed:
            goals = [goal for goal in goals if not goal.completed]
        return goals

    def save_goal(self, user_id: str, goal: Goal) -> WriteResult:
        return self._write(EntityKind.GOAL, _normalize_user_id(user_id), goal)

    def create_goal(
        self,
        user_id: str,
        description: str,
        *,
        difficulty: Difficulty = "medium",
        motivation: int = 5,
        deadline: Optional[datetime] = None,
        session_id: Optional[str] = None,
        xp_value: Optional[int] = None,
    ) -> WriteResult:
        trimmed = description.strip()
        if not GOAL_DESCRIPTION_MIN_LENGTH <= len(trimmed) <= GOAL_DESCRIPTION_MAX_LENGTH:
            raise ValueError(
                f"Goal description must be between {GOAL_DESCRIPTION_MIN_LENGTH} and "
                f"{GOAL_DESCRIPTION_MAX_LENGTH} characters."
            )
        now = self._clock()
        if deadline is not None and as_utc(deadline) <= now:
            raise ValueError("Goal deadline must be in the future.")
        goal = Goal(
            description=trimmed,
            difficulty=difficulty,
            motivation=motivation,
            deadline=deadline,
            session_id=session_id,
            xp_value=xp_value if xp_value is not None else default_goal_xp(difficulty),
            created_at=now,
        )
        return self.save_goal(user_id, goal)

    def complete_goal(
        self,
        user_id: str,
        goal_id: str,
        reasoning: str,
        *,
        now: Optional[datetime] = None,
    ) -> GoalCompletionResult:
        user_id = _normalize_user_id(user_id)
        if len(reasoning.strip()) > REASONING_MAX_LENGTH:
            raise ValueError(f"Completion reasoning must be at most {REASONING_MAX_LENGTH} characters.")
        profile = self.ensure_profile(user_id)
        goal = self._local.find(EntityKind.GOAL, user_id, goal_id)
        if goal is None:
            goal = next((item for item in self.list_goals(user_id) if item.id == goal_id), None)
        if goal is None:
            raise LookupError(f"Goal '{goal_id}' was not found.")

        moment = as_utc(now) or self._clock()
        completed, awarded_profile, xp = apply_completion(goal, profile, reasoning, now=moment)
        if xp == 0:
            synced = goal.id not in self._pending_ids(user_id, EntityKind.GOAL, None)
            return GoalCompletionResult(goal=goal, profile=profile, xp_awarded=0, synced=synced)

        if is_local_id(goal.id):
            # The remote has never seen this goal; push it already completed.
            goal_result = self._write(EntityKind.GOAL, user_id, completed)
            profile_result = self._write(EntityKind.PROFILE, user_id, awarded_profile)
            return GoalCompletionResult(
                goal=goal_result.entity,
                profile=profile_result.entity,
                xp_awarded=xp,
                synced=goal_result.synced and profile_result.synced,
            )

        self._local.save(EntityKind.GOAL, user_id, completed)
        self._local.save(EntityKind.PROFILE, user_id, awarded_profile)
        if self._has_provisional_profile(user_id):
            # The award travels with the provisional profile when it is folded.
            return self._completion_pending(user_id, completed, awarded_profile, xp)
        try:
            remote_goal, remote_profile = self._gateway.complete_goal(
                user_id,
                goal.id,
                completed.completion_reasoning or "",
                xp,
                moment,
            )
        except GatewayConflict:
            remote_goal = self._refetch(EntityKind.GOAL, user_id, goal.id, None)
            remote_profile = self._refetch(EntityKind.PROFILE, user_id, user_id, None)
            if remote_goal is None or remote_profile is None:
                return self._completion_pending(user_id, completed, awarded_profile, xp)
            # Completed elsewhere first; the remote award stands and nothing is added here.
            awarded = 0
            emit_event("reconcile_write", kind="goal_completion", user_id=user_id, outcome="conflict_resolved")
        except GatewayError as exc:
            logger.warning("Goal completion for %s kept locally until resync: %s", user_id, exc)
            return self._completion_pending(user_id, completed, awarded_profile, xp)
        else:
            emit_event("reconcile_write", kind="goal_completion", user_id=user_id, outcome="synced", xp=xp)
            awarded = xp

        self._store_remote_copy(EntityKind.GOAL, user_id, completed, remote_goal, None)
        self._store_remote_copy(EntityKind.PROFILE, user_id, awarded_profile, remote_profile, None)
        return GoalCompletionResult(
            goal=remote_goal,  # type: ignore[arg-type]
            profile=remote_profile,  # type: ignore[arg-type]
            xp_awarded=awarded,
            synced=True,
        )

    def _completion_pending(
        self,
        user_id: str,
        goal: Goal,
        profile: UserProfile,
        xp: int,
    ) -> GoalCompletionResult:
        self._mark_pending(user_id, EntityKind.GOAL, goal.id)
        self._mark_pending(user_id, EntityKind.PROFILE, user_id)
        emit_event("reconcile_write", kind="goal_completion", user_id=user_id, outcome="pending", xp=xp)
        return GoalCompletionResult(goal=goal, profile=profile, xp_awarded=xp, synced=False)

    def goal_stats(self, user_id: str, now: Optional[datetime] = None) -> GoalStats:
        return summarize_goals(self.list_goals(user_id), as_utc(now) or self._clock())

    # ------------------------------------------------------------------
    # Conversations and messages

    def list_conversations(self, user_id: str, *, include_deleted: bool = False) -> List[Conversation]:
        conversations: List[Conversation] = self._read_collection(
            EntityKind.CONVERSATION, _normalize_user_id(user_id)
        )
        if include_deleted:
            return conversations
        return [conversation for conversation in conversations if not conversation.soft_deleted]

    def save_conversation(self, user_id: str, conversation: Conversation) -> WriteResult:
        return self._write(EntityKind.CONVERSATION, _normalize_user_id(user_id), conversation)

    def start_conversation(
        self,
        user_id: str,
        first_message: str,
        *,
        category: ConversationCategory = "general",
        is_voice: bool = False,
    ) -> Tuple[WriteResult, WriteResult]:
        """Create a conversation titled from ``first_message`` and append it as the first user turn.

        Starting a session counts as activity for the daily streak.
        """
        user_id = _normalize_user_id(user_id)
        if not first_message.strip():
            raise ValueError("The first message cannot be empty.")
        now = self._clock()
        conversation = Conversation(
            title=derive_title(first_message),
            category=category,
            created_at=now,
            updated_at=now,
        )
        conversation_result = self.save_conversation(user_id, conversation)
        message_result = self.append_message(
            user_id,
            conversation.id,
            "user",
            first_message,
            is_voice=is_voice,
            timestamp=now,
        )
        self.record_activity(user_id, now)
        return conversation_result, message_result

    def _require_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        conversation = self._local.find(EntityKind.CONVERSATION, user_id, conversation_id)
        if conversation is None:
            conversation = next(
                (item for item in self.list_conversations(user_id, include_deleted=True) if item.id == conversation_id),
                None,
            )
        if conversation is None:
            raise LookupError(f"Conversation '{conversation_id}' was not found.")
        return conversation

    def soft_delete_conversation(self, user_id: str, conversation_id: str) -> WriteResult:
        user_id = _normalize_user_id(user_id)
        conversation = self._require_conversation(user_id, conversation_id)
        deleted = conversation.model_copy(update={"soft_deleted": True}, deep=True)
        return self._write(
            EntityKind.CONVERSATION,
            user_id,
            deleted,
            push=lambda: self._gateway.soft_delete_conversation(user_id, conversation_id),
        )

    def list_messages(self, user_id: str, conversation_id: str) -> List[Message]:
        return self._read_collection(EntityKind.MESSAGE, _normalize_user_id(user_id), conversation_id)

    def append_message(
        self,
        user_id: str,
        conversation_id: str,
        role: Role,
        content: str,
        *,
        is_voice: bool = False,
        message_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> WriteResult:
        user_id = _normalize_user_id(user_id)
        if not content.strip():
            raise ValueError("Message content cannot be empty.")
        conversation = self._require_conversation(user_id, conversation_id)
        existing = self._local.find(EntityKind.MESSAGE, user_id, message_id, conversation_id) if message_id else None
        if existing is not None:
            pending_ids = self._pending_ids(user_id, EntityKind.MESSAGE, conversation_id)
            return WriteResult(existing, existing.id not in pending_ids)

        fields: Dict[str, object] = {
            "conversation_id": conversation_id,
            "role": role,
            "content": content,
            "is_voice": is_voice,
            "timestamp": as_utc(timestamp) or self._clock(),
        }
        if message_id:
            fields["id"] = message_id
        message = Message(**fields)  # type: ignore[arg-type]
        if message.timestamp > conversation.updated_at:
            # Mirrors the remote bump so cached listings reorder immediately.
            self._local.save(
                EntityKind.CONVERSATION,
                user_id,
                conversation.model_copy(update={"updated_at": message.timestamp}, deep=True),
            )
        return self._write(EntityKind.MESSAGE, user_id, message, conversation_id)


__all__ = [
    "GoalCompletionResult",
    "PendingEntry",
    "Reconciler",
    "ResyncReport",
    "WriteResult",
    "derive_title",
]
