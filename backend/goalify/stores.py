"""Uniform load/save access to the cache tier and the remote tier.

The reconciler drives both tiers through ``EntityStore`` so one write path and
one read path serve every entity kind.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Type, Union

from pydantic import BaseModel, ValidationError

from .cache import CacheKey, LocalCacheStore
from .entities import Conversation, Goal, Message, UserProfile
from .gateway import RemoteGateway

logger = logging.getLogger(__name__)

Entity = Union[UserProfile, Goal, Conversation, Message]
Loaded = Union[Optional[Entity], List[Entity]]


class EntityKind(str, Enum):
    PROFILE = "profile"
    GOAL = "goal"
    CONVERSATION = "conversation"
    MESSAGE = "message"

    @property
    def model(self) -> Type[BaseModel]:
        return _MODELS[self]

    @property
    def cache_kind(self) -> str:
        return _CACHE_KINDS[self]

    @property
    def is_collection(self) -> bool:
        return self is not EntityKind.PROFILE

    def sort(self, entities: List[Any]) -> List[Any]:
        """Order a collection the way the remote store lists it."""
        if self is EntityKind.GOAL:
            return sorted(entities, key=lambda goal: (goal.created_at, goal.id), reverse=True)
        if self is EntityKind.CONVERSATION:
            return sorted(entities, key=lambda item: (item.updated_at, item.id), reverse=True)
        if self is EntityKind.MESSAGE:
            return sorted(entities, key=lambda message: (message.timestamp, message.id))
        return entities


_MODELS: Dict[EntityKind, Type[BaseModel]] = {
    EntityKind.PROFILE: UserProfile,
    EntityKind.GOAL: Goal,
    EntityKind.CONVERSATION: Conversation,
    EntityKind.MESSAGE: Message,
}

_CACHE_KINDS: Dict[EntityKind, str] = {
    EntityKind.PROFILE: "profile",
    EntityKind.GOAL: "goals",
    EntityKind.CONVERSATION: "conversations",
    EntityKind.MESSAGE: "messages",
}

# Dependency order used when re-pushing pending writes.
SYNC_ORDER = (EntityKind.PROFILE, EntityKind.CONVERSATION, EntityKind.GOAL, EntityKind.MESSAGE)


class EntityStore(Protocol):
    def load(self, kind: EntityKind, user_id: str, scope: Optional[str] = None) -> Loaded: ...

    def save(self, kind: EntityKind, user_id: str, entity: Entity, scope: Optional[str] = None) -> Entity: ...


class CacheEntityStore:
    """``EntityStore`` over the local JSON cache.

    Collections are stored as one list per key and upserted by entity id.
    """

    def __init__(self, cache: LocalCacheStore) -> None:
        self._cache = cache

    @property
    def cache(self) -> LocalCacheStore:
        return self._cache

    @staticmethod
    def _key(kind: EntityKind, user_id: str, scope: Optional[str]) -> CacheKey:
        return CacheKey(kind.cache_kind, user_id, scope if kind is EntityKind.MESSAGE else None)

    def _load_collection(self, kind: EntityKind, user_id: str, scope: Optional[str]) -> List[Any]:
        raw = self._cache.get(self._key(kind, user_id, scope))
        if not isinstance(raw, list):
            return []
        entities: List[Any] = []
        for payload in raw:
            try:
                entities.append(kind.model.model_validate(payload))
            except ValidationError:
                logger.exception("Skipping unreadable cached %s for %s", kind.value, user_id)
        return entities

    def load(self, kind: EntityKind, user_id: str, scope: Optional[str] = None) -> Loaded:
        if kind.is_collection:
            return self._load_collection(kind, user_id, scope)
        raw = self._cache.get(self._key(kind, user_id, scope))
        if raw is None:
            return None
        try:
            return UserProfile.model_validate(raw)
        except ValidationError:
            logger.exception("Cached profile for %s is unreadable; treating as missing", user_id)
            return None

    def find(self, kind: EntityKind, user_id: str, entity_id: str, scope: Optional[str] = None) -> Optional[Any]:
        if not kind.is_collection:
            return self.load(kind, user_id, scope)
        return next((item for item in self._load_collection(kind, user_id, scope) if item.id == entity_id), None)

    def save(self, kind: EntityKind, user_id: str, entity: Entity, scope: Optional[str] = None) -> Entity:
        if not kind.is_collection:
            self._cache.put(self._key(kind, user_id, scope), entity.model_dump(mode="json"))
            return entity
        items = [item for item in self._load_collection(kind, user_id, scope) if item.id != entity.id]
        items.append(entity)
        self.replace(kind, user_id, items, scope)
        return entity

    def replace(self, kind: EntityKind, user_id: str, entities: List[Any], scope: Optional[str] = None) -> None:
        ordered = kind.sort(list(entities))
        self._cache.put(self._key(kind, user_id, scope), [item.model_dump(mode="json") for item in ordered])

    def remove(self, kind: EntityKind, user_id: str, entity_id: str, scope: Optional[str] = None) -> bool:
        if not kind.is_collection:
            return self._cache.delete(self._key(kind, user_id, scope))
        items = self._load_collection(kind, user_id, scope)
        remaining = [item for item in items if item.id != entity_id]
        if len(remaining) == len(items):
            return False
        self.replace(kind, user_id, remaining, scope)
        return True


class GatewayEntityStore:
    """``EntityStore`` over a ``RemoteGateway``; failures propagate as ``GatewayError``."""

    def __init__(self, gateway: RemoteGateway) -> None:
        self._gateway = gateway

    @property
    def gateway(self) -> RemoteGateway:
        return self._gateway

    def load(self, kind: EntityKind, user_id: str, scope: Optional[str] = None) -> Loaded:
        if kind is EntityKind.PROFILE:
            return self._gateway.fetch_profile(user_id)
        if kind is EntityKind.GOAL:
            return list(self._gateway.list_goals(user_id))
        if kind is EntityKind.CONVERSATION:
            return list(self._gateway.list_conversations(user_id))
        if scope is None:
            raise ValueError("Messages are scoped by conversation id.")
        return list(self._gateway.list_messages(user_id, scope))

    def save(self, kind: EntityKind, user_id: str, entity: Entity, scope: Optional[str] = None) -> Entity:
        if kind is EntityKind.PROFILE:
            return self._gateway.upsert_profile(entity)  # type: ignore[arg-type]
        if kind is EntityKind.GOAL:
            return self._gateway.upsert_goal(user_id, entity)  # type: ignore[arg-type]
        if kind is EntityKind.CONVERSATION:
            return self._gateway.upsert_conversation(user_id, entity)  # type: ignore[arg-type]
        return self._gateway.append_message(user_id, entity)  # type: ignore[arg-type]


__all__ = [
    "CacheEntityStore",
    "Entity",
    "EntityKind",
    "EntityStore",
    "GatewayEntityStore",
    "SYNC_ORDER",
]
