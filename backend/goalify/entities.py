"""Domain entities mirrored between the remote store and the local cache."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    BASE_XP_PER_GOAL,
    DEFAULT_CONVERSATION_TITLE,
    DEFAULT_VOICE_ID,
    LOCAL_ID_PREFIX,
    MIN_GOAL_XP,
    MOTIVATION_MAX,
    MOTIVATION_MIN,
    XP_PER_LEVEL,
)

Difficulty = Literal["easy", "medium", "hard"]
Tone = Literal["formal", "casual"]
Role = Literal["user", "assistant"]
ConversationCategory = Literal[
    "career",
    "health",
    "relationships",
    "productivity",
    "personal",
    "goals",
    "general",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(value: str) -> bool:
    return value.startswith(LOCAL_ID_PREFIX)


class Preferences(BaseModel):
    voice_enabled: bool = False
    voice_id: str = DEFAULT_VOICE_ID
    memory_enabled: bool = True
    tone: Tone = "casual"


class UserProfile(BaseModel):
    id: str
    name: Optional[str] = None
    total_xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    daily_streak: int = Field(default=0, ge=0)
    highest_streak: int = Field(default=0, ge=0)
    last_activity: Optional[datetime] = None
    preferences: Preferences = Field(default_factory=Preferences)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("last_activity", "updated_at", mode="after")
    @classmethod
    def _normalise_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _derive_progress(self) -> "UserProfile":
        # Level is never trusted from input; it follows total XP.
        self.level = self.total_xp // XP_PER_LEVEL + 1
        self.highest_streak = max(self.highest_streak, self.daily_streak)
        return self


class Goal(BaseModel):
    id: str = Field(default_factory=new_local_id)
    description: str
    xp_value: int = Field(default=BASE_XP_PER_GOAL, ge=MIN_GOAL_XP)
    difficulty: Difficulty = "medium"
    motivation: int = Field(default=5, ge=MOTIVATION_MIN, le=MOTIVATION_MAX)
    completed: bool = False
    completed_at: Optional[datetime] = None
    completion_reasoning: Optional[str] = None
    deadline: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    session_id: Optional[str] = None

    @field_validator("completed_at", "deadline", "created_at", mode="after")
    @classmethod
    def _normalise_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_completion_fields(self) -> "Goal":
        has_timestamp = self.completed_at is not None
        has_reasoning = bool(self.completion_reasoning)
        if has_timestamp != self.completed or has_reasoning != self.completed:
            raise ValueError(
                "completed_at and completion_reasoning must be set exactly when the goal is completed."
            )
        return self


class Conversation(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = DEFAULT_CONVERSATION_TITLE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed: bool = False
    category: ConversationCategory = "general"
    ai_label: Optional[str] = None
    soft_deleted: bool = False

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _normalise_timestamps(cls, value: datetime) -> datetime:
        return as_utc(value)  # type: ignore[return-value]


class Message(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    is_voice: bool = False

    @field_validator("timestamp", mode="after")
    @classmethod
    def _normalise_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)  # type: ignore[return-value]


__all__ = [
    "Conversation",
    "ConversationCategory",
    "Difficulty",
    "Goal",
    "Message",
    "Preferences",
    "Role",
    "Tone",
    "UserProfile",
    "as_utc",
    "is_local_id",
    "new_local_id",
    "utcnow",
]
