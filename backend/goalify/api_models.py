"""Request and response payloads for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .constants import (
    GOAL_DESCRIPTION_MAX_LENGTH,
    GOAL_DESCRIPTION_MIN_LENGTH,
    MOTIVATION_MAX,
    MOTIVATION_MIN,
    REASONING_MAX_LENGTH,
    REASONING_MIN_LENGTH,
)
from .entities import Conversation, ConversationCategory, Difficulty, Goal, Message, Role, Tone, UserProfile
from .gamification import level_progress, xp_to_next_level


class ProfilePayload(BaseModel):
    profile: UserProfile
    level_progress: float
    xp_to_next_level: int
    synced: bool = True

    @classmethod
    def build(cls, profile: UserProfile, synced: bool = True) -> "ProfilePayload":
        return cls(
            profile=profile,
            level_progress=level_progress(profile.total_xp),
            xp_to_next_level=xp_to_next_level(profile.total_xp),
            synced=synced,
        )


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    voice_enabled: Optional[bool] = None
    voice_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    memory_enabled: Optional[bool] = None
    tone: Optional[Tone] = None

    def preference_changes(self) -> dict:
        fields = ("voice_enabled", "voice_id", "memory_enabled", "tone")
        return {field: getattr(self, field) for field in fields if getattr(self, field) is not None}


class ActivityRequest(BaseModel):
    occurred_at: Optional[datetime] = None


class GoalCreateRequest(BaseModel):
    description: str = Field(..., min_length=GOAL_DESCRIPTION_MIN_LENGTH, max_length=GOAL_DESCRIPTION_MAX_LENGTH)
    difficulty: Difficulty = "medium"
    motivation: int = Field(default=5, ge=MOTIVATION_MIN, le=MOTIVATION_MAX)
    deadline: Optional[datetime] = None
    session_id: Optional[str] = None


class GoalCompleteRequest(BaseModel):
    reasoning: str = Field(..., min_length=REASONING_MIN_LENGTH, max_length=REASONING_MAX_LENGTH)

    @model_validator(mode="after")
    def _strip_reasoning(self) -> "GoalCompleteRequest":
        if len(self.reasoning.strip()) < REASONING_MIN_LENGTH:
            raise ValueError(f"Completion reasoning must be at least {REASONING_MIN_LENGTH} characters.")
        return self


class GoalWriteResponse(BaseModel):
    goal: Goal
    synced: bool


class GoalCompletionResponse(BaseModel):
    goal: Goal
    profile: ProfilePayload
    xp_awarded: int
    synced: bool


class GoalListResponse(BaseModel):
    goals: List[Goal] = Field(default_factory=list)


class ConversationStartRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    category: ConversationCategory = "general"
    is_voice: bool = False


class ConversationStartResponse(BaseModel):
    conversation: Conversation
    message: Message
    synced: bool


class ConversationWriteResponse(BaseModel):
    conversation: Conversation
    synced: bool


class ConversationListResponse(BaseModel):
    conversations: List[Conversation] = Field(default_factory=list)


class MessageAppendRequest(BaseModel):
    id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    role: Role = "user"
    content: str = Field(..., min_length=1, max_length=4000)
    is_voice: bool = False


class MessageWriteResponse(BaseModel):
    message: Message
    synced: bool


class MessageListResponse(BaseModel):
    messages: List[Message] = Field(default_factory=list)


__all__ = [
    "ActivityRequest",
    "ConversationListResponse",
    "ConversationStartRequest",
    "ConversationStartResponse",
    "ConversationWriteResponse",
    "GoalCompleteRequest",
    "GoalCompletionResponse",
    "GoalCreateRequest",
    "GoalListResponse",
    "GoalWriteResponse",
    "MessageAppendRequest",
    "MessageListResponse",
    "MessageWriteResponse",
    "ProfilePayload",
    "ProfileUpdateRequest",
]
