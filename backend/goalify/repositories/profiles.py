"""Database-backed user profile and stats repository."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ..db.models import UserProfileModel, UserStatsModel
from ..entities import Preferences, UserProfile, as_utc
from ..gamification import calculate_level


def _normalize_user_id(user_id: str) -> str:
    normalized = user_id.strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


def ensure_stats(session: Session, user_id: str) -> UserStatsModel:
    """Return the counters row for ``user_id``, creating it on first use."""
    stats = session.get(UserStatsModel, user_id)
    if stats is None:
        stats = UserStatsModel(
            user_id=user_id,
            total_goals_created=0,
            total_goals_completed=0,
            total_xp_earned=0,
            highest_streak=0,
            total_sessions=0,
        )
        session.add(stats)
    return stats


class ProfileRepository:
    def get(self, session: Session, user_id: str) -> Optional[UserProfile]:
        model = session.get(UserProfileModel, _normalize_user_id(user_id))
        if model is None:
            return None
        return self.to_domain(session, model)

    def require(self, session: Session, user_id: str) -> UserProfileModel:
        model = session.get(UserProfileModel, _normalize_user_id(user_id))
        if model is None:
            raise LookupError(f"Profile for '{user_id}' was not found.")
        return model

    def upsert(self, session: Session, profile: UserProfile) -> UserProfile:
        user_id = _normalize_user_id(profile.id)
        model = session.get(UserProfileModel, user_id)
        if model is None:
            model = UserProfileModel(id=user_id)
            session.add(model)

        model.name = profile.name
        model.total_xp = profile.total_xp
        model.level = calculate_level(profile.total_xp)
        model.daily_streak = profile.daily_streak
        model.last_activity = profile.last_activity
        model.voice_enabled = profile.preferences.voice_enabled
        model.voice_id = profile.preferences.voice_id
        model.memory_enabled = profile.preferences.memory_enabled
        model.tone = profile.preferences.tone

        stats = ensure_stats(session, user_id)
        stats.highest_streak = max(stats.highest_streak or 0, profile.highest_streak, profile.daily_streak)
        session.flush()
        return self.to_domain(session, model)

    def to_domain(self, session: Session, model: UserProfileModel) -> UserProfile:
        stats = session.get(UserStatsModel, model.id)
        return UserProfile(
            id=model.id,
            name=model.name,
            total_xp=model.total_xp,
            daily_streak=model.daily_streak,
            highest_streak=stats.highest_streak if stats else model.daily_streak,
            last_activity=as_utc(model.last_activity),
            preferences=Preferences(
                voice_enabled=model.voice_enabled,
                voice_id=model.voice_id,
                memory_enabled=model.memory_enabled,
                tone=model.tone,  # type: ignore[arg-type]
            ),
            updated_at=as_utc(model.updated_at),
        )


profiles = ProfileRepository()

__all__ = ["ProfileRepository", "ensure_stats", "profiles"]
