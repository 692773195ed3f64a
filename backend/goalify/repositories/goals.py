"""Database-backed goal repository.

Goal inserts and completions also maintain the owner's ``user_stats`` row,
so leaderboard counters never drift from the goals table.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..constants import (
    GOAL_DESCRIPTION_MIN_LENGTH,
    MIN_GOAL_XP,
    MOTIVATION_MAX,
    MOTIVATION_MIN,
    REASONING_MIN_LENGTH,
)
from ..db.models import GoalModel
from ..entities import Goal, UserProfile, as_utc, is_local_id
from ..errors import RecordConflict
from ..gamification import calculate_level
from .profiles import ensure_stats, profiles


# Namespace for server ids minted from client-side `local-` goal ids.
LOCAL_GOAL_NAMESPACE = uuid.UUID("5b0c8f6e-2d4a-4c1e-9f3b-7a61d2e8c4b9")


def _clamp_motivation(value: int) -> int:
    return max(MOTIVATION_MIN, min(MOTIVATION_MAX, value))


def server_goal_id(user_id: str, goal_id: str) -> str:
    """Stable server id for ``goal_id``; local ids always map to the same row."""
    if not is_local_id(goal_id):
        return goal_id
    return str(uuid.uuid5(LOCAL_GOAL_NAMESPACE, f"{user_id}/{goal_id}"))


class GoalRepository:
    def list(self, session: Session, user_id: str) -> List[Goal]:
        stmt = (
            select(GoalModel)
            .where(GoalModel.user_id == user_id)
            .order_by(GoalModel.created_at.desc(), GoalModel.id)
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def get(self, session: Session, user_id: str, goal_id: str) -> Optional[Goal]:
        model = session.get(GoalModel, goal_id)
        if model is None or model.user_id != user_id:
            return None
        return self._to_domain(model)

    def upsert(self, session: Session, user_id: str, goal: Goal) -> Goal:
        description = goal.description.strip()
        if len(description) < GOAL_DESCRIPTION_MIN_LENGTH:
            raise ValueError(f"Goal description must be at least {GOAL_DESCRIPTION_MIN_LENGTH} characters.")

        if goal.xp_value < MIN_GOAL_XP:
            raise ValueError(f"Goal XP must be at least {MIN_GOAL_XP}.")

        goal_id = server_goal_id(user_id, goal.id)
        model = session.get(GoalModel, goal_id)
        stats = ensure_stats(session, user_id)
        if model is None:
            model = GoalModel(
                id=goal_id,
                user_id=user_id,
                created_at=goal.created_at,
                completed=False,
            )
            session.add(model)
            stats.total_goals_created += 1
        elif model.user_id != user_id:
            raise LookupError(f"Goal '{goal.id}' was not found.")

        was_completed = model.completed
        model.xp_value = goal.xp_value
        model.description = description
        model.difficulty = goal.difficulty
        model.motivation = _clamp_motivation(goal.motivation)
        model.deadline = goal.deadline
        model.session_id = goal.session_id
        model.completed = goal.completed
        model.completed_at = goal.completed_at
        model.completion_reasoning = goal.completion_reasoning
        if goal.completed and not was_completed:
            self._record_completion(stats, model)
        session.flush()
        return self._to_domain(model)

    def complete(
        self,
        session: Session,
        user_id: str,
        goal_id: str,
        reasoning: str,
        xp: int,
        completed_at: datetime,
    ) -> Tuple[Goal, UserProfile]:
        model = session.get(GoalModel, goal_id)
        if model is None or model.user_id != user_id:
            raise LookupError(f"Goal '{goal_id}' was not found.")
        if model.completed:
            raise RecordConflict(f"Goal '{goal_id}' is already completed.")
        trimmed = reasoning.strip()
        if len(trimmed) < REASONING_MIN_LENGTH:
            raise ValueError(f"Completion reasoning must be at least {REASONING_MIN_LENGTH} characters.")
        if xp < MIN_GOAL_XP:
            raise ValueError(f"Goal XP must be at least {MIN_GOAL_XP}.")

        profile_model = profiles.require(session, user_id)
        model.completed = True
        model.completed_at = completed_at
        model.completion_reasoning = trimmed
        model.xp_value = xp
        profile_model.total_xp += xp
        profile_model.level = calculate_level(profile_model.total_xp)
        self._record_completion(ensure_stats(session, user_id), model)
        session.flush()
        return self._to_domain(model), profiles.to_domain(session, profile_model)

    @staticmethod
    def _record_completion(stats, model: GoalModel) -> None:  # type: ignore[no-untyped-def]
        stats.total_goals_completed += 1
        stats.total_xp_earned += model.xp_value
        stats.last_goal_completed_at = model.completed_at

    @staticmethod
    def _to_domain(model: GoalModel) -> Goal:
        return Goal(
            id=model.id,
            description=model.description,
            xp_value=model.xp_value,
            difficulty=model.difficulty,  # type: ignore[arg-type]
            motivation=model.motivation,
            completed=model.completed,
            completed_at=as_utc(model.completed_at),
            completion_reasoning=model.completion_reasoning,
            deadline=as_utc(model.deadline),
            created_at=as_utc(model.created_at),
            session_id=model.session_id,
        )


goals = GoalRepository()

__all__ = ["GoalRepository", "goals", "server_goal_id"]
