"""XP, level and streak rules applied to user profiles and goals.

Every function here is pure: it receives entities and returns new copies.
Persisting the results is the reconciler's job.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, Field

from .constants import (
    BASE_XP_PER_GOAL,
    DIFFICULTY_MULTIPLIERS,
    EARLY_THRESHOLD,
    LATE_THRESHOLD,
    NO_DEADLINE_PERCENTAGE,
    ON_TIME_THRESHOLD,
    REASONING_MIN_LENGTH,
    TIME_MULTIPLIERS,
    XP_PER_LEVEL,
)
from .entities import Difficulty, Goal, UserProfile, as_utc, utcnow


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_level(xp: int) -> int:
    if xp < 0:
        raise ValueError("XP cannot be negative.")
    return xp // XP_PER_LEVEL + 1


def xp_to_next_level(xp: int) -> int:
    return calculate_level(xp) * XP_PER_LEVEL - xp


def level_progress(xp: int) -> float:
    """Percentage of the current level already earned, to one decimal."""
    if xp < 0:
        raise ValueError("XP cannot be negative.")
    return round((xp % XP_PER_LEVEL) / XP_PER_LEVEL * 100, 1)


def time_band(time_percentage: float) -> str:
    if time_percentage > EARLY_THRESHOLD:
        return "early"
    if time_percentage > ON_TIME_THRESHOLD:
        return "on_time"
    if time_percentage > LATE_THRESHOLD:
        return "late"
    return "overdue"


def time_multiplier(time_percentage: float) -> float:
    return TIME_MULTIPLIERS[time_band(time_percentage)]


def difficulty_multiplier(difficulty: Difficulty) -> float:
    try:
        return DIFFICULTY_MULTIPLIERS[difficulty]
    except KeyError as exc:
        raise ValueError(f"Unknown difficulty '{difficulty}'.") from exc


def calculate_goal_xp(base_xp: int, difficulty: Difficulty, time_percentage: float) -> int:
    return round_half_up(base_xp * difficulty_multiplier(difficulty) * time_multiplier(time_percentage))


def default_goal_xp(difficulty: Difficulty, base_xp: int = BASE_XP_PER_GOAL) -> int:
    """XP advertised on a freshly created goal, before any time bonus."""
    return round_half_up(base_xp * difficulty_multiplier(difficulty))


def time_percentage_remaining(goal: Goal, at: Optional[datetime] = None) -> float:
    """Share of the goal's allotted window still left at ``at`` (0-100)."""
    if goal.deadline is None:
        return NO_DEADLINE_PERCENTAGE
    moment = as_utc(at) or utcnow()
    remaining = (goal.deadline - moment).total_seconds()
    if remaining <= 0:
        return 0.0
    total = (goal.deadline - goal.created_at).total_seconds()
    if total <= 0:
        return 0.0
    return min(100.0, remaining / total * 100)


def award_xp(profile: UserProfile, amount: int) -> UserProfile:
    if amount < 0:
        raise ValueError("XP awards cannot be negative.")
    total = profile.total_xp + amount
    return profile.model_copy(
        update={"total_xp": total, "level": calculate_level(total), "updated_at": utcnow()},
        deep=True,
    )


def update_daily_streak(profile: UserProfile, now: Optional[datetime] = None) -> UserProfile:
    moment = as_utc(now) or utcnow()
    last = as_utc(profile.last_activity)
    if last is None:
        streak = 1
    else:
        gap = (moment.date() - last.date()).days
        if gap <= 0:
            streak = profile.daily_streak
        elif gap == 1:
            streak = profile.daily_streak + 1
        else:
            streak = 1
    return profile.model_copy(
        update={
            "daily_streak": streak,
            "highest_streak": max(profile.highest_streak, streak),
            "last_activity": moment,
            "updated_at": utcnow(),
        },
        deep=True,
    )


def complete_goal(
    goal: Goal,
    profile: UserProfile,
    reasoning: str,
    *,
    now: Optional[datetime] = None,
    base_xp: int = BASE_XP_PER_GOAL,
) -> Tuple[Goal, UserProfile, int]:
    """Mark ``goal`` complete and award its XP to ``profile``.

    Completing a goal that is already completed is a no-op that awards
    nothing, so replays of the same completion leave the profile unchanged.
    """
    if goal.completed:
        return goal, profile, 0
    trimmed = reasoning.strip()
    if len(trimmed) < REASONING_MIN_LENGTH:
        raise ValueError(f"Completion reasoning must be at least {REASONING_MIN_LENGTH} characters.")
    moment = as_utc(now) or utcnow()
    xp = calculate_goal_xp(base_xp, goal.difficulty, time_percentage_remaining(goal, moment))
    completed = goal.model_copy(
        update={
            "completed": True,
            "completed_at": moment,
            "completion_reasoning": trimmed,
            "xp_value": xp,
        },
        deep=True,
    )
    return completed, award_xp(profile, xp), xp


class GoalStats(BaseModel):
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0
    completion_rate: int = 0
    total_xp_earned: int = 0
    goals_by_difficulty: Dict[str, int] = Field(default_factory=dict)
    completion_by_difficulty: Dict[str, int] = Field(default_factory=dict)


def summarize_goals(goals: Iterable[Goal], now: Optional[datetime] = None) -> GoalStats:
    moment = as_utc(now) or utcnow()
    items = list(goals)
    done = [goal for goal in items if goal.completed]
    overdue = [
        goal for goal in items if not goal.completed and goal.deadline is not None and goal.deadline < moment
    ]
    by_difficulty = {key: 0 for key in DIFFICULTY_MULTIPLIERS}
    done_by_difficulty = {key: 0 for key in DIFFICULTY_MULTIPLIERS}
    for goal in items:
        by_difficulty[goal.difficulty] += 1
        if goal.completed:
            done_by_difficulty[goal.difficulty] += 1
    return GoalStats(
        total=len(items),
        completed=len(done),
        pending=len(items) - len(done),
        overdue=len(overdue),
        completion_rate=round_half_up(len(done) / len(items) * 100) if items else 0,
        total_xp_earned=sum(goal.xp_value for goal in done),
        goals_by_difficulty=by_difficulty,
        completion_by_difficulty=done_by_difficulty,
    )


__all__ = [
    "GoalStats",
    "award_xp",
    "calculate_goal_xp",
    "calculate_level",
    "complete_goal",
    "default_goal_xp",
    "difficulty_multiplier",
    "level_progress",
    "round_half_up",
    "summarize_goals",
    "time_band",
    "time_multiplier",
    "time_percentage_remaining",
    "update_daily_streak",
    "xp_to_next_level",
]
