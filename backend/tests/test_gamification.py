from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from goalify.entities import Goal, UserProfile
from goalify.gamification import (
    award_xp,
    calculate_goal_xp,
    calculate_level,
    complete_goal,
    default_goal_xp,
    level_progress,
    summarize_goals,
    time_band,
    time_percentage_remaining,
    update_daily_streak,
    xp_to_next_level,
)

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _goal(**overrides) -> Goal:
    fields = {
        "id": "goal-1",
        "description": "Run three times this week",
        "difficulty": "medium",
        "created_at": START,
        "deadline": START + timedelta(days=10),
    }
    fields.update(overrides)
    return Goal(**fields)


@pytest.mark.parametrize(
    ("xp", "level"),
    [(0, 1), (999, 1), (1000, 2), (2500, 3)],
)
def test_calculate_level_uses_thousand_xp_bands(xp: int, level: int) -> None:
    assert calculate_level(xp) == level


def test_calculate_level_rejects_negative_xp() -> None:
    with pytest.raises(ValueError):
        calculate_level(-1)


def test_level_progress_helpers() -> None:
    assert xp_to_next_level(250) == 750
    assert xp_to_next_level(1000) == 1000
    assert level_progress(1250) == 25.0


def test_time_band_boundaries_are_exclusive() -> None:
    assert time_band(75.01) == "early"
    assert time_band(75.0) == "on_time"
    assert time_band(50.0) == "late"
    assert time_band(25.0) == "overdue"
    assert time_band(0.0) == "overdue"


def test_goal_xp_rounds_half_up() -> None:
    # 50 * 1.5 * 1.5 == 112.5; banker's rounding would give 112.
    assert calculate_goal_xp(50, "medium", 80.0) == 113
    assert calculate_goal_xp(50, "hard", 60.0) == 130
    assert calculate_goal_xp(50, "easy", 30.0) == 55
    assert calculate_goal_xp(50, "hard", 10.0) == 70


def test_default_goal_xp_follows_difficulty() -> None:
    assert [default_goal_xp(level) for level in ("easy", "medium", "hard")] == [50, 75, 100]


def test_time_percentage_remaining() -> None:
    goal = _goal()
    assert time_percentage_remaining(goal, START + timedelta(days=2)) == pytest.approx(80.0)
    assert time_percentage_remaining(goal, START + timedelta(days=10)) == 0.0
    assert time_percentage_remaining(goal, START + timedelta(days=12)) == 0.0


def test_time_percentage_without_deadline_counts_as_on_time() -> None:
    goal = _goal(deadline=None)
    assert time_band(time_percentage_remaining(goal, START)) == "on_time"


def test_time_percentage_with_inverted_window_is_zero() -> None:
    goal = _goal(created_at=START + timedelta(days=5), deadline=START + timedelta(days=4))
    assert time_percentage_remaining(goal, START + timedelta(days=3)) == 0.0


def test_award_xp_recomputes_level() -> None:
    profile = UserProfile(id="user-1", total_xp=950)
    updated = award_xp(profile, 100)
    assert updated.total_xp == 1050
    assert updated.level == 2
    assert profile.total_xp == 950
    with pytest.raises(ValueError):
        award_xp(profile, -5)


def test_daily_streak_starts_at_one() -> None:
    profile = update_daily_streak(UserProfile(id="user-1"), START)
    assert profile.daily_streak == 1
    assert profile.highest_streak == 1
    assert profile.last_activity == START


def test_daily_streak_same_day_is_idempotent() -> None:
    profile = UserProfile(id="user-1", daily_streak=3, highest_streak=5, last_activity=START + timedelta(hours=10))
    once = update_daily_streak(profile, START + timedelta(hours=23))
    twice = update_daily_streak(once, START + timedelta(hours=23, minutes=30))
    assert once.daily_streak == twice.daily_streak == 3
    assert twice.highest_streak == 5


def test_daily_streak_consecutive_day_increments() -> None:
    profile = UserProfile(id="user-1", daily_streak=5, highest_streak=5, last_activity=START + timedelta(hours=23))
    updated = update_daily_streak(profile, START + timedelta(days=1, minutes=30))
    assert updated.daily_streak == 6
    assert updated.highest_streak == 6


def test_daily_streak_resets_after_gap_but_keeps_record() -> None:
    profile = UserProfile(id="user-1", daily_streak=7, highest_streak=9, last_activity=START)
    updated = update_daily_streak(profile, START + timedelta(days=3))
    assert updated.daily_streak == 1
    assert updated.highest_streak == 9


def test_complete_goal_awards_time_weighted_xp() -> None:
    goal = _goal()
    profile = UserProfile(id="user-1", total_xp=900)
    completed, updated, xp = complete_goal(
        goal,
        profile,
        "  Finished all three runs before Friday.  ",
        now=START + timedelta(days=2),
    )
    assert xp == 113
    assert completed.completed is True
    assert completed.completed_at == START + timedelta(days=2)
    assert completed.completion_reasoning == "Finished all three runs before Friday."
    assert completed.xp_value == 113
    assert updated.total_xp == 1013
    assert updated.level == 2


def test_complete_goal_rejects_short_reasoning() -> None:
    with pytest.raises(ValueError):
        complete_goal(_goal(), UserProfile(id="user-1"), "done", now=START)


def test_complete_goal_twice_awards_nothing() -> None:
    goal, profile, _ = complete_goal(_goal(), UserProfile(id="user-1"), "Finished every planned session.", now=START)
    again_goal, again_profile, xp = complete_goal(goal, profile, "Finished every planned session.", now=START)
    assert xp == 0
    assert again_goal == goal
    assert again_profile.total_xp == profile.total_xp


def test_summarize_goals() -> None:
    now = START + timedelta(days=20)
    goals = [
        _goal(
            id="done",
            difficulty="easy",
            xp_value=65,
            completed=True,
            completed_at=START + timedelta(days=1),
            completion_reasoning="Finished every planned session.",
        ),
        _goal(id="late", difficulty="hard"),
        _goal(id="open", deadline=None),
    ]
    stats = summarize_goals(goals, now)
    assert stats.total == 3
    assert stats.completed == 1
    assert stats.pending == 2
    assert stats.overdue == 1
    assert stats.completion_rate == 33
    assert stats.total_xp_earned == 65
    assert stats.goals_by_difficulty == {"easy": 1, "medium": 1, "hard": 1}
    assert stats.completion_by_difficulty == {"easy": 1, "medium": 0, "hard": 0}


def test_summarize_goals_empty() -> None:
    stats = summarize_goals([], START)
    assert stats.total == 0
    assert stats.completion_rate == 0
