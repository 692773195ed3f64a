from __future__ import annotations

from typing import List, Optional

import pytest

from goalify.errors import GatewayUnavailable
from goalify.leaderboard import (
    LeaderboardRow,
    LeaderboardService,
    UserRankSummary,
    completion_rate,
    rank_entries,
    rank_summary,
    synthetic_rows,
)
from goalify.telemetry import clear_listeners, recent_events


def _row(user_id: str, **fields) -> LeaderboardRow:
    return LeaderboardRow(user_id=user_id, name=user_id.title(), **fields)


class _FakeGateway:
    def __init__(self, rows: Optional[List[LeaderboardRow]] = None) -> None:
        self.rows = rows or []
        self.raise_errors = False
        self.rank: Optional[UserRankSummary] = None
        self.requested: list[tuple[str, Optional[int]]] = []

    def fetch_leaderboard(self, sort_by: str, limit: Optional[int]) -> List[LeaderboardRow]:
        self.requested.append((sort_by, limit))
        if self.raise_errors:
            raise GatewayUnavailable("fetch_leaderboard", "db unavailable")
        return list(self.rows)

    def fetch_user_rank(self, user_id: str) -> UserRankSummary:
        if self.raise_errors:
            raise GatewayUnavailable("fetch_user_rank", "db unavailable")
        return self.rank or UserRankSummary()


@pytest.fixture(autouse=True)
def _reset_telemetry():
    clear_listeners()
    yield
    clear_listeners()


def test_rank_entries_orders_by_xp_with_tie_breaks() -> None:
    rows = [
        _row("carol", total_xp=500, goals_completed=2, highest_streak=1),
        _row("bob", total_xp=500, goals_completed=3, highest_streak=0),
        _row("alice", total_xp=900),
        _row("dave", total_xp=500, goals_completed=3, highest_streak=0),
    ]
    entries = rank_entries(rows, "xp")
    assert [entry.id for entry in entries] == ["alice", "bob", "dave", "carol"]
    assert [entry.rank for entry in entries] == [1, 2, 3, 4]


def test_rank_entries_goal_and_streak_dimensions() -> None:
    rows = [
        _row("a", total_xp=100, goals_completed=5, daily_streak=1, highest_streak=1),
        _row("b", total_xp=900, goals_completed=1, daily_streak=2, highest_streak=10),
        _row("c", total_xp=300, goals_completed=5, daily_streak=4, highest_streak=4),
    ]
    assert [entry.id for entry in rank_entries(rows, "goals")] == ["c", "a", "b"]
    assert [entry.id for entry in rank_entries(rows, "streak")] == ["b", "c", "a"]


def test_rank_entries_derives_level_and_completion_rate() -> None:
    entry = rank_entries([_row("a", total_xp=2500, goals_completed=2, goals_created=3)])[0]
    assert entry.level == 3
    assert entry.completion_rate == 67


def test_rank_entries_limit_truncates_after_ranking() -> None:
    rows = [_row(f"user-{index}", total_xp=index * 10) for index in range(10)]
    entries = rank_entries(rows, "xp", limit=3)
    assert [entry.id for entry in entries] == ["user-9", "user-8", "user-7"]
    assert [entry.rank for entry in entries] == [1, 2, 3]


def test_rank_entries_rejects_bad_arguments() -> None:
    with pytest.raises(ValueError):
        rank_entries([_row("a")], "level")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        rank_entries([_row("a")], "xp", limit=0)


def test_rank_entries_keeps_last_row_per_user() -> None:
    rows = [_row("a", total_xp=10), _row("b", total_xp=20), _row("a", total_xp=30)]
    entries = rank_entries(rows)
    assert [(entry.id, entry.total_xp) for entry in entries] == [("a", 30), ("b", 20)]


def test_completion_rate_without_goals_is_zero() -> None:
    assert completion_rate(0, 0) == 0
    assert completion_rate(1, 2) == 50


def test_rank_summary_matches_board_positions() -> None:
    rows = [
        _row("a", total_xp=900, goals_completed=1, highest_streak=2),
        _row("b", total_xp=100, goals_completed=7, highest_streak=1),
        _row("c", total_xp=500, goals_completed=3, highest_streak=9),
    ]
    summary = rank_summary(rows, "c")
    assert summary.total_users == 3
    for dimension in ("xp", "goals", "streak"):
        board = rank_entries(rows, dimension)  # type: ignore[arg-type]
        expected = next(entry.rank for entry in board if entry.id == "c")
        assert getattr(summary, f"rank_by_{dimension}") == expected
    assert (summary.rank_by_xp, summary.rank_by_goals, summary.rank_by_streak) == (2, 2, 1)


def test_rank_summary_for_absent_user() -> None:
    summary = rank_summary([_row("a", total_xp=10)], "ghost")
    assert summary.rank_by_xp is None
    assert summary.total_users == 1


def test_synthetic_rows_are_deterministic() -> None:
    first = synthetic_rows()
    assert first == synthetic_rows()
    assert len(first) == 20
    assert first[0].user_id == "demo-00"
    assert first[0].total_xp == 15000
    assert first[0].goals_completed == 37
    assert all(row.highest_streak >= row.daily_streak for row in first)
    assert all(row.goals_created > row.goals_completed for row in first)


def test_service_ranks_remote_rows() -> None:
    gateway = _FakeGateway([_row("a", total_xp=10, server_rank=1), _row("b", total_xp=40, server_rank=2)])
    service = LeaderboardService(gateway, default_limit=25)

    view = service.leaderboard("xp")

    assert view.source == "remote"
    assert [(entry.id, entry.rank) for entry in view.entries] == [("b", 1), ("a", 2)]
    assert gateway.requested == [("xp", 25)]
    event = recent_events("leaderboard_ranked")[0]
    assert event.payload == {"sort_by": "xp", "source": "remote", "size": 2}


def test_service_falls_back_to_synthetic_board_with_viewer() -> None:
    gateway = _FakeGateway()
    gateway.raise_errors = True
    service = LeaderboardService(gateway)
    viewer = _row("me", total_xp=99999, goals_completed=1, goals_created=1)

    view = service.leaderboard("xp", limit=5, viewer=viewer)

    assert view.source == "fallback"
    assert view.total_users == 21
    assert len(view.entries) == 5
    assert view.entries[0].id == "me"
    assert view.entries[0].rank == 1


def test_service_uses_fallback_when_remote_board_is_empty() -> None:
    view = LeaderboardService(_FakeGateway()).leaderboard("goals")
    assert view.source == "fallback"
    assert view.total_users == 20


def test_service_rejects_unknown_dimension() -> None:
    with pytest.raises(ValueError):
        LeaderboardService(_FakeGateway()).leaderboard("level")  # type: ignore[arg-type]


def test_service_rejects_zero_limit_instead_of_using_default() -> None:
    service = LeaderboardService(_FakeGateway([_row("a", total_xp=10)]), default_limit=25)
    with pytest.raises(ValueError):
        service.leaderboard("xp", limit=0)
    assert len(service.leaderboard("xp", limit=None).entries) == 1


def test_user_rank_prefers_remote_summary() -> None:
    gateway = _FakeGateway()
    gateway.rank = UserRankSummary(rank_by_xp=4, rank_by_goals=2, rank_by_streak=9, total_users=12)
    summary = LeaderboardService(gateway).user_rank("me")
    assert summary == gateway.rank


def test_user_rank_offline_agrees_with_fallback_board() -> None:
    gateway = _FakeGateway()
    gateway.raise_errors = True
    service = LeaderboardService(gateway)
    viewer = _row("me", total_xp=7300, goals_completed=12, highest_streak=3)

    summary = service.user_rank("me", viewer=viewer)
    board = service.leaderboard("xp", limit=500, viewer=viewer)

    assert summary.total_users == 21
    assert summary.rank_by_xp == next(entry.rank for entry in board.entries if entry.id == "me")
