"""Leaderboard ranking over raw per-user counters.

Ranks are always recomputed here, whatever rank hint the remote store sent,
so the board and the per-user rank lookup share one ordering.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from .errors import GatewayError
from .gamification import calculate_level, round_half_up
from .telemetry import emit_event

if TYPE_CHECKING:
    from .gateway import RemoteGateway

logger = logging.getLogger(__name__)

SortDimension = Literal["xp", "goals", "streak"]
SORT_DIMENSIONS: Tuple[SortDimension, ...] = ("xp", "goals", "streak")

SYNTHETIC_NAMES = (
    "Alex Chen",
    "Sarah Johnson",
    "Michael Rodriguez",
    "Emma Thompson",
    "David Kim",
    "Lisa Wang",
    "James Wilson",
    "Maria Garcia",
    "Ryan O'Connor",
    "Jessica Lee",
    "Daniel Brown",
    "Ashley Davis",
    "Kevin Zhang",
    "Rachel Green",
    "Mark Taylor",
    "Sophia Martinez",
    "Chris Anderson",
    "Amanda White",
    "Tyler Johnson",
    "Olivia Smith",
)


class LeaderboardRow(BaseModel):
    user_id: str
    name: str = "Anonymous User"
    total_xp: int = Field(default=0, ge=0)
    goals_completed: int = Field(default=0, ge=0)
    goals_created: int = Field(default=0, ge=0)
    daily_streak: int = Field(default=0, ge=0)
    highest_streak: int = Field(default=0, ge=0)
    total_sessions: int = Field(default=0, ge=0)
    server_rank: Optional[int] = None


class LeaderboardEntry(BaseModel):
    id: str
    name: str
    level: int
    total_xp: int
    goals_completed: int
    goals_created: int
    daily_streak: int
    highest_streak: int
    total_sessions: int
    completion_rate: int
    rank: int


class UserRankSummary(BaseModel):
    rank_by_xp: Optional[int] = None
    rank_by_goals: Optional[int] = None
    rank_by_streak: Optional[int] = None
    total_users: int = 0


class LeaderboardView(BaseModel):
    sort_by: SortDimension
    source: Literal["remote", "fallback"]
    total_users: int
    entries: List[LeaderboardEntry] = Field(default_factory=list)


_SORT_KEYS: Dict[str, Callable[[LeaderboardRow], tuple]] = {
    "xp": lambda row: (-row.total_xp, -row.goals_completed, -row.highest_streak, row.user_id),
    "goals": lambda row: (-row.goals_completed, -row.total_xp, -row.highest_streak, row.user_id),
    "streak": lambda row: (-row.highest_streak, -row.total_xp, -row.goals_completed, row.user_id),
}


def _sort_key(dimension: str) -> Callable[[LeaderboardRow], tuple]:
    try:
        return _SORT_KEYS[dimension]
    except KeyError as exc:
        raise ValueError(f"Unsupported leaderboard dimension '{dimension}'.") from exc


def completion_rate(goals_completed: int, goals_created: int) -> int:
    if goals_created <= 0:
        return 0
    return round_half_up(100 * goals_completed / goals_created)


def _dedupe(rows: Iterable[LeaderboardRow]) -> List[LeaderboardRow]:
    seen: Dict[str, LeaderboardRow] = {}
    for row in rows:
        seen[row.user_id] = row
    return list(seen.values())


def order_rows(rows: Iterable[LeaderboardRow], dimension: SortDimension) -> List[LeaderboardRow]:
    return sorted(_dedupe(rows), key=_sort_key(dimension))


def rank_entries(
    rows: Iterable[LeaderboardRow],
    dimension: SortDimension = "xp",
    limit: Optional[int] = None,
) -> List[LeaderboardEntry]:
    """Order ``rows`` by ``dimension`` and assign dense 1-based ranks.

    Ranks come from the full population; ``limit`` only truncates the result.
    """
    ordered = order_rows(rows, dimension)
    if limit is not None:
        if limit < 1:
            raise ValueError("Leaderboard limit must be positive.")
        ordered = ordered[:limit]
    return [
        LeaderboardEntry(
            id=row.user_id,
            name=row.name,
            level=calculate_level(row.total_xp),
            total_xp=row.total_xp,
            goals_completed=row.goals_completed,
            goals_created=row.goals_created,
            daily_streak=row.daily_streak,
            highest_streak=row.highest_streak,
            total_sessions=row.total_sessions,
            completion_rate=completion_rate(row.goals_completed, row.goals_created),
            rank=position,
        )
        for position, row in enumerate(ordered, start=1)
    ]


def rank_summary(rows: Iterable[LeaderboardRow], user_id: str) -> UserRankSummary:
    population = _dedupe(rows)
    summary = UserRankSummary(total_users=len(population))
    for dimension in SORT_DIMENSIONS:
        ordered = order_rows(population, dimension)
        position = next((index for index, row in enumerate(ordered, start=1) if row.user_id == user_id), None)
        setattr(summary, f"rank_by_{dimension}", position)
    return summary


def synthetic_rows() -> List[LeaderboardRow]:
    """Fixed demo population shown when the remote board is unavailable."""
    rows: List[LeaderboardRow] = []
    for index, name in enumerate(SYNTHETIC_NAMES):
        base_level = max(1, 15 - index)
        goals_completed = int(base_level * 2.5) + (index * 7) % 10
        daily_streak = (index * 13) % 50
        rows.append(
            LeaderboardRow(
                user_id=f"demo-{index:02d}",
                name=name,
                total_xp=base_level * 1000 + (index * 137) % 800,
                goals_completed=goals_completed,
                goals_created=goals_completed + index % 4 + 1,
                daily_streak=daily_streak,
                highest_streak=daily_streak + (index * 3) % 5,
                total_sessions=goals_completed // 2 + 1,
            )
        )
    return rows


class LeaderboardService:
    """Fetches raw rows through the gateway and ranks them locally."""

    def __init__(self, gateway: "RemoteGateway", *, default_limit: int = 50) -> None:
        self._gateway = gateway
        self._default_limit = default_limit

    def _population(
        self,
        dimension: SortDimension,
        limit: Optional[int],
        viewer: Optional[LeaderboardRow],
    ) -> Tuple[List[LeaderboardRow], str]:
        try:
            rows = self._gateway.fetch_leaderboard(dimension, limit)
        except GatewayError as exc:
            logger.warning("Leaderboard unavailable; using synthetic board: %s", exc)
            rows = []
        if rows:
            return rows, "remote"
        fallback = synthetic_rows()
        if viewer is not None:
            fallback.append(viewer)
        return fallback, "fallback"

    def leaderboard(
        self,
        sort_by: SortDimension = "xp",
        limit: Optional[int] = None,
        *,
        viewer: Optional[LeaderboardRow] = None,
    ) -> LeaderboardView:
        _sort_key(sort_by)
        resolved_limit = limit if limit is not None else self._default_limit
        rows, source = self._population(sort_by, resolved_limit, viewer)
        entries = rank_entries(rows, sort_by, resolved_limit)
        emit_event("leaderboard_ranked", sort_by=sort_by, source=source, size=len(entries))
        return LeaderboardView(
            sort_by=sort_by,
            source=source,  # type: ignore[arg-type]
            total_users=len(_dedupe(rows)),
            entries=entries,
        )

    def user_rank(self, user_id: str, *, viewer: Optional[LeaderboardRow] = None) -> UserRankSummary:
        try:
            summary = self._gateway.fetch_user_rank(user_id)
        except GatewayError as exc:
            logger.warning("User rank unavailable for %s; ranking synthetic board: %s", user_id, exc)
        else:
            if summary.total_users > 0:
                return summary
        rows, _ = self._population("xp", None, viewer)
        return rank_summary(rows, user_id)


__all__ = [
    "LeaderboardEntry",
    "LeaderboardRow",
    "LeaderboardService",
    "LeaderboardView",
    "SORT_DIMENSIONS",
    "SortDimension",
    "UserRankSummary",
    "completion_rate",
    "order_rows",
    "rank_entries",
    "rank_summary",
    "synthetic_rows",
]
