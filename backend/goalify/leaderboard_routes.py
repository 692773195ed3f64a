"""Global leaderboard endpoint."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from .dependencies import get_leaderboard_service, get_reconciler, raise_http_error
from .errors import DurabilityFailure
from .leaderboard import LeaderboardRow, LeaderboardService, LeaderboardView, SortDimension
from .reconciler import Reconciler

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


def viewer_row(reconciler: Reconciler, user_id: Optional[str]) -> Optional[LeaderboardRow]:
    """Counters for the requesting user, merged into the synthetic board when offline."""
    if not user_id or not user_id.strip():
        return None
    profile = reconciler.get_profile(user_id)
    if profile is None:
        return None
    stats = reconciler.goal_stats(profile.id)
    sessions = reconciler.list_conversations(profile.id, include_deleted=True)
    return LeaderboardRow(
        user_id=profile.id,
        name=profile.name or "You",
        total_xp=profile.total_xp,
        goals_completed=stats.completed,
        goals_created=stats.total,
        daily_streak=profile.daily_streak,
        highest_streak=profile.highest_streak,
        total_sessions=len(sessions),
    )


@router.get("", response_model=LeaderboardView, status_code=status.HTTP_200_OK)
def get_leaderboard(
    sort_by: SortDimension = Query(default="xp"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    user_id: Optional[str] = Query(default=None),
    reconciler: Reconciler = Depends(get_reconciler),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> LeaderboardView:
    try:
        viewer = viewer_row(reconciler, user_id)
    except (LookupError, ValueError, DurabilityFailure) as exc:
        raise_http_error(exc)
    return service.leaderboard(sort_by, limit, viewer=viewer)


__all__ = ["router", "viewer_row"]
