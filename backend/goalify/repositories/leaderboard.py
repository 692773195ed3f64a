"""Raw leaderboard counters read from profiles joined with their stats."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..db.models import UserProfileModel, UserStatsModel
from ..leaderboard import LeaderboardRow, SortDimension, order_rows


class LeaderboardRepository:
    def rows(self, session: Session, sort_by: SortDimension = "xp", limit: Optional[int] = None) -> List[LeaderboardRow]:
        """Return rows for every user with XP, completed goals or sessions.

        Ordering reuses the in-process ranking keys so database collation never
        changes who lands inside ``limit``.
        """
        completed = func.coalesce(UserStatsModel.total_goals_completed, 0)
        sessions = func.coalesce(UserStatsModel.total_sessions, 0)
        stmt = (
            select(UserProfileModel, UserStatsModel)
            .outerjoin(UserStatsModel, UserStatsModel.user_id == UserProfileModel.id)
            .where(or_(UserProfileModel.total_xp > 0, completed > 0, sessions > 0))
        )
        rows = [
            LeaderboardRow(
                user_id=profile.id,
                name=profile.name or "Anonymous User",
                total_xp=profile.total_xp,
                goals_completed=stats.total_goals_completed if stats else 0,
                goals_created=stats.total_goals_created if stats else 0,
                daily_streak=profile.daily_streak,
                highest_streak=max(stats.highest_streak if stats else 0, profile.daily_streak),
                total_sessions=stats.total_sessions if stats else 0,
            )
            for profile, stats in session.execute(stmt).all()
        ]
        ordered = order_rows(rows, sort_by)
        if limit is not None:
            ordered = ordered[:limit]
        return [row.model_copy(update={"server_rank": index}) for index, row in enumerate(ordered, start=1)]


leaderboard = LeaderboardRepository()

__all__ = ["LeaderboardRepository", "leaderboard"]
