"""SQLAlchemy repositories backing the database gateway."""

from .conversations import ConversationRepository, conversations
from .goals import GoalRepository, goals
from .leaderboard import LeaderboardRepository, leaderboard
from .profiles import ProfileRepository, ensure_stats, profiles

__all__ = [
    "ConversationRepository",
    "GoalRepository",
    "LeaderboardRepository",
    "ProfileRepository",
    "conversations",
    "ensure_stats",
    "goals",
    "leaderboard",
    "profiles",
]
