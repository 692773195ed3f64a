"""Shared constants for the Goalify coaching backend."""

from typing import Dict

XP_PER_LEVEL = 1000
BASE_XP_PER_GOAL = 50
MIN_GOAL_XP = 10

DIFFICULTY_MULTIPLIERS: Dict[str, float] = {
    "easy": 1.0,
    "medium": 1.5,
    "hard": 2.0,
}

# Keyed by the share of the goal's allotted time still remaining at completion.
TIME_MULTIPLIERS: Dict[str, float] = {
    "early": 1.5,
    "on_time": 1.3,
    "late": 1.1,
    "overdue": 0.7,
}
EARLY_THRESHOLD = 75.0
ON_TIME_THRESHOLD = 50.0
LATE_THRESHOLD = 25.0
# Percentage used for goals without a deadline; sits inside the on-time band.
NO_DEADLINE_PERCENTAGE = 60.0

MOTIVATION_MIN = 1
MOTIVATION_MAX = 10
GOAL_DESCRIPTION_MIN_LENGTH = 10
GOAL_DESCRIPTION_MAX_LENGTH = 500
REASONING_MIN_LENGTH = 20
REASONING_MAX_LENGTH = 1000

DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_CONVERSATION_TITLE = "New Conversation"
CONVERSATION_TITLE_WORDS = 6

LOCAL_ID_PREFIX = "local-"
