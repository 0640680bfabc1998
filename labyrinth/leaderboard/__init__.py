"""Leaderboard models, ranking view and errors.

The reducer lives in `labyrinth.leaderboard.reducer` and is imported from
there; it depends on the storage layer, which depends on these models.
"""

from .exceptions import LeaderboardError, LeaderboardWriteError
from .models import (
    LeaderboardEntry,
    LeaderboardSnapshot,
    LeaderboardStats,
    PlayerRecord,
    RunOutcome,
    RunResult,
)
from .snapshot import build_snapshot, format_seconds, format_time

__all__ = [
    "LeaderboardError",
    "LeaderboardWriteError",
    "LeaderboardEntry",
    "LeaderboardSnapshot",
    "LeaderboardStats",
    "PlayerRecord",
    "RunOutcome",
    "RunResult",
    "build_snapshot",
    "format_seconds",
    "format_time",
]
