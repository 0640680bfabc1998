"""Leaderboard exceptions."""

from pathlib import Path


class LeaderboardError(Exception):
    """Base exception for leaderboard errors."""

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


class LeaderboardWriteError(LeaderboardError):
    """The durable table could not be replaced."""

    pass
