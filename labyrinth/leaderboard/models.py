"""Leaderboard data models."""

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RunResult(str, Enum):
    SUCCESS = "success"
    DEFEAT = "defeat"


class RunOutcome(BaseModel):
    """Result of one completed run. Consumed once by the reducer."""

    model_config = ConfigDict(frozen=True)

    player_id: str = Field(min_length=1)
    display_name: str
    elapsed_millis: float = Field(ge=0, description="Elapsed run time; inf allowed for defeats")
    result: RunResult


class PlayerRecord(BaseModel):
    """Durable per-player aggregate."""

    player_id: str
    display_name: str
    best_time_millis: float = math.inf
    success_count: int = 0
    defeat_count: int = 0
    improved_on_last_update: bool = False

    @property
    def has_success(self) -> bool:
        return math.isfinite(self.best_time_millis)

    @property
    def attempts(self) -> int:
        return self.success_count + self.defeat_count


class LeaderboardEntry(BaseModel):
    """Single ranked row."""

    rank: int
    player_id: str
    display_name: str
    best_time_millis: float
    improved_on_last_update: bool = False


class LeaderboardStats(BaseModel):
    """Aggregate statistics across every record."""

    record_time_millis: float | None = None
    average_time_millis: float | None = None
    total_players: int = 0
    success_rate: float = 0.0  # percent


class LeaderboardSnapshot(BaseModel):
    """Ranked view, recomputed on every read."""

    entries: list[LeaderboardEntry] = Field(default_factory=list)
    stats: LeaderboardStats = Field(default_factory=LeaderboardStats)
    ranked_players: int = 0
