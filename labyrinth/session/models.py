"""Session events published to relay listeners."""

from typing import Literal

from pydantic import BaseModel

from labyrinth.leaderboard.models import PlayerRecord, RunOutcome


class ActiveRun(BaseModel):
    """The run currently being timed."""

    player_id: str
    display_name: str
    started_at: float  # monotonic seconds


class SessionStatus(BaseModel):
    active: bool = False
    player_id: str | None = None
    display_name: str | None = None
    elapsed_millis: float | None = None


class RunStarted(BaseModel):
    type: Literal["run_started"] = "run_started"
    player_id: str
    display_name: str
    command_sent: bool


class RunTick(BaseModel):
    type: Literal["run_tick"] = "run_tick"
    player_id: str
    elapsed_millis: float


class RunFinished(BaseModel):
    """Emitted once per run, after the outcome reached the reducer."""

    type: Literal["run_finished"] = "run_finished"
    outcome: RunOutcome
    record: PlayerRecord | None = None
    persisted: bool = True
    error: str | None = None

    @property
    def is_new_best(self) -> bool:
        return self.record is not None and self.record.improved_on_last_update


SessionEvent = RunStarted | RunTick | RunFinished
