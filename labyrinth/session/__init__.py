from .models import (
    ActiveRun,
    RunFinished,
    RunStarted,
    RunTick,
    SessionEvent,
    SessionStatus,
)
from .relay import SessionRelay

__all__ = [
    "ActiveRun",
    "RunFinished",
    "RunStarted",
    "RunTick",
    "SessionEvent",
    "SessionStatus",
    "SessionRelay",
]
