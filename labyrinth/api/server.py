"""FastAPI dashboard server for the Labyrinth host."""

import logging
import math
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from labyrinth import __version__
from labyrinth.api.websocket import ConnectionManager
from labyrinth.app import HostRuntime
from labyrinth.leaderboard.models import LeaderboardSnapshot, PlayerRecord, RunResult
from labyrinth.leaderboard.snapshot import format_time
from labyrinth.session.models import (
    RunFinished,
    RunStarted,
    RunTick,
    SessionEvent,
    SessionStatus,
)

logger = logging.getLogger(__name__)


class BeginRunRequest(BaseModel):
    player_id: str
    display_name: str


# ============================================================================
# Payload helpers
# ============================================================================


def _finite(value: float | None) -> float | None:
    """JSON has no infinity; missing times are sent as null."""
    if value is None or not math.isfinite(value):
        return None
    return value


def _record_payload(record: PlayerRecord) -> dict[str, Any]:
    return {
        "player_id": record.player_id,
        "display_name": record.display_name,
        "best_time_ms": _finite(record.best_time_millis),
        "best_time": format_time(record.best_time_millis),
        "successes": record.success_count,
        "defeats": record.defeat_count,
        "has_improved": record.improved_on_last_update,
    }


def _snapshot_payload(snapshot: LeaderboardSnapshot) -> dict[str, Any]:
    stats = snapshot.stats
    return {
        "entries": [
            {
                "rank": entry.rank,
                "player_id": entry.player_id,
                "display_name": entry.display_name,
                "best_time_ms": _finite(entry.best_time_millis),
                "best_time": format_time(entry.best_time_millis),
                "has_improved": entry.improved_on_last_update,
            }
            for entry in snapshot.entries
        ],
        "stats": {
            "record_time_ms": _finite(stats.record_time_millis),
            "record_time": format_time(stats.record_time_millis),
            "average_time_ms": _finite(stats.average_time_millis),
            "average_time": format_time(stats.average_time_millis),
            "total_players": stats.total_players,
            "success_rate": stats.success_rate,
        },
        "ranked_players": snapshot.ranked_players,
    }


def _status_payload(status: SessionStatus) -> dict[str, Any]:
    return {
        "active": status.active,
        "player_id": status.player_id,
        "display_name": status.display_name,
        "elapsed_ms": _finite(status.elapsed_millis),
        "elapsed": format_time(status.elapsed_millis),
    }


def _finished_message(event: RunFinished) -> str:
    if event.outcome.result == RunResult.DEFEAT:
        return "Trial marked as defeat."
    if event.is_new_best:
        return "NEW PERSONAL BEST!"
    if event.record is not None:
        return f"Your Best: {format_time(event.record.best_time_millis)}"
    return "Run complete."


def event_payload(event: SessionEvent) -> dict[str, Any]:
    if isinstance(event, RunStarted):
        return event.model_dump()

    if isinstance(event, RunTick):
        return {
            "type": event.type,
            "player_id": event.player_id,
            "elapsed_ms": event.elapsed_millis,
            "elapsed": format_time(event.elapsed_millis),
        }

    if isinstance(event, RunFinished):
        outcome = event.outcome
        return {
            "type": event.type,
            "player_id": outcome.player_id,
            "display_name": outcome.display_name,
            "result": outcome.result.value,
            "elapsed_ms": _finite(outcome.elapsed_millis),
            "elapsed": format_time(outcome.elapsed_millis),
            "persisted": event.persisted,
            "error": event.error,
            "new_best": event.is_new_best,
            "message": _finished_message(event),
            "record": _record_payload(event.record) if event.record else None,
        }

    raise TypeError(f"Unknown session event: {type(event).__name__}")


# ============================================================================
# Application
# ============================================================================


def create_app(runtime: HostRuntime) -> FastAPI:
    """Build the dashboard API around a host runtime.

    The runtime is started and stopped with the application lifespan.
    """
    manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Labyrinth API Server")
        await runtime.start()
        yield
        logger.info("Shutting down Labyrinth API Server")
        await runtime.stop()

    app = FastAPI(title="Labyrinth Dashboard API", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime
    app.state.connections = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime.settings.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def broadcast(event: SessionEvent) -> None:
        await manager.broadcast_to_all(event_payload(event))

    runtime.relay.add_listener(broadcast)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        transport = runtime.transport
        return {
            "status": "healthy",
            "version": __version__,
            "serial": {"connected": transport.is_connected, "port": transport.port},
            "session_active": runtime.relay.is_active,
            "websocket_clients": manager.get_total_connections(),
        }

    @app.get("/api/leaderboard")
    async def get_leaderboard() -> dict[str, Any]:
        """Ranked players and aggregate statistics."""
        snapshot = await runtime.reducer.snapshot()
        return _snapshot_payload(snapshot)

    @app.get("/api/session")
    async def get_session() -> dict[str, Any]:
        return _status_payload(runtime.relay.status())

    @app.post("/api/session/begin")
    async def begin_run(request: BeginRunRequest) -> dict[str, Any]:
        try:
            started = await runtime.relay.begin(request.player_id, request.display_name)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        if not started:
            raise HTTPException(status_code=409, detail="A run is already in progress")
        return _status_payload(runtime.relay.status())

    @app.post("/api/session/concede")
    async def concede_run() -> dict[str, Any]:
        finished = await runtime.relay.concede()
        if finished is None:
            raise HTTPException(status_code=409, detail="No run in progress")
        if not finished.persisted:
            raise HTTPException(
                status_code=503,
                detail=f"Run ended but the result was not saved: {finished.error}",
            )
        return event_payload(finished)

    @app.websocket("/ws/session")
    async def session_socket(websocket: WebSocket) -> None:
        await manager.connect(websocket)
        try:
            await websocket.send_json(
                {"type": "session_status", **_status_payload(runtime.relay.status())}
            )
            while True:
                # clients only listen; incoming text keeps the socket alive
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            manager.disconnect(websocket)

    return app
