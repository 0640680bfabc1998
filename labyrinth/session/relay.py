"""Session timer and relay.

Bridges the dashboard and the serial transport: starts and stops the run
clock, turns device lines into run outcomes and hands each outcome to the
leaderboard reducer exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from labyrinth.config import SessionConfig
from labyrinth.leaderboard.exceptions import LeaderboardWriteError
from labyrinth.leaderboard.models import PlayerRecord, RunOutcome, RunResult
from labyrinth.protocol import START, Message, parse_message
from labyrinth.services.serial import SerialTransport, TransportEventKind
from labyrinth.session.models import (
    ActiveRun,
    RunFinished,
    RunStarted,
    RunTick,
    SessionEvent,
    SessionStatus,
)

logger = logging.getLogger(__name__)

Listener = Callable[[SessionEvent], Awaitable[None]]
Clock = Callable[[], float]


class CommandSender(Protocol):
    async def send(self, command: str) -> bool: ...


class OutcomeSink(Protocol):
    async def apply(self, outcome: RunOutcome) -> list[PlayerRecord]: ...


class SessionRelay:
    """Times one run at a time and relays its outcome."""

    def __init__(
        self,
        sender: CommandSender,
        sink: OutcomeSink,
        config: SessionConfig | None = None,
        clock: Clock = time.monotonic,
    ):
        self.sender = sender
        self.sink = sink
        self.config = config or SessionConfig()
        self._clock = clock
        self._active: ActiveRun | None = None
        self._tick_task: asyncio.Task | None = None
        self._watchdog_task: asyncio.Task | None = None
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _publish(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(f"Session listener failed on {event.type}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active_run(self) -> ActiveRun | None:
        return self._active

    @property
    def is_active(self) -> bool:
        return self._active is not None

    def elapsed_millis(self) -> float | None:
        run = self._active
        if run is None:
            return None
        return (self._clock() - run.started_at) * 1000

    def status(self) -> SessionStatus:
        run = self._active
        if run is None:
            return SessionStatus()
        return SessionStatus(
            active=True,
            player_id=run.player_id,
            display_name=run.display_name,
            elapsed_millis=self.elapsed_millis(),
        )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def begin(self, player_id: str, display_name: str) -> bool:
        """Start timing a run and tell the device to start.

        Returns False when a run is already being timed. The run is timed
        even when START could not be delivered; the player can concede.

        Raises:
            ValueError: If the player id or display name is blank.
        """
        player_id = (player_id or "").strip()
        display_name = (display_name or "").strip()
        if not player_id or not display_name:
            raise ValueError("Both player_id and display_name are required")

        if self._active is not None:
            logger.warning(
                f"Begin for {player_id} rejected: run for "
                f"{self._active.player_id} is still in progress"
            )
            return False

        run = ActiveRun(
            player_id=player_id,
            display_name=display_name,
            started_at=self._clock(),
        )
        self._active = run
        logger.info(f"Run started for {display_name} ({player_id})")

        sent = await self.sender.send(START)
        if not sent:
            logger.warning(f"START was not delivered for {player_id}; run is still timed")

        if self._active is run:
            self._start_timers(run)
        await self._publish(
            RunStarted(player_id=player_id, display_name=display_name, command_sent=sent)
        )
        return True

    async def handle_line(self, line: str) -> RunFinished | None:
        """React to one line from the device."""
        message = parse_message(line)
        if message is not Message.FINISH:
            logger.debug(f"Ignoring device line: {line!r}")
            return None

        if self._active is None:
            logger.debug("FINISH received with no run in progress; ignored")
            return None

        return await self._finish(RunResult.SUCCESS)

    async def concede(self) -> RunFinished | None:
        """End the current run as a defeat. Returns None when idle."""
        if self._active is None:
            logger.info("Concede requested with no run in progress")
            return None
        return await self._finish(RunResult.DEFEAT)

    async def _finish(self, result: RunResult) -> RunFinished:
        run = self._active
        assert run is not None
        elapsed = (self._clock() - run.started_at) * 1000
        # cleared before the reducer suspends so a repeated FINISH is ignored
        self._active = None
        self._stop_timers()

        outcome = RunOutcome(
            player_id=run.player_id,
            display_name=run.display_name,
            elapsed_millis=max(elapsed, 0.0),
            result=result,
        )
        logger.info(
            f"Run finished for {run.player_id}: {result.value} in {outcome.elapsed_millis:.0f}ms"
        )

        try:
            records = await self.sink.apply(outcome)
        except LeaderboardWriteError as e:
            logger.error(f"Outcome for {run.player_id} was not saved: {e}")
            finished = RunFinished(outcome=outcome, persisted=False, error=str(e))
        except Exception as e:
            logger.error(f"Failed to record outcome for {run.player_id}: {e}", exc_info=True)
            finished = RunFinished(outcome=outcome, persisted=False, error=str(e))
        else:
            record = next((r for r in records if r.player_id == run.player_id), None)
            finished = RunFinished(outcome=outcome, record=record)

        await self._publish(finished)
        return finished

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _start_timers(self, run: ActiveRun) -> None:
        self._tick_task = asyncio.create_task(self._tick_loop(run), name="session-ticks")
        if self.config.run_timeout_seconds is not None:
            self._watchdog_task = asyncio.create_task(
                self._watchdog(run, self.config.run_timeout_seconds),
                name="session-watchdog",
            )

    def _stop_timers(self) -> None:
        current = asyncio.current_task()
        for task in (self._tick_task, self._watchdog_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._tick_task = None
        self._watchdog_task = None

    async def _tick_loop(self, run: ActiveRun) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval_seconds)
            if self._active is not run:
                return
            await self._publish(
                RunTick(player_id=run.player_id, elapsed_millis=self.elapsed_millis() or 0.0)
            )

    async def _watchdog(self, run: ActiveRun, timeout: float) -> None:
        await asyncio.sleep(timeout)
        if self._active is run:
            logger.warning(f"Run for {run.player_id} timed out after {timeout}s; conceding")
            await self._finish(RunResult.DEFEAT)

    async def shutdown(self) -> None:
        """Stop timers. A run still in progress is dropped, not recorded."""
        if self._active is not None:
            logger.warning(f"Shutting down with run for {self._active.player_id} in progress")
        self._active = None
        self._stop_timers()

    # ------------------------------------------------------------------
    # Transport pump
    # ------------------------------------------------------------------

    async def pump(self, transport: SerialTransport) -> None:
        """Consume transport events in order until cancelled.

        A failure while handling one event is logged and the next event is
        still read.
        """
        async for event in transport.events():
            if event.kind == TransportEventKind.LINE:
                try:
                    await self.handle_line(event.line or "")
                except Exception as e:
                    logger.error(f"Error handling device line {event.line!r}: {e}", exc_info=True)
            elif event.kind == TransportEventKind.CONNECTED:
                logger.info(f"Maze controller connected on {event.port}")
            elif event.kind == TransportEventKind.DISCONNECTED:
                logger.warning(f"Maze controller disconnected from {event.port}: {event.reason}")
