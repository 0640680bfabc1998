"""Host runtime: wires the serial transport, reducer and session relay."""

import asyncio
import logging

from labyrinth.config import Settings
from labyrinth.leaderboard.reducer import LeaderboardReducer
from labyrinth.services.serial import SerialTransport
from labyrinth.session.relay import SessionRelay
from labyrinth.storage.leaderboard import initialize_store

logger = logging.getLogger(__name__)


class HostRuntime:
    """Owns the long-lived host components and the transport pump task."""

    def __init__(self, settings: Settings, transport: SerialTransport | None = None):
        self.settings = settings
        self.transport = transport or SerialTransport(settings.serial)
        self.reducer = LeaderboardReducer(
            settings.leaderboard_path, top_n=settings.leaderboard.top_n
        )
        self.relay = SessionRelay(self.transport, self.reducer, settings.session)
        self._pump_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    async def start(self) -> None:
        """Create the table if needed, connect and start relaying device lines.

        A missing device is not fatal; `send` retries the connection on the
        next begin.
        """
        await asyncio.to_thread(initialize_store, self.settings.leaderboard_path)

        if await self.transport.connect():
            logger.info(f"Connected to maze controller on {self.transport.port}")
        else:
            logger.warning("Maze controller not connected; will retry on next START")

        self._pump_task = asyncio.create_task(
            self.relay.pump(self.transport), name="serial-pump"
        )

    async def stop(self) -> None:
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Serial pump had failed: {e}", exc_info=True)
            self._pump_task = None

        await self.relay.shutdown()
        await self.transport.close()
        logger.info("Host runtime stopped")
