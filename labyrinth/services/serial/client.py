from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

import serial

from .config import SerialConfig
from .discovery import list_serial_ports, select_device
from .exceptions import SerialUnavailableError, SerialWriteError
from .framing import LineFramer, encode_line
from .models import PortInfo, TransportEvent

logger = logging.getLogger(__name__)


class SerialHandle(Protocol):
    """The subset of `serial.Serial` the transport relies on."""

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


SerialFactory = Callable[[str, SerialConfig], SerialHandle]
PortLister = Callable[[], list[PortInfo]]


def open_serial(port: str, config: SerialConfig) -> serial.Serial:
    """Open a pyserial handle with the configured line settings."""
    return serial.Serial(
        port=port,
        baudrate=config.baud_rate,
        timeout=config.read_timeout_seconds,
        write_timeout=config.write_timeout_seconds,
    )


def _write_all(handle: SerialHandle, data: bytes) -> None:
    handle.write(data)
    handle.flush()


class SerialTransport:
    """Single logical connection to the maze controller.

    Inbound bytes are framed into lines and queued for one consumer, in
    arrival order. Blocking pyserial calls run in worker threads so the
    event loop only suspends on connect, send and read.
    """

    def __init__(
        self,
        config: SerialConfig | None = None,
        serial_factory: SerialFactory | None = None,
        port_lister: PortLister | None = None,
    ):
        self.config = config or SerialConfig()
        self._serial_factory = serial_factory or open_serial
        self._port_lister = port_lister or list_serial_ports
        self._handle: SerialHandle | None = None
        self._port: str | None = None
        self._reader_task: asyncio.Task | None = None
        self._framer = LineFramer()
        self._events: asyncio.Queue[TransportEvent] = asyncio.Queue(
            maxsize=self.config.event_queue_size
        )
        self._connect_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._consumer_attached = False

        logger.info(
            f"Initialized SerialTransport (port={self.config.port or 'auto'}, "
            f"baud={self.config.baud_rate})"
        )

    async def __aenter__(self) -> SerialTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    @property
    def port(self) -> str | None:
        return self._port

    # ------------------------------------------------------------------
    # Discovery / connection
    # ------------------------------------------------------------------

    async def discover(self) -> str | None:
        """Return the device path of the first allow-listed port, if any."""
        try:
            ports = await asyncio.to_thread(self._port_lister)
        except Exception as e:
            logger.error(f"Error listing serial ports: {e}")
            return None

        logger.debug(f"Available serial ports: {[p.device for p in ports]}")
        found = select_device(ports, self.config.device_signatures)
        return found.device if found else None

    async def connect(self, port: str | None = None) -> bool:
        """Open `port` (or the override, or the discovered device).

        Any other open endpoint is closed first. Returns False when no
        endpoint could be opened; the transport then stays unconnected.
        """
        async with self._connect_lock:
            target = port or self.config.port
            if target is None:
                target = await self.discover()
            if target is None:
                return False

            if self._handle is not None and self._port == target:
                return True

            await self._close_locked("replaced")

            try:
                handle = await self._open_handle(target)
            except SerialUnavailableError as e:
                logger.error(f"Failed to open serial port {target}: {e}")
                return False

            self._handle = handle
            self._port = target
            self._framer.reset()
            logger.info(f"Serial port {target} opened successfully.")
            await self._events.put(TransportEvent.connected(target))
            self._reader_task = asyncio.create_task(
                self._read_loop(handle), name=f"serial-reader:{target}"
            )
            return True

    async def close(self) -> None:
        """Close the open endpoint. No-op when already closed."""
        async with self._connect_lock:
            await self._close_locked("closed")

    async def _open_handle(self, target: str) -> SerialHandle:
        try:
            return await asyncio.to_thread(self._serial_factory, target, self.config)
        except (serial.SerialException, OSError, ValueError) as e:
            raise SerialUnavailableError(str(e), port=target) from e

    async def _close_locked(self, reason: str) -> None:
        if self._handle is None:
            return

        task = self._reader_task
        self._reader_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._teardown(reason)

    async def _teardown(self, reason: str) -> None:
        handle, port = self._handle, self._port
        self._handle = None
        self._port = None
        # partial line data never outlives the connection
        self._framer.reset()

        if handle is not None:
            try:
                await asyncio.to_thread(handle.close)
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Error closing serial port {port}: {e}")

        logger.info(f"Serial port {port} closed ({reason}).")
        await self._events.put(TransportEvent.disconnected(port, reason))

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, command: str) -> bool:
        """Write one command line.

        Returns False without raising when the port is not open (after one
        reconnection pass) or the write fails.
        """
        if self._handle is None:
            logger.warning(f"Serial port not open. Cannot send '{command}' command.")
            await self.connect()
            return False

        try:
            await self._write(encode_line(command))
        except SerialWriteError as e:
            logger.error(f"Error writing '{command}' to serial port: {e}")
            await self._drop(e.port, f"write failed: {e}")
            return False

        logger.info(f"Sent command to maze controller: {command}")
        return True

    async def _write(self, data: bytes) -> None:
        async with self._write_lock:
            handle, port = self._handle, self._port
            if handle is None:
                raise SerialWriteError("Serial port closed", port=port)
            try:
                await asyncio.to_thread(_write_all, handle, data)
            except (serial.SerialException, OSError) as e:
                raise SerialWriteError(str(e), port=port) from e

    async def _drop(self, port: str | None, reason: str) -> None:
        async with self._connect_lock:
            if self._handle is not None and self._port == port:
                await self._close_locked(reason)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _read_loop(self, handle: SerialHandle) -> None:
        while True:
            try:
                chunk = await asyncio.to_thread(handle.read, self.config.read_chunk_size)
            except (serial.SerialException, OSError) as e:
                logger.error(f"SerialPort Error: {e}")
                async with self._connect_lock:
                    if self._handle is handle:
                        self._reader_task = None
                        await self._teardown(f"connection lost: {e}")
                return

            if not chunk:
                continue

            for line in self._framer.feed(chunk):
                logger.debug(f"Data from maze controller on {self._port}: {line}")
                await self._events.put(TransportEvent.data(line))

    async def next_event(self) -> TransportEvent:
        """Wait for the next line or connection event."""
        return await self._events.get()

    async def events(self) -> AsyncIterator[TransportEvent]:
        """Iterate over transport events. Only one consumer may attach."""
        if self._consumer_attached:
            raise RuntimeError("SerialTransport already has a consumer")
        self._consumer_attached = True
        try:
            while True:
                yield await self._events.get()
        finally:
            self._consumer_attached = False
