"""Cooperative polling loop of the maze controller.

Reads newline-framed commands from the serial link without blocking, feeds
them to the run state machine, ticks it at a fixed cadence and writes
FINISH back to the host.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from labyrinth.device.controller import RunState, RunStateMachine
from labyrinth.services.serial.framing import LineFramer, encode_line

logger = logging.getLogger(__name__)


class SerialLink(Protocol):
    """Non-blocking byte link; `read` returns whatever is available."""

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...


class DeviceLoop:
    def __init__(
        self,
        link: SerialLink,
        machine: RunStateMachine,
        tick_interval_seconds: float = 0.02,
        read_chunk_size: int = 64,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.link = link
        self.machine = machine
        self.tick_interval_seconds = tick_interval_seconds
        self.read_chunk_size = read_chunk_size
        self._sleep = sleep
        self._framer = LineFramer()

    @property
    def state(self) -> RunState:
        return self.machine.state

    def poll(self) -> list[str]:
        chunk = self.link.read(self.read_chunk_size)
        if not chunk:
            return []
        return self._framer.feed(chunk)

    def step(self) -> str | None:
        """One loop iteration. Returns the line written to the host, if any."""
        for line in self.poll():
            self.machine.receive(line)

        emitted = self.machine.tick()
        if emitted is not None:
            self.link.write(encode_line(emitted))
            logger.info(f"Sent {emitted} to host")
        return emitted

    def run(self, stop: threading.Event | None = None, max_steps: int | None = None) -> int:
        """Loop until `stop` is set or `max_steps` iterations ran. Returns the step count."""
        steps = 0
        while not (stop is not None and stop.is_set()):
            if max_steps is not None and steps >= max_steps:
                break
            self.step()
            steps += 1
            self._sleep(self.tick_interval_seconds)
        return steps
