"""Run state machine of the maze controller."""

import logging
from enum import Enum

from labyrinth.device.sampler import DistanceSampler
from labyrinth.device.tilt import TiltController
from labyrinth.protocol import FINISH, Message, parse_message

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class RunStateMachine:
    """IDLE until START, ACTIVE until the ball falls.

    `tick()` returns the FINISH line exactly once, on the ACTIVE to IDLE
    edge. Servos are centred at construction and hold their last position
    while idle.
    """

    def __init__(self, tilt: TiltController, sampler: DistanceSampler):
        self.tilt = tilt
        self.sampler = sampler
        self.state = RunState.IDLE
        self.tilt.center()

    def receive(self, line: str) -> RunState:
        message = parse_message(line)
        if message is Message.START:
            if self.state == RunState.IDLE:
                logger.info("START received; run active")
                self.state = RunState.ACTIVE
        else:
            logger.debug(f"Discarding unrecognised line: {line!r}")
        return self.state

    def tick(self) -> str | None:
        if self.state != RunState.ACTIVE:
            return None

        self.tilt.update()
        if self.sampler.fallen():
            self.state = RunState.IDLE
            logger.info("Ball fell; run over")
            return FINISH
        return None
