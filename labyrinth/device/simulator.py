"""Simulated maze hardware for exercising the host without a board."""

import logging
import random
import threading
import time
from collections.abc import Callable

from labyrinth.config import DeviceConfig
from labyrinth.device.controller import RunStateMachine
from labyrinth.device.firmware import DeviceLoop
from labyrinth.device.sampler import HALF_SPEED_OF_SOUND_CM_S, DistanceSampler
from labyrinth.device.tilt import TiltController
from labyrinth.services.serial import SerialConfig, open_serial

logger = logging.getLogger(__name__)


class SimulatedJoystick:
    """Random walk across the joystick range."""

    def __init__(self, low: int = 0, high: int = 1023, rng: random.Random | None = None):
        self.low = low
        self.high = high
        self._rng = rng or random.Random()
        middle = (low + high) // 2
        self._x = middle
        self._y = middle

    def _walk(self, value: int) -> int:
        step = self._rng.randint(-40, 40)
        return max(self.low, min(self.high, value + step))

    def read_x(self) -> int:
        self._x = self._walk(self._x)
        return self._x

    def read_y(self) -> int:
        self._y = self._walk(self._y)
        return self._y


class SimulatedServo:
    def __init__(self, name: str):
        self.name = name
        self.angle: float | None = None

    def write(self, angle: float) -> None:
        self.angle = angle


class SimulatedSensor:
    """Reports the board until a random delay after the first ping of a run.

    The sensor is only pinged while a run is active, so the delay restarts
    with each run.
    """

    def __init__(
        self,
        fall_after_seconds: tuple[float, float] = (5.0, 20.0),
        board_distance_cm: float = 12.0,
        fallen_distance_cm: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ):
        self.fall_after_seconds = fall_after_seconds
        self.board_distance_cm = board_distance_cm
        self.fallen_distance_cm = fallen_distance_cm
        self._clock = clock
        self._rng = rng or random.Random()
        self._armed_at: float | None = None
        self._fall_delay = 0.0

    def ping(self) -> float | None:
        now = self._clock()
        if self._armed_at is None:
            self._armed_at = now
            self._fall_delay = self._rng.uniform(*self.fall_after_seconds)
            logger.info(f"Simulated ball will fall in {self._fall_delay:.1f}s")

        if now - self._armed_at >= self._fall_delay:
            self._armed_at = None
            return self.fallen_distance_cm / HALF_SPEED_OF_SOUND_CM_S
        return self.board_distance_cm / HALF_SPEED_OF_SOUND_CM_S


def build_simulated_machine(
    config: DeviceConfig | None = None,
    sensor: SimulatedSensor | None = None,
    rng: random.Random | None = None,
) -> RunStateMachine:
    config = config or DeviceConfig()
    rng = rng or random.Random()
    tilt = TiltController(
        SimulatedJoystick(config.joystick_min, config.joystick_max, rng=rng),
        SimulatedServo("x"),
        SimulatedServo("y"),
        joystick_min=config.joystick_min,
        joystick_max=config.joystick_max,
        x_range=(config.x_min_angle, config.x_max_angle),
        y_range=(config.y_min_angle, config.y_max_angle),
    )
    sampler = DistanceSampler(
        sensor or SimulatedSensor(rng=rng),
        fall_threshold_cm=config.fall_threshold_cm,
        max_range_cm=config.max_range_cm,
    )
    return RunStateMachine(tilt, sampler)


def run_simulator(
    port: str,
    device_config: DeviceConfig,
    serial_config: SerialConfig,
    stop: threading.Event | None = None,
) -> int:
    """Run the simulated device on `port` until stopped. Returns the step count."""
    # reads must not block the polling loop
    link_config = serial_config.model_copy(update={"read_timeout_seconds": 0})
    handle = open_serial(port, link_config)
    logger.info(f"Simulated maze controller listening on {port}")
    try:
        loop = DeviceLoop(
            handle,
            build_simulated_machine(device_config),
            tick_interval_seconds=device_config.tick_interval_seconds,
        )
        return loop.run(stop=stop)
    finally:
        handle.close()
        logger.info(f"Simulated maze controller on {port} stopped")
