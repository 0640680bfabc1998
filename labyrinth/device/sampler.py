"""Ultrasonic distance sampling and the fallen condition."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

# half the speed of sound in cm/s; the echo covers the distance twice
HALF_SPEED_OF_SOUND_CM_S = 17150


class UltrasonicSensor(Protocol):
    def ping(self) -> float | None:
        """Trigger one measurement and return the echo duration in seconds."""
        ...


def echo_to_distance_cm(duration: float | None) -> float | None:
    """Convert an echo duration to centimetres. No echo gives None."""
    if duration is None or duration <= 0:
        return None
    return duration * HALF_SPEED_OF_SOUND_CM_S


class DistanceSampler:
    """Reports whether the ball has dropped below the board.

    A single sample under the threshold counts as a fall. There is no
    debouncing, so one spurious short echo ends the run.
    """

    def __init__(
        self,
        sensor: UltrasonicSensor,
        fall_threshold_cm: float = 5.0,
        max_range_cm: float = 400.0,
    ):
        self.sensor = sensor
        self.fall_threshold_cm = fall_threshold_cm
        self.max_range_cm = max_range_cm
        self.last_distance_cm: float | None = None

    def sample(self) -> float | None:
        """Take one reading in centimetres, or None when out of range."""
        distance = echo_to_distance_cm(self.sensor.ping())
        if distance is not None and distance > self.max_range_cm:
            distance = None
        self.last_distance_cm = distance
        return distance

    def fallen(self) -> bool:
        distance = self.sample()
        if distance is None:
            return False
        if distance < self.fall_threshold_cm:
            logger.debug(f"Fall detected at {distance:.1f}cm")
            return True
        return False
