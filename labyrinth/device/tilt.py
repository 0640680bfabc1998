"""Joystick to servo mapping for the two tilt axes."""

from typing import Protocol


class Joystick(Protocol):
    def read_x(self) -> int: ...

    def read_y(self) -> int: ...


class Servo(Protocol):
    def write(self, angle: float) -> None: ...


def map_range(
    value: float, in_min: float, in_max: float, out_min: float, out_max: float
) -> float:
    """Linearly map value from one range to another, clamped to the input range."""
    if in_max == in_min:
        return out_min
    value = max(min(value, max(in_min, in_max)), min(in_min, in_max))
    return out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)


class TiltController:
    """Drives the X and Y servos from the joystick while a run is active."""

    def __init__(
        self,
        joystick: Joystick,
        x_servo: Servo,
        y_servo: Servo,
        joystick_min: int = 0,
        joystick_max: int = 1023,
        x_range: tuple[float, float] = (60.0, 120.0),
        y_range: tuple[float, float] = (60.0, 120.0),
    ):
        self.joystick = joystick
        self.x_servo = x_servo
        self.y_servo = y_servo
        self.joystick_min = joystick_min
        self.joystick_max = joystick_max
        self.x_range = x_range
        self.y_range = y_range
        self.position: tuple[float, float] | None = None

    def center(self) -> tuple[float, float]:
        """Move both servos to the middle of their ranges."""
        x = sum(self.x_range) / 2
        y = sum(self.y_range) / 2
        return self._write(x, y)

    def update(self) -> tuple[float, float]:
        """Read both axes and command both servos. No acknowledgement is expected."""
        x = map_range(self.joystick.read_x(), self.joystick_min, self.joystick_max, *self.x_range)
        y = map_range(self.joystick.read_y(), self.joystick_min, self.joystick_max, *self.y_range)
        return self._write(x, y)

    def _write(self, x: float, y: float) -> tuple[float, float]:
        self.x_servo.write(x)
        self.y_servo.write(y)
        self.position = (x, y)
        return self.position
