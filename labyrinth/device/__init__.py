"""Python rendition of the maze controller firmware."""

from .controller import RunState, RunStateMachine
from .firmware import DeviceLoop
from .sampler import DistanceSampler, echo_to_distance_cm
from .tilt import TiltController, map_range

__all__ = [
    "RunState",
    "RunStateMachine",
    "DeviceLoop",
    "DistanceSampler",
    "echo_to_distance_cm",
    "TiltController",
    "map_range",
]
