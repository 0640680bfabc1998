"""Line vocabulary shared by the host and the maze controller.

Lines are ASCII, newline-terminated and case-sensitive. Anything outside
this vocabulary is passed along by the transport but never acted on.
"""

from enum import Enum

START = "START"
FINISH = "FINISH"


class Message(str, Enum):
    START = START  # host -> device
    FINISH = FINISH  # device -> host


def parse_message(line: str | None) -> Message | None:
    """Map a received line onto the vocabulary; unknown content gives None."""
    if not isinstance(line, str):
        return None
    try:
        return Message(line.strip())
    except ValueError:
        return None
