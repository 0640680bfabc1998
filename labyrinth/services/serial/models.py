from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class PortInfo(BaseModel):
    """Descriptor of one enumerated serial port."""

    device: str
    description: str = ""
    manufacturer: str | None = None
    vid: int | None = None
    pid: int | None = None


class TransportEventKind(str, Enum):
    LINE = "line"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class TransportEvent(BaseModel):
    """Item delivered to the transport's single consumer.

    Data lines and connection changes are separate kinds, so a device line
    can never be mistaken for a connection signal.
    """

    kind: TransportEventKind
    line: str | None = None
    port: str | None = None
    reason: str | None = None

    @classmethod
    def data(cls, line: str) -> TransportEvent:
        return cls(kind=TransportEventKind.LINE, line=line)

    @classmethod
    def connected(cls, port: str) -> TransportEvent:
        return cls(kind=TransportEventKind.CONNECTED, port=port)

    @classmethod
    def disconnected(cls, port: str | None, reason: str | None = None) -> TransportEvent:
        return cls(kind=TransportEventKind.DISCONNECTED, port=port, reason=reason)
