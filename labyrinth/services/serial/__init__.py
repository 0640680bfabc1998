from .client import SerialTransport, open_serial
from .config import DeviceSignature, SerialConfig
from .discovery import list_serial_ports, matches_signature, select_device
from .exceptions import (
    SerialTransportError,
    SerialUnavailableError,
    SerialWriteError,
)
from .framing import LineFramer, encode_line
from .models import PortInfo, TransportEvent, TransportEventKind

__all__ = [
    "SerialTransport",
    "open_serial",
    "DeviceSignature",
    "SerialConfig",
    "list_serial_ports",
    "matches_signature",
    "select_device",
    "SerialTransportError",
    "SerialUnavailableError",
    "SerialWriteError",
    "LineFramer",
    "encode_line",
    "PortInfo",
    "TransportEvent",
    "TransportEventKind",
]
