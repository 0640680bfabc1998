"""Serial port enumeration and maze controller detection."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from serial.tools import list_ports

from .config import DeviceSignature
from .models import PortInfo

logger = logging.getLogger(__name__)


def list_serial_ports() -> list[PortInfo]:
    """Enumerate the serial ports visible to the OS."""
    ports = []
    for port in list_ports.comports():
        ports.append(
            PortInfo(
                device=str(port.device),
                description=str(port.description or ""),
                manufacturer=port.manufacturer,
                vid=port.vid,
                pid=port.pid,
            )
        )
    ports.sort(key=lambda p: p.device)
    return ports


def matches_signature(port: PortInfo, signatures: Iterable[DeviceSignature]) -> bool:
    return any(sig.matches(port.manufacturer, port.vid) for sig in signatures)


def select_device(
    ports: Iterable[PortInfo],
    signatures: Iterable[DeviceSignature],
) -> PortInfo | None:
    """Return the first port matching the allow-list, or None."""
    signatures = list(signatures)
    for port in ports:
        if matches_signature(port, signatures):
            logger.info(f"Maze controller found on port: {port.device}")
            return port

    logger.warning(
        "No maze controller found automatically. "
        "Set serial.port or pass --port to choose one manually."
    )
    return None
