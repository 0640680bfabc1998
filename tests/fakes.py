"""In-memory stand-ins for serial hardware used across the test suite."""

import queue
import threading
import time

import serial

from labyrinth.services.serial import PortInfo, SerialConfig

ARDUINO_PORT = PortInfo(
    device="/dev/ttyACM0",
    description="Arduino Uno",
    manufacturer="Arduino (www.arduino.cc)",
    vid=0x2341,
    pid=0x0043,
)
PLAIN_PORT = PortInfo(device="/dev/ttyS0", description="n/a")


class FakeSerial:
    """Scriptable replacement for `serial.Serial`."""

    def __init__(self, port: str):
        self.port = port
        self.written: list[bytes] = []
        self.closed = False
        self.read_error: str | None = None
        self.write_error: str | None = None
        self.on_write = None
        self._incoming: "queue.Queue[bytes]" = queue.Queue()

    def feed(self, data: bytes) -> None:
        self._incoming.put(data)

    def read(self, size: int = 1) -> bytes:
        if self.read_error:
            raise serial.SerialException(self.read_error)
        try:
            return self._incoming.get(timeout=0.01)
        except queue.Empty:
            return b""

    def write(self, data: bytes) -> int:
        if self.write_error:
            raise serial.SerialTimeoutException(self.write_error)
        self.written.append(data)
        if self.on_write is not None:
            self.on_write(data)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class FakeSerialFactory:
    """Opens FakeSerial handles for known ports, fails for the rest."""

    def __init__(self, *ports: str):
        self.available = set(ports)
        self.handles: dict[str, FakeSerial] = {}
        self.opened: list[str] = []

    def __call__(self, port: str, config: SerialConfig) -> FakeSerial:
        if port not in self.available:
            raise serial.SerialException(f"could not open port {port}")
        handle = FakeSerial(port)
        self.handles[port] = handle
        self.opened.append(port)
        return handle


class FakePortLister:
    def __init__(self, ports: list[PortInfo] | None = None):
        self.ports = list(ports or [])
        self.calls = 0

    def __call__(self) -> list[PortInfo]:
        self.calls += 1
        return list(self.ports)


class DeviceLink:
    """Device end of a null-modem pair with a host FakeSerial."""

    def __init__(self, host: FakeSerial):
        self.host = host
        self._lock = threading.Lock()
        self._inbound = bytearray()
        host.on_write = self._from_host

    def _from_host(self, data: bytes) -> None:
        with self._lock:
            self._inbound.extend(data)

    def read(self, size: int = 1) -> bytes:
        with self._lock:
            chunk = bytes(self._inbound[:size])
            del self._inbound[:size]
        return chunk

    def write(self, data: bytes) -> int:
        self.host.feed(data)
        return len(data)


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll a condition from synchronous test code."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
