from pydantic import BaseModel, Field


class DeviceSignature(BaseModel):
    """One allow-list entry used to recognise the maze controller."""

    manufacturer: str | None = None
    vid: int | None = None

    def matches(self, manufacturer: str | None, vid: int | None) -> bool:
        if self.manufacturer is None and self.vid is None:
            return False
        if self.manufacturer is not None:
            if not manufacturer or self.manufacturer.lower() not in manufacturer.lower():
                return False
        if self.vid is not None and vid != self.vid:
            return False
        return True


def _default_signatures() -> list[DeviceSignature]:
    return [
        DeviceSignature(manufacturer="Arduino"),
        DeviceSignature(manufacturer="wch.cn"),
        DeviceSignature(vid=0x2341),
    ]


class SerialConfig(BaseModel):
    """Configuration for the serial transport."""

    port: str | None = None  # manual override, skips discovery
    baud_rate: int = 9600
    read_timeout_seconds: float = 0.1
    write_timeout_seconds: float = 1.0
    read_chunk_size: int = 256
    event_queue_size: int = 256
    device_signatures: list[DeviceSignature] = Field(default_factory=_default_signatures)
