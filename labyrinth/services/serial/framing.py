"""Newline framing for the serial byte stream."""

LINE_TERMINATOR = b"\n"


class LineFramer:
    """Splits a byte stream into trimmed text lines.

    Bytes after the last terminator stay buffered until more data arrives.
    `reset()` drops that partial tail; it is never delivered.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[str]:
        self._buffer.extend(chunk)
        lines: list[str] = []
        while True:
            index = self._buffer.find(LINE_TERMINATOR)
            if index < 0:
                break
            raw = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            line = raw.decode(self.encoding, "replace").strip()
            if line:
                lines.append(line)
        return lines

    def reset(self) -> None:
        self._buffer.clear()


def encode_line(command: str, encoding: str = "utf-8") -> bytes:
    """Encode one outbound command with its terminator."""
    return command.strip().encode(encoding) + LINE_TERMINATOR
