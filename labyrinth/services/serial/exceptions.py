"""Serial transport exceptions."""


class SerialTransportError(Exception):
    """Base exception for serial transport errors."""

    def __init__(self, message: str, port: str | None = None):
        super().__init__(message)
        self.port = port


class SerialUnavailableError(SerialTransportError):
    """No matching device, or the port could not be opened."""

    pass


class SerialWriteError(SerialTransportError):
    """Writing a command to the open port failed."""

    pass
