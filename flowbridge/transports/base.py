from abc import ABC, abstractmethod


class TransportError(Exception):
    """Base class for failures raised by the low-level transports."""


class DeviceOpenError(TransportError):
    pass


class SerialReadError(TransportError):
    pass


class DeviceLostError(SerialReadError):
    """The serial device reported end-of-stream; further reads are pointless."""


class ConnectError(TransportError):
    pass


class SendError(TransportError):
    pass


class NotConnectedError(SendError):
    pass


class SourceInterface(ABC):
    """Byte-oriented input device (the serial side)."""

    @abstractmethod
    async def open(self):
        pass

    @abstractmethod
    async def read(self) -> bytes:
        """Return the next chunk, or b"" if nothing arrived before the read timeout."""

    @abstractmethod
    async def close(self):
        pass


class ConnectionInterface(ABC):
    """Outbound byte-stream connection (the network side)."""

    connected: bool = False

    @abstractmethod
    async def open(self, timeout: float):
        pass

    @abstractmethod
    async def write(self, data: bytes, timeout: float):
        pass

    @abstractmethod
    async def close(self):
        pass
