from .base import (
    ConnectError,
    ConnectionInterface,
    DeviceLostError,
    DeviceOpenError,
    NotConnectedError,
    SendError,
    SerialReadError,
    SourceInterface,
    TransportError,
)
from .manager import ConnectionManager, ConnectionState

__all__ = [
    "ConnectError",
    "ConnectionInterface",
    "ConnectionManager",
    "ConnectionState",
    "DeviceLostError",
    "DeviceOpenError",
    "NotConnectedError",
    "SendError",
    "SerialReadError",
    "SourceInterface",
    "TransportError",
]
