from collections import deque
from typing import Iterable, List, Optional, Union

from .base import (
    ConnectError,
    ConnectionInterface,
    DeviceOpenError,
    NotConnectedError,
    SendError,
    SourceInterface,
    TransportError,
)


class MockConnection(ConnectionInterface):
    """In-memory connection that records every frame written to it."""

    def __init__(self, fail_open: bool = False, fail_write: bool = False):
        self.connected = False
        self.fail_open = fail_open
        self.fail_write = fail_write
        self.sent: List[bytes] = []
        self.open_calls = 0
        self.write_calls = 0
        self.close_calls = 0

    async def open(self, timeout: float):
        self.open_calls += 1
        if self.fail_open:
            raise ConnectError("connection refused")
        self.connected = True

    async def write(self, data: bytes, timeout: float):
        self.write_calls += 1
        if not self.connected:
            raise NotConnectedError("MockConnection: not connected")
        if self.fail_write:
            raise SendError("broken pipe")
        self.sent.append(bytes(data))

    async def close(self):
        self.close_calls += 1
        self.connected = False

    def drop(self):
        """Simulate the peer closing the stream."""
        self.connected = False


class MockConnectionFactory:
    """Connection factory for ConnectionManager that keeps every handle it made."""

    def __init__(self, fail_open: bool = False):
        self.fail_open = fail_open
        self.created: List[MockConnection] = []

    def __call__(self) -> MockConnection:
        conn = MockConnection(fail_open=self.fail_open)
        self.created.append(conn)
        return conn

    @property
    def latest(self) -> Optional[MockConnection]:
        return self.created[-1] if self.created else None

    @property
    def sent(self) -> List[bytes]:
        return [frame for conn in self.created for frame in conn.sent]


class MockSerialSource(SourceInterface):
    """Serial stand-in fed from a queue of chunks or exceptions."""

    def __init__(
        self,
        chunks: Iterable[Union[bytes, TransportError]] = (),
        fail_open: bool = False,
    ):
        self.fail_open = fail_open
        self.opened = False
        self.close_calls = 0
        self.read_calls = 0
        self._queue: "deque[Union[bytes, TransportError]]" = deque(chunks)

    def push(self, chunk: Union[bytes, TransportError]):
        self._queue.append(chunk)

    @property
    def drained(self) -> bool:
        return not self._queue

    async def open(self):
        if self.fail_open:
            raise DeviceOpenError("mock: no such device")
        self.opened = True

    async def read(self) -> bytes:
        self.read_calls += 1
        if not self._queue:
            return b""
        item = self._queue.popleft()
        if isinstance(item, TransportError):
            raise item
        return item

    async def close(self):
        self.close_calls += 1
        self.opened = False
