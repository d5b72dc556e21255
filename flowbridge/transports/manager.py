import asyncio
import logging
from enum import Enum, auto
from typing import Callable, Optional

from flowbridge.outcome import FailureKind, Outcome

from .base import ConnectionInterface, TransportError
from .tcp import TcpConnection

logger = logging.getLogger("flowbridge.transports.manager")

ConnectionFactory = Callable[[], ConnectionInterface]


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()


class ConnectionManager:
    """Owns the single outbound connection and keeps it alive.

    The current handle is only touched while holding `lock`. The reconnect
    loop (`run`) is the only place new connections are created; senders get
    at the handle through `exclusive()`.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        retry_delay: float = 3.0,
        connect_timeout: float = 5.0,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self.host = host
        self.port = port
        self.retry_delay = retry_delay
        self.connect_timeout = connect_timeout
        self._factory: ConnectionFactory = connection_factory or (lambda: TcpConnection(host, port))
        self._connection: Optional[ConnectionInterface] = None
        self._connecting = False
        self.lock = asyncio.Lock()
        self.connect_attempts = 0
        self.connect_failures = 0

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def state(self) -> ConnectionState:
        """Snapshot of the connection state, for display and statistics."""
        if self._connecting:
            return ConnectionState.CONNECTING
        if self._connection is not None and self._connection.connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    async def connect(self) -> Outcome:
        """Make one connection attempt, replacing any existing handle."""
        async with self.lock:
            await self._discard_locked()
            self._connecting = True
            self.connect_attempts += 1
            connection = self._factory()
            logger.info("Connecting to %s...", self.address)
            try:
                await connection.open(timeout=self.connect_timeout)
            except TransportError as e:
                self.connect_failures += 1
                logger.warning("Connect to %s failed: %s", self.address, e)
                return Outcome.failed(FailureKind.CONNECT, str(e))
            finally:
                self._connecting = False
            self._connection = connection
            logger.info("Connected to %s", self.address)
            return Outcome.success()

    async def disconnect(self) -> None:
        async with self.lock:
            await self._discard_locked()

    async def run(self, stop_event: asyncio.Event) -> None:
        """Reconnect loop: connect whenever disconnected, then wait `retry_delay`."""
        logger.debug("Reconnect loop started (retry every %gs)", self.retry_delay)
        while not stop_event.is_set():
            async with self.lock:
                if self._connection is not None and not self._connection.connected:
                    logger.info("Connection to %s is no longer usable", self.address)
                    await self._discard_locked()
                needs_connect = self._connection is None

            if needs_connect:
                await self.connect()

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.retry_delay)
            except asyncio.TimeoutError:
                pass
        logger.debug("Reconnect loop stopped")

    def exclusive(self) -> "ConnectionManager._ExclusiveAccess":
        """Return an async context manager granting sole use of the current handle.

        Usage:
            async with manager.exclusive() as access:
                if access.connection is not None:
                    await access.connection.write(frame, timeout=5.0)
        """
        return ConnectionManager._ExclusiveAccess(self)

    class _ExclusiveAccess:
        def __init__(self, manager: "ConnectionManager"):
            self._m = manager

        async def __aenter__(self):
            await self._m.lock.acquire()
            return self

        async def __aexit__(self, exc_type, exc, tb):
            self._m.lock.release()

        @property
        def connection(self) -> Optional[ConnectionInterface]:
            conn = self._m._connection
            if conn is not None and not conn.connected:
                return None
            return conn

        async def discard(self) -> None:
            await self._m._discard_locked()

    async def _discard_locked(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except TransportError as e:
            logger.debug("Error closing connection to %s: %s", self.address, e)
