import asyncio
import logging
from typing import Optional

from .base import ConnectError, ConnectionInterface, NotConnectedError, SendError

logger = logging.getLogger("flowbridge.transports.tcp")


class TcpConnection(ConnectionInterface):
    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.connected = False
        self._rx_task: Optional[asyncio.Task] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    async def open(self, timeout: float):
        if self.connected:
            return
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectError(f"timed out after {timeout:g}s") from e
        except (OSError, UnicodeError, ValueError) as e:
            # Malformed host names fail in the idna codec, not the socket layer.
            raise ConnectError(str(e) or e.__class__.__name__) from e
        self.connected = True
        self._rx_task = asyncio.create_task(self._rx_loop())

    async def close(self):
        self.connected = False
        if self._rx_task:
            self._rx_task.cancel()
            try:
                await self._rx_task
            except asyncio.CancelledError:
                pass
            self._rx_task = None
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (OSError, ConnectionError) as e:
                logger.debug("Error while closing %s: %s", self.address, e)
            self.writer = None
            self.reader = None

    async def write(self, data: bytes, timeout: float):
        if not self.connected or not self.writer:
            raise NotConnectedError("TcpConnection: not connected")
        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SendError(f"write stalled for {timeout:g}s") from e
        except (OSError, ConnectionError) as e:
            raise SendError(str(e) or e.__class__.__name__) from e

    async def _rx_loop(self):
        # The remote end never replies; reading only detects a closed peer.
        try:
            while self.connected and self.reader:
                data = await self.reader.read(4096)
                if not data:
                    logger.info("Remote %s closed the connection", self.address)
                    self.connected = False
                    break
                logger.debug("Ignoring %d bytes from %s", len(data), self.address)
        except asyncio.CancelledError:
            return
        except (OSError, ConnectionError) as e:
            logger.info("Connection to %s lost: %s", self.address, e)
            self.connected = False
