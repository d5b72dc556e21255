"""Frame receiver - the server side of the wire format, for local testing.

Accepts any number of TCP clients, cuts their streams into STX..ETX frames
and reports each decoded payload to a callback.

Payload bytes equal to STX or ETX are not escaped by senders, so such a
payload is cut at the first ETX and anything after it is treated as noise
until the next STX.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from flowbridge.constants import DEFAULT_FOOTER, DEFAULT_HEADER, ETX, STX, WIRE_ENCODING
from flowbridge.bridge.protocol import unescape_special_characters

logger = logging.getLogger("flowbridge.receiver")


@dataclass(frozen=True)
class ReceivedFrame:
    payload: str
    raw: bytes
    peer: str = ""


class FrameDecoder:
    """Incremental STX/ETX frame splitter for one byte stream."""

    def __init__(self, header: str = DEFAULT_HEADER, footer: str = DEFAULT_FOOTER):
        self.header = header.encode(WIRE_ENCODING)
        self.footer = footer.encode(WIRE_ENCODING)
        self._buffer = bytearray()
        self.malformed = 0

    def feed(self, chunk: bytes) -> List[bytes]:
        """Return the raw bodies (between STX and ETX) of every completed frame."""
        self._buffer += chunk
        bodies: List[bytes] = []
        while True:
            start = self._buffer.find(bytes([STX]))
            if start < 0:
                self._buffer.clear()
                break
            if start:
                del self._buffer[:start]
            end = self._buffer.find(bytes([ETX]), 1)
            if end < 0:
                break
            bodies.append(bytes(self._buffer[1:end]))
            del self._buffer[: end + 1]
        return bodies

    def decode_body(self, body: bytes) -> Optional[str]:
        """Strip HEADER/FOOTER and unescape; None when the body does not match them."""
        if not body.startswith(self.header) or len(body) < len(self.header) + len(self.footer):
            return None
        if self.footer and not body.endswith(self.footer):
            return None
        inner = body[len(self.header): len(body) - len(self.footer)]
        return unescape_special_characters(inner.decode(WIRE_ENCODING))

    def feed_payloads(self, chunk: bytes) -> List[str]:
        payloads: List[str] = []
        for body in self.feed(chunk):
            payload = self.decode_body(body)
            if payload is None:
                self.malformed += 1
                logger.warning("Discarding malformed frame: %r", body)
                continue
            payloads.append(payload)
        return payloads


FrameHandler = Callable[[ReceivedFrame], None]


class FrameReceiver:
    """asyncio TCP server decoding frames from every connected client."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 1024,
        header: str = DEFAULT_HEADER,
        footer: str = DEFAULT_FOOTER,
        on_frame: Optional[FrameHandler] = None,
    ):
        self.host = host
        self.port = port
        self.header = header
        self.footer = footer
        self.on_frame = on_frame
        self.frames: List[ReceivedFrame] = []
        self._server: Optional[asyncio.Server] = None
        self._writers: Set[asyncio.StreamWriter] = set()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port)
        sockets = self._server.sockets or []
        if sockets:
            # Port 0 binds an ephemeral port; expose the real one.
            self.port = sockets[0].getsockname()[1]
        logger.info("Frame receiver listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            for writer in list(self._writers):
                writer.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("Frame receiver stopped")

    async def drop_clients(self) -> None:
        """Close every client connection but keep listening."""
        for writer in list(self._writers):
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ConnectionError):
                pass

    @property
    def client_count(self) -> int:
        return len(self._writers)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        addr = writer.get_extra_info("peername")
        peer = f"{addr[0]}:{addr[1]}" if addr else "unknown"
        logger.info("Client connected: %s", peer)
        self._writers.add(writer)
        decoder = FrameDecoder(self.header, self.footer)
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                for body in decoder.feed(data):
                    payload = decoder.decode_body(body)
                    if payload is None:
                        logger.warning("Malformed frame from %s: %r", peer, body)
                        continue
                    frame = ReceivedFrame(payload=payload, raw=bytes([STX]) + body + bytes([ETX]), peer=peer)
                    self.frames.append(frame)
                    if self.on_frame:
                        self.on_frame(frame)
        except (OSError, ConnectionError) as e:
            logger.info("Client %s error: %s", peer, e)
        finally:
            self._writers.discard(writer)
            writer.close()
            logger.info("Client disconnected: %s", peer)
