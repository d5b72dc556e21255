"""Reader activity - polls the serial device and forwards every completed line."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from flowbridge.outcome import FailureKind, Outcome
from flowbridge.transports.base import (
    DeviceLostError,
    DeviceOpenError,
    SourceInterface,
    TransportError,
)

from .forwarder import Forwarder
from .protocol import (
    WIRE_ENCODING,
    LineAssembler,
    MessageFramer,
    PayloadTransformer,
)

logger = logging.getLogger("flowbridge.bridge.reader")


class SerialReader:
    """Runs device bytes through assembler, transformer and framer into the forwarder.

    Lines are forwarded in the order they complete, one at a time.
    """

    def __init__(
        self,
        source: SourceInterface,
        forwarder: Forwarder,
        framer: Optional[MessageFramer] = None,
        transformer: Optional[PayloadTransformer] = None,
        poll_interval: float = 0.05,
    ):
        self.source = source
        self.forwarder = forwarder
        self.framer = framer or MessageFramer()
        self.transformer = transformer or PayloadTransformer()
        self.assembler = LineAssembler()
        self.poll_interval = poll_interval

        self.lines_read = 0
        self.empty_lines = 0
        self.read_errors = 0
        self.last_read_size = 0
        self.exit_outcome: Optional[Outcome] = None

    async def open(self) -> Outcome:
        try:
            await self.source.open()
        except DeviceOpenError as e:
            logger.error("Error opening serial port: %s", e)
            return Outcome.failed(FailureKind.DEVICE_OPEN, str(e))
        self.assembler.reset()
        logger.info("Serial port opened successfully")
        return Outcome.success()

    async def poll(self) -> Outcome:
        """Do one read and forward every line it completed."""
        self.last_read_size = 0
        try:
            chunk = await self.source.read()
        except DeviceLostError as e:
            self.read_errors += 1
            logger.error("Serial device lost: %s", e)
            return Outcome.failed(FailureKind.DEVICE_LOST, str(e))
        except TransportError as e:
            self.read_errors += 1
            logger.warning("Serial read failed: %s", e)
            return Outcome.failed(FailureKind.TRANSIENT_READ, str(e))

        self.last_read_size = len(chunk)
        for line in self.assembler.feed(chunk):
            await self.handle_line(line)
        return Outcome.success()

    async def handle_line(self, line: bytes) -> Optional[Outcome]:
        if not line:
            self.empty_lines += 1
            return None
        self.lines_read += 1
        text = line.decode(WIRE_ENCODING)
        logger.debug("Raw serial data: %r", text)
        cleaned = self.transformer.clean(text)
        logger.debug("Modified serial data: %r", cleaned)
        frame = self.framer.frame(self.transformer.transform(text))
        return await self.forwarder.send(frame)

    async def run(self, stop_event: asyncio.Event) -> Outcome:
        """Reader loop; returns once stopped or when the device cannot be used."""
        opened = await self.open()
        if not opened:
            self.exit_outcome = opened
            return opened

        result = Outcome.success()
        try:
            while not stop_event.is_set():
                outcome = await self.poll()
                if outcome.failure is FailureKind.DEVICE_LOST:
                    result = outcome
                    break
                if self.last_read_size == 0:
                    try:
                        await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
                    except asyncio.TimeoutError:
                        pass
        finally:
            await self.source.close()
            logger.info("Serial port closed")
        self.exit_outcome = result
        return result

    def get_stats(self) -> dict:
        return {
            "lines_read": self.lines_read,
            "empty_lines": self.empty_lines,
            "read_errors": self.read_errors,
        }
