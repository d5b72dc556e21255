"""Forwarder - hands finished frames to the current outbound connection.

Delivery is best-effort: a frame that cannot be written right now is logged
and dropped. It is never queued or resent.
"""
from __future__ import annotations

import logging

from flowbridge.outcome import FailureKind, Outcome
from flowbridge.transports.base import TransportError
from flowbridge.transports.manager import ConnectionManager

logger = logging.getLogger("flowbridge.bridge.forwarder")


class Forwarder:
    def __init__(self, manager: ConnectionManager, send_timeout: float = 5.0):
        self.manager = manager
        self.send_timeout = send_timeout
        self.frames_delivered = 0
        self.frames_dropped = 0

    async def send(self, frame: bytes) -> Outcome:
        """Write `frame` to the current connection.

        Returns a truthy Outcome when every byte was written. With no
        connection the frame is dropped without a write attempt; a failed
        write tears the connection down so the reconnect loop replaces it.
        """
        async with self.manager.exclusive() as access:
            connection = access.connection
            if connection is None:
                self.frames_dropped += 1
                logger.warning("Not connected, dropping frame (%d bytes)", len(frame))
                return Outcome.failed(FailureKind.NOT_CONNECTED)

            try:
                await connection.write(frame, timeout=self.send_timeout)
            except TransportError as e:
                self.frames_dropped += 1
                logger.error("Send to %s failed: %s", self.manager.address, e)
                await access.discard()
                return Outcome.failed(FailureKind.SEND, str(e))

        self.frames_delivered += 1
        logger.debug("Sent to server: %s", frame.hex().upper())
        return Outcome.success()

    def get_stats(self) -> dict:
        return {
            "frames_delivered": self.frames_delivered,
            "frames_dropped": self.frames_dropped,
        }
