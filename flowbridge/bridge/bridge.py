"""Bridge orchestrator - runs the reader and reconnect activities side by side.

Both activities share one stop event. Stopping the bridge sets it, waits for
the reader to close the device and tears down the outbound connection.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from flowbridge.config import BridgeConfig
from flowbridge.outcome import Outcome
from flowbridge.transports.base import SourceInterface
from flowbridge.transports.manager import ConnectionFactory, ConnectionManager

from .forwarder import Forwarder
from .protocol import MessageFramer, PayloadTransformer
from .reader import SerialReader

logger = logging.getLogger("flowbridge.bridge")


class Bridge:
    """Serial -> TCP bridge.

    Example:
        bridge = Bridge(BridgeConfig(serial_port="/dev/ttyUSB0", host="10.0.0.5", port=1024))
        await bridge.start()
        ...
        await bridge.stop()
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        *,
        source: Optional[SourceInterface] = None,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self.config = config or BridgeConfig()
        self.config.validate()

        if source is None:
            from flowbridge.transports.serial_async import SerialSource

            source = SerialSource(
                self.config.serial_port,
                baudrate=self.config.baudrate,
                read_timeout=self.config.read_timeout,
            )

        self._manager = ConnectionManager(
            self.config.host,
            self.config.port,
            retry_delay=self.config.retry_delay,
            connect_timeout=self.config.connect_timeout,
            connection_factory=connection_factory,
        )
        self._forwarder = Forwarder(self._manager, send_timeout=self.config.send_timeout)
        self._reader = SerialReader(
            source,
            self._forwarder,
            framer=MessageFramer(self.config.header, self.config.footer),
            transformer=PayloadTransformer(),
            poll_interval=self.config.poll_interval,
        )

        self._stop_event = asyncio.Event()
        self._reader_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self) -> None:
        """Start the reconnect and reader activities in the background."""
        if self._running:
            return
        logger.info("Starting serial-to-TCP bridge...")
        logger.info("  Serial: %s @ %d baud", self.config.serial_port, self.config.baudrate)
        logger.info("  Server: %s", self._manager.address)
        self._stop_event.clear()
        self._running = True
        self._reconnect_task = asyncio.create_task(self._manager.run(self._stop_event), name="reconnect")
        self._reader_task = asyncio.create_task(self._reader.run(self._stop_event), name="serial-reader")
        self._reconnect_task.add_done_callback(self._on_reconnect_done)
        self._reader_task.add_done_callback(self._on_reader_done)

    def _on_reconnect_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if ex := task.exception():
            logger.error("Reconnect activity crashed: %s", ex, exc_info=ex)

    def _on_reader_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if ex := task.exception():
            logger.error("Reader activity crashed: %s", ex, exc_info=ex)
            return
        outcome: Outcome = task.result()
        if not outcome and not self._stop_event.is_set():
            # Degraded: the reconnect activity keeps running without a device.
            logger.error("Reader activity stopped (%s); bridge keeps its connection", outcome)

    async def stop(self) -> None:
        """Signal both activities to stop and wait for them."""
        if not self._running:
            return
        logger.info("Stopping bridge...")
        self._stop_event.set()
        try:
            for task in (self._reader_task, self._reconnect_task):
                if task is None or task.done():
                    continue
                try:
                    await asyncio.wait_for(task, timeout=self.config.connect_timeout + 1.0)
                except asyncio.TimeoutError:
                    logger.warning("Task %s did not stop in time; cancelled", task.get_name())
                except asyncio.CancelledError:
                    pass
                except Exception:
                    # Already logged by the task's done callback.
                    pass
        finally:
            await self._manager.disconnect()
            self._running = False
        logger.info("Program exited cleanly.")

    async def run_forever(self) -> None:
        """Run the bridge until cancelled."""
        await self.start()
        try:
            await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def forwarder(self) -> Forwarder:
        return self._forwarder

    @property
    def reader(self) -> SerialReader:
        return self._reader

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def reader_alive(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done()

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "reader_alive": self.reader_alive,
            "state": self._manager.state.name,
            "connect_attempts": self._manager.connect_attempts,
            "connect_failures": self._manager.connect_failures,
            **self._reader.get_stats(),
            **self._forwarder.get_stats(),
        }
