import asyncio
import logging
from typing import Optional

import serial
import serial_asyncio

from .base import DeviceLostError, DeviceOpenError, SerialReadError, SourceInterface

logger = logging.getLogger("flowbridge.transports.serial")


class SerialSource(SourceInterface):
    """Serial device opened 8N1 with flow control off.

    `read()` waits at most `read_timeout` seconds and returns whatever the
    driver has buffered, which may be a fraction of a line.
    """

    def __init__(self, port: str, baudrate: int = 115200, read_timeout: float = 0.1):
        self.port = port
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.opened = False

    async def open(self):
        if self.opened:
            return
        logger.debug("SerialSource.open: port=%s baud=%s", self.port, self.baudrate)
        try:
            self.reader, self.writer = await serial_asyncio.open_serial_connection(
                url=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise DeviceOpenError(f"{self.port}: {e}") from e
        self.opened = True

    async def read(self) -> bytes:
        if not self.opened or not self.reader:
            raise SerialReadError(f"{self.port}: not open")
        try:
            data = await asyncio.wait_for(self.reader.read(4096), timeout=self.read_timeout)
        except asyncio.TimeoutError:
            return b""
        except (serial.SerialException, OSError) as e:
            raise SerialReadError(f"{self.port}: {e}") from e
        if not data:
            raise DeviceLostError(f"{self.port}: device closed")
        return data

    async def close(self):
        self.opened = False
        if self.writer:
            self.writer.transport.close()
            self.writer = None
            self.reader = None
