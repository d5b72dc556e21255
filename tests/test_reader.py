import asyncio

import pytest

from flowbridge.bridge.forwarder import Forwarder
from flowbridge.bridge.protocol import MessageFramer, PayloadTransformer
from flowbridge.bridge.reader import SerialReader
from flowbridge.outcome import FailureKind
from flowbridge.transports.base import DeviceLostError, SerialReadError
from flowbridge.transports.manager import ConnectionManager
from flowbridge.transports.mock import MockConnectionFactory, MockSerialSource


def _reader(source):
    factory = MockConnectionFactory()
    cm = ConnectionManager("127.0.0.1", 9, connection_factory=factory)
    reader = SerialReader(source, Forwarder(cm), poll_interval=0.001)
    return factory, cm, reader


@pytest.mark.asyncio
async def test_poll_forwards_completed_lines_in_order():
    source = MockSerialSource([b"#1234\rA:B", b"\r\r"])
    factory, cm, reader = _reader(source)
    await cm.connect()
    await reader.open()

    await reader.poll()
    await reader.poll()

    framer = MessageFramer()
    assert factory.latest.sent == [framer.frame("234"), framer.frame("\\:B")]
    assert reader.lines_read == 2
    assert reader.empty_lines == 1


@pytest.mark.asyncio
async def test_partial_line_waits_for_delimiter():
    source = MockSerialSource([b"AB"])
    factory, cm, reader = _reader(source)
    await cm.connect()
    await reader.open()

    await reader.poll()
    assert factory.latest.sent == []

    source.push(b"C\r")
    await reader.poll()
    assert factory.latest.sent == [MessageFramer().frame("BC")]


@pytest.mark.asyncio
async def test_transient_read_failure_is_reported():
    source = MockSerialSource([SerialReadError("framing error"), b"x1\r"])
    factory, cm, reader = _reader(source)
    await cm.connect()
    await reader.open()

    first = await reader.poll()
    second = await reader.poll()

    assert first.failure is FailureKind.TRANSIENT_READ
    assert second
    assert reader.read_errors == 1
    assert len(factory.latest.sent) == 1


@pytest.mark.asyncio
async def test_lines_dropped_while_disconnected():
    source = MockSerialSource([b"abc\r"])
    factory, cm, reader = _reader(source)
    await reader.open()

    await reader.poll()

    assert reader.lines_read == 1
    assert reader.forwarder.frames_dropped == 1


def test_run_reads_until_stopped():
    async def run():
        source = MockSerialSource([b"#1", b"0\r", SerialReadError("glitch"), b"#77\r"])
        factory, cm, reader = _reader(source)
        await cm.connect()
        stop = asyncio.Event()
        task = asyncio.create_task(reader.run(stop))
        for _ in range(200):
            if source.drained:
                break
            await asyncio.sleep(0.01)
        stop.set()
        outcome = await asyncio.wait_for(task, timeout=1.0)
        return source, factory, outcome

    source, factory, outcome = asyncio.run(run())
    assert outcome
    assert source.close_calls == 1
    assert factory.latest.sent == [MessageFramer().frame("0"), MessageFramer().frame("7")]


def test_run_reports_device_open_failure():
    async def run():
        source = MockSerialSource(fail_open=True)
        _, _, reader = _reader(source)
        return await reader.run(asyncio.Event()), source

    outcome, source = asyncio.run(run())
    assert outcome.failure is FailureKind.DEVICE_OPEN
    assert source.read_calls == 0


def test_run_ends_when_device_lost():
    async def run():
        source = MockSerialSource([b"ab\r", DeviceLostError("device closed")])
        _, _, reader = _reader(source)
        return await asyncio.wait_for(reader.run(asyncio.Event()), timeout=1.0), source

    outcome, source = asyncio.run(run())
    assert outcome.failure is FailureKind.DEVICE_LOST
    assert source.close_calls == 1


@pytest.mark.asyncio
async def test_frames_come_from_the_configured_transformer():
    class Upper(PayloadTransformer):
        def transform(self, line: str) -> str:
            return line.upper()

    factory = MockConnectionFactory()
    cm = ConnectionManager("127.0.0.1", 9, connection_factory=factory)
    reader = SerialReader(MockSerialSource([b"#ab:c\r"]), Forwarder(cm), transformer=Upper())
    await cm.connect()
    await reader.open()

    await reader.poll()

    assert factory.latest.sent == [MessageFramer().frame("#AB:C")]
