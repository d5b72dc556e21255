import asyncio

import pytest

from flowbridge.bridge.protocol import MessageFramer, PayloadTransformer
from flowbridge.receiver import FrameDecoder, FrameReceiver


def test_decoder_handles_split_and_noise():
    dec = FrameDecoder()
    framer = MessageFramer()
    data = b"noise" + framer.frame("234") + b"junk" + framer.frame("\\:B")

    payloads = []
    for i in range(0, len(data), 3):
        payloads.extend(dec.feed_payloads(data[i:i + 3]))

    assert payloads == ["234", ":B"]
    assert dec.malformed == 0


def test_decoder_rejects_wrong_header():
    dec = FrameDecoder()
    assert dec.feed_payloads(b"\x02OTHER:x:\x03") == []
    assert dec.malformed == 1


def test_decoder_custom_header_footer():
    framer = MessageFramer(header="H|", footer="|F")
    dec = FrameDecoder(header="H|", footer="|F")
    assert dec.feed_payloads(framer.frame("a\\\\b")) == ["a\\b"]


def test_decoder_roundtrips_transformed_lines():
    framer = MessageFramer()
    t = PayloadTransformer()
    dec = FrameDecoder()
    for line in ["#1234", "A:B", "x\\y:z", "??"]:
        assert dec.feed_payloads(framer.frame(t.transform(line))) == [t.clean(line)]


@pytest.mark.asyncio
async def test_receiver_collects_frames_from_client():
    seen = []
    receiver = FrameReceiver(host="127.0.0.1", port=0, on_frame=seen.append)
    await receiver.start()
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", receiver.port)
        frame = MessageFramer().frame("hello")
        writer.write(frame[:4])
        await writer.drain()
        writer.write(frame[4:] + b"\x02bad\x03")
        await writer.drain()
        for _ in range(300):
            if seen:
                break
            await asyncio.sleep(0.01)
        writer.close()
        await writer.wait_closed()
    finally:
        await receiver.stop()

    assert [f.payload for f in seen] == ["hello"]
    assert seen[0].raw == frame
    assert seen[0].peer.startswith("127.0.0.1:")
