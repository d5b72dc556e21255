import random

import pytest

from flowbridge.bridge.protocol import (
    ETX,
    STX,
    WIRE_ENCODING,
    LineAssembler,
    MessageFramer,
    PayloadTransformer,
    drop_type_marker,
    escape_special_characters,
    strip_leading_non_alnum,
    unescape_special_characters,
)

HEADER = b"STM:1:1::1"


def _frame(payload: bytes) -> bytes:
    return bytes([STX]) + HEADER + payload + b":" + bytes([ETX])


def test_assembler_split_chunks():
    asm = LineAssembler()
    assert asm.feed(b"AB") == []
    assert asm.pending == b"AB"
    assert asm.feed(b"C\r") == [b"ABC"]
    assert asm.pending == b""


def test_assembler_multiple_and_empty_lines():
    asm = LineAssembler()
    assert asm.feed(b"one\r\rtwo\rthr") == [b"one", b"", b"two"]
    assert asm.feed(b"ee\r") == [b"three"]


def test_assembler_keeps_newlines():
    asm = LineAssembler()
    assert asm.feed(b"\nabc\r") == [b"\nabc"]


def test_assembler_reset_drops_partial():
    asm = LineAssembler()
    asm.feed(b"partial")
    asm.reset()
    assert asm.feed(b"x\r") == [b"x"]


def test_assembler_conserves_bytes():
    rng = random.Random(1234)
    for _ in range(50):
        data = bytes(rng.choice(b"ab\r:#\\\x02") for _ in range(rng.randint(0, 80)))
        asm = LineAssembler()
        lines = []
        pos = 0
        while pos < len(data):
            step = rng.randint(1, 7)
            lines.extend(asm.feed(data[pos:pos + step]))
            pos += step
        assert b"".join(lines) + asm.pending == data.replace(b"\r", b"")
        assert len(lines) == data.count(b"\r")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("#1234", "1234"),
        ("  -- x", "x"),
        ("A:B", "A:B"),
        ("#!?", ""),
        ("", ""),
        ("\xe9abc", "abc"),
    ],
)
def test_strip_leading_non_alnum(text, expected):
    assert strip_leading_non_alnum(text) == expected


def test_strip_removes_only_leading_run():
    assert strip_leading_non_alnum("##a#b") == "a#b"


def test_drop_type_marker():
    assert drop_type_marker("1234") == "234"
    assert drop_type_marker("7") == "7"
    assert drop_type_marker("") == ""


def test_escape():
    assert escape_special_characters("plain text 123") == "plain text 123"
    assert escape_special_characters("A:B") == "A\\:B"
    assert escape_special_characters("a\\b") == "a\\\\b"
    assert escape_special_characters("\\:") == "\\\\\\:"


def test_unescape_inverts_escape():
    for text in ["", "A:B", "x\\:y", "\\\\", "::", "end\\"]:
        assert unescape_special_characters(escape_special_characters(text)) == text


def test_transformer_rules():
    t = PayloadTransformer()
    assert t.transform("#1234") == "234"
    assert t.transform("A:B") == "\\:B"
    assert t.transform("#") == ""
    assert t.transform("##9") == "9"
    assert t.clean("A:B") == ":B"


def test_framer_layout():
    framer = MessageFramer()
    assert framer.frame("234") == _frame(b"234")
    assert framer.frame("") == _frame(b"")


def test_framer_custom_header_footer():
    framer = MessageFramer(header="H|", footer="|F")
    assert framer.frame("x") == b"\x02H|x|F\x03"


def test_end_to_end_hash_line():
    asm = LineAssembler()
    (line,) = asm.feed(b"#1234\r")
    payload = PayloadTransformer().transform(line.decode(WIRE_ENCODING))
    assert MessageFramer().frame(payload) == _frame(b"234")


def test_end_to_end_colon_line():
    asm = LineAssembler()
    (line,) = asm.feed(b"A:B\r")
    payload = PayloadTransformer().transform(line.decode(WIRE_ENCODING))
    assert payload == "\\:B"
    assert MessageFramer().frame(payload) == _frame(b"\\:B")


def test_high_bytes_pass_through():
    payload = PayloadTransformer().transform(b"X\xff\xfe".decode(WIRE_ENCODING))
    assert MessageFramer().frame(payload) == _frame(b"\xff\xfe")
