"""Line extraction, payload cleanup and frame building.

Wire format of one frame:

    0x02 | HEADER | escaped payload | FOOTER | 0x03

Inside HEADER and FOOTER the colon is a field separator, so the payload
escapes `\\` as `\\\\` and `:` as `\\:`. STX/ETX are not escaped.
"""
from __future__ import annotations

from typing import List

from flowbridge.constants import (
    CR,
    DEFAULT_FOOTER,
    DEFAULT_HEADER,
    ETX,
    STX,
    WIRE_ENCODING,
)


class LineAssembler:
    """Turns arbitrary byte chunks into complete delimiter-terminated lines.

    A partial line is kept between calls until its delimiter arrives.
    """

    def __init__(self, delimiter: int = CR):
        self.delimiter = bytes([delimiter])
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[bytes]:
        """Append `chunk` and return every line it completed (possibly empty ones)."""
        self._buffer += chunk
        lines: List[bytes] = []
        while True:
            pos = self._buffer.find(self.delimiter)
            if pos < 0:
                break
            lines.append(bytes(self._buffer[:pos]))
            del self._buffer[: pos + 1]
        return lines

    @property
    def pending(self) -> bytes:
        return bytes(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()


def _is_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def strip_leading_non_alnum(text: str) -> str:
    i = 0
    while i < len(text) and not _is_alnum(text[i]):
        i += 1
    return text[i:]


def drop_type_marker(text: str) -> str:
    """Drop the first character when more than one remains.

    Kept as observed on deployed devices; the first character is believed to
    be a device type marker.
    """
    if len(text) > 1:
        return text[1:]
    return text


def escape_special_characters(text: str) -> str:
    return text.replace("\\", "\\\\").replace(":", "\\:")


def unescape_special_characters(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text) and text[i + 1] in "\\:":
            out.append(text[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


class PayloadTransformer:
    """Applies the legacy cleanup rules to a raw line."""

    def clean(self, line: str) -> str:
        """Cleanup without escaping; this is what gets logged as modified data."""
        return drop_type_marker(strip_leading_non_alnum(line))

    def transform(self, line: str) -> str:
        return escape_special_characters(self.clean(line))


class MessageFramer:
    """Wraps an escaped payload into a complete frame."""

    def __init__(self, header: str = DEFAULT_HEADER, footer: str = DEFAULT_FOOTER):
        self.header = header
        self.footer = footer
        self._prefix = bytes([STX]) + header.encode(WIRE_ENCODING)
        self._suffix = footer.encode(WIRE_ENCODING) + bytes([ETX])

    def frame(self, payload: str) -> bytes:
        return self._prefix + payload.encode(WIRE_ENCODING) + self._suffix
