"""Serial -> TCP bridge core.

Device bytes flow through LineAssembler, PayloadTransformer and
MessageFramer; the Forwarder hands each frame to the single connection
owned by the ConnectionManager.
"""

from .bridge import Bridge
from .forwarder import Forwarder
from .protocol import LineAssembler, MessageFramer, PayloadTransformer
from .reader import SerialReader

__all__ = [
    "Bridge",
    "Forwarder",
    "LineAssembler",
    "MessageFramer",
    "PayloadTransformer",
    "SerialReader",
]
