"""Wire constants shared by the bridge and the frame receiver."""

STX = 0x02
ETX = 0x03
CR = 0x0D

DEFAULT_HEADER = "STM:1:1::1"
DEFAULT_FOOTER = ":"

# One byte <-> one character, so frames carry the device's bytes unchanged.
WIRE_ENCODING = "latin-1"
