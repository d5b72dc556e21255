"""flowbridge - serial line to TCP frame bridge.

Reads CR-terminated lines from a serial device, reframes each one as an
STX/ETX delimited message and forwards it, best-effort, over a single
persistent TCP connection.
"""

__version__ = "0.3.0"
