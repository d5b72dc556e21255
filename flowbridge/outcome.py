"""Typed results returned at the bridge's operation boundaries.

The bridge's long-running activities never let a failure escape; connect,
send and read operations report what happened as an `Outcome` instead.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(Enum):
    DEVICE_OPEN = "device-open"
    TRANSIENT_READ = "transient-read"
    DEVICE_LOST = "device-lost"
    CONNECT = "connect"
    SEND = "send"
    NOT_CONNECTED = "not-connected"


@dataclass(frozen=True)
class Outcome:
    ok: bool
    failure: Optional[FailureKind] = None
    detail: str = ""

    @classmethod
    def success(cls) -> "Outcome":
        return cls(ok=True)

    @classmethod
    def failed(cls, kind: FailureKind, detail: str = "") -> "Outcome":
        return cls(ok=False, failure=kind, detail=detail)

    def __bool__(self) -> bool:
        return self.ok

    def __str__(self) -> str:
        if self.ok:
            return "ok"
        if self.detail:
            return f"{self.failure.value}: {self.detail}"
        return self.failure.value
