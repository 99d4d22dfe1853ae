"""
Judas data model
Scan states, probe results and discovered devices
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ScanState(Enum):
    """Lifecycle of a coordinator"""
    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed-out"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.COMPLETED, ScanState.CANCELLED, ScanState.TIMED_OUT)


class ProbeOutcome(Enum):
    """Terminal outcome of a single probe"""
    OPEN = "open"
    CLOSED = "closed"
    TIMED_OUT = "timed-out"
    CANCELLED = "cancelled"


@dataclass
class ProbeResult:
    """Result for a single (host, port) probe"""
    host: str
    port: int
    outcome: ProbeOutcome
    elapsed: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.outcome is ProbeOutcome.OPEN

    @property
    def target(self):
        return self.host, self.port


@dataclass
class Device:
    """A host confirmed live during discovery

    Identity is the IP address; two devices with the same address compare
    equal regardless of id or ports.
    """
    ip_address: str
    open_ports: List[int] = field(default_factory=list, compare=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)

    def __hash__(self):
        return hash(self.ip_address)


@dataclass
class ScanProgress:
    """Progress of a sweep"""
    scanned: int = 0
    total: int = 0

    @property
    def fraction(self) -> float:
        if not self.total:
            return 0.0
        return self.scanned / self.total
