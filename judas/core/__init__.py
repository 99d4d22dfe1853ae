"""
Judas core probing engine
"""

from judas.core.discovery import HostScanCoordinator, ScanSession
from judas.core.errors import ConnectivityError, ScanError, ValidationError
from judas.core.models import Device, ProbeOutcome, ProbeResult, ScanProgress, ScanState
from judas.core.options import ScanOptions
from judas.core.portscan import PortScanCoordinator
from judas.core.targets import Prefix, SingleHost, TargetSetBuilder, parse_target_spec

__all__ = [
    "ConnectivityError",
    "Device",
    "HostScanCoordinator",
    "PortScanCoordinator",
    "Prefix",
    "ProbeOutcome",
    "ProbeResult",
    "ScanError",
    "ScanProgress",
    "ScanOptions",
    "ScanSession",
    "ScanState",
    "SingleHost",
    "TargetSetBuilder",
    "ValidationError",
    "parse_target_spec",
]
