"""
Scan configuration
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WATCHDOG_MIN = 10.0
WATCHDOG_MAX = 300.0
WATCHDOG_DEFAULT = 60.0


def clamp_watchdog(seconds: float) -> float:
    """Clamp a watchdog duration to the supported range"""
    clamped = min(max(float(seconds), WATCHDOG_MIN), WATCHDOG_MAX)
    if clamped != seconds:
        logger.info(f"Watchdog timeout {seconds}s clamped to {clamped:.0f}s")
    return clamped


@dataclass
class ScanOptions:
    """Configuration options for discovery and port scans

    Only the watchdog fields are meant to be tuned from outside; the rest
    are the engine's working constants.
    """
    watchdog_enabled: bool = True
    watchdog_timeout: float = WATCHDOG_DEFAULT

    # Host discovery
    host_concurrency: int = 2
    launch_interval: float = 0.05  # between scheduled starts
    http_timeout: float = 0.8
    tcp_timeout: float = 0.8
    drain_timeout: float = 2.0

    # Port scan
    port_timeout: float = 2.0
    port_concurrency: int = 32
    port_pause_every: int = 10
    port_pause: float = 0.1

    def __post_init__(self):
        self.watchdog_timeout = clamp_watchdog(self.watchdog_timeout)
        if self.host_concurrency < 1:
            raise ValueError("host_concurrency must be at least 1")
        if self.port_concurrency < 1:
            raise ValueError("port_concurrency must be at least 1")
