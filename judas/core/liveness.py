"""
Host liveness checks
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from judas.core.models import ProbeOutcome
from judas.core.probes import TrackedProbe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LivenessCheck:
    """One step of the liveness cascade"""
    name: str
    kind: str  # key into the probe strategies: "http" or "tcp"
    port: int
    timeout: float


def default_checks(http_timeout: float = 0.8, tcp_timeout: float = 0.8):
    """HTTP on 80 and 8080, then SSH"""
    return (
        LivenessCheck("http", "http", 80, http_timeout),
        LivenessCheck("http-alt", "http", 8080, http_timeout),
        LivenessCheck("ssh", "tcp", 22, tcp_timeout),
    )


class HostLivenessProbe:
    """Runs the checks in order and stops at the first success

    Cancellation, whether seen on the flag before a check or reported by a
    probe, ends the cascade with a negative answer.
    """

    def __init__(self, strategies: Dict[str, TrackedProbe],
                 checks: Optional[Sequence[LivenessCheck]] = None,
                 is_cancelled: Callable[[], bool] = lambda: False):
        self.strategies = strategies
        self.checks = tuple(checks) if checks is not None else default_checks()
        self.is_cancelled = is_cancelled

        missing = {check.kind for check in self.checks} - set(strategies)
        if missing:
            raise ValueError(f"No probe strategy for: {', '.join(sorted(missing))}")

    async def first_match(self, host: str) -> Optional[str]:
        """Name of the first check that succeeds, or None"""
        for check in self.checks:
            if self.is_cancelled():
                return None

            result = await self.strategies[check.kind].probe(host, check.port, check.timeout)

            if result.outcome is ProbeOutcome.CANCELLED:
                return None
            if result.is_open:
                logger.debug(f"{host} is up ({check.name} on {check.port}, {result.elapsed:.3f}s)")
                return check.name

        return None

    async def is_alive(self, host: str) -> bool:
        return await self.first_match(host) is not None
