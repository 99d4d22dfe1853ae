"""
Single-target probes
TCP connect and HTTP HEAD attempts raced against a local timer
"""

import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp

from judas.core.models import ProbeOutcome, ProbeResult
from judas.core.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def _retrieve(task: asyncio.Future):
    """Mark a discarded attempt's exception as seen"""
    if not task.cancelled():
        task.exception()


class TrackedProbe:
    """Base for probes whose attempts are tracked in a ConnectionRegistry

    The attempt runs as its own task and races a timer. Releasing the
    registry handle is the claim on the outcome: if ``cancel_all`` got there
    first the probe reports CANCELLED, whatever the attempt did.
    """

    name = "probe"

    def __init__(self, registry: ConnectionRegistry, timeout: float):
        self.registry = registry
        self.timeout = timeout

    async def _attempt(self, host: str, port: int, timeout: float) -> Any:
        raise NotImplementedError

    async def probe(self, host: str, port: int, timeout: Optional[float] = None) -> ProbeResult:
        """Probe one (host, port). Network failures never raise."""
        timeout = self.timeout if timeout is None else timeout
        start_time = time.monotonic()

        attempt = asyncio.ensure_future(self._attempt(host, port, timeout))
        handle = self.registry.register(attempt.cancel)

        try:
            done, _ = await asyncio.wait({attempt}, timeout=timeout)
        except asyncio.CancelledError:
            self.registry.release(handle)
            attempt.cancel()
            raise

        owned = self.registry.release(handle)

        if not owned:
            outcome = ProbeOutcome.CANCELLED
        elif not done:
            outcome = ProbeOutcome.TIMED_OUT
        elif attempt.cancelled():
            outcome = ProbeOutcome.CANCELLED
        elif attempt.exception() is not None:
            logger.debug(f"{self.name} {host}:{port} failed: {attempt.exception()!r}")
            outcome = ProbeOutcome.CLOSED
        else:
            outcome = ProbeOutcome.OPEN

        if not attempt.done():
            attempt.cancel()
        attempt.add_done_callback(_retrieve)

        return ProbeResult(
            host=host,
            port=port,
            outcome=outcome,
            elapsed=time.monotonic() - start_time,
        )


class PortProbe(TrackedProbe):
    """Full TCP connect probe"""

    name = "tcp"

    def __init__(self, registry: ConnectionRegistry, timeout: float = 2.0):
        super().__init__(registry, timeout)

    async def _attempt(self, host: str, port: int, timeout: float) -> bool:
        reader, writer = await asyncio.open_connection(host, port)
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Closing {host}:{port} raised {e!r}")
        return True


class HttpProbe(TrackedProbe):
    """HTTP HEAD probe; any HTTP response counts as open"""

    name = "http"

    def __init__(self, registry: ConnectionRegistry, session: aiohttp.ClientSession,
                 timeout: float = 0.8):
        super().__init__(registry, timeout)
        self.session = session

    async def _attempt(self, host: str, port: int, timeout: float) -> int:
        url = f"http://{host}:{port}/"
        async with self.session.head(
            url,
            allow_redirects=False,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            logger.debug(f"HEAD {url} -> {response.status}")
            return response.status
