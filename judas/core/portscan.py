"""
Judas Port Scanner
Sweeps a fixed list of well-known TCP ports on one host
"""

import asyncio
import bisect
import ipaddress
import logging
import time
from typing import Callable, Iterable, List, Optional

from judas.core.models import Device, ProbeResult, ScanProgress, ScanState
from judas.core.options import ScanOptions
from judas.core.pacing import LaunchPacer
from judas.core.probes import PortProbe
from judas.core.registry import ConnectionRegistry
from judas.utils.services import WELL_KNOWN_PORTS

logger = logging.getLogger(__name__)


class PortScanRun:
    """One sweep of the port list against one host

    Owns the cancel flag, open ports and progress for that sweep. ``drained``
    is set once every probe launched by the sweep has reported.
    """

    def __init__(self, host: str, total: int):
        self.host = host
        self.open_ports: List[int] = []
        self.progress = ScanProgress(scanned=0, total=total)
        self.state = ScanState.SCANNING
        self.cancelled = False
        self.drained = asyncio.Event()
        self.task: Optional[asyncio.Task] = None


class PortScanCoordinator:
    """Probes every port in ``ports`` against one host

    Every port gets its own TCP connect probe. Launches are bounded by
    ``port_concurrency`` and pause briefly after every ``port_pause_every``-th
    launch. The scan returns once every probe has reported.
    """

    def __init__(self, options: Optional[ScanOptions] = None,
                 registry: Optional[ConnectionRegistry] = None,
                 probe: Optional[PortProbe] = None,
                 ports: Optional[Iterable[int]] = None):
        self.options = options or ScanOptions()
        self.registry = registry or ConnectionRegistry()
        self.probe = probe or PortProbe(self.registry, self.options.port_timeout)
        self.ports = list(ports) if ports is not None else list(WELL_KNOWN_PORTS)

        self.on_progress: Optional[Callable[[ScanProgress], None]] = None
        self.on_open_port: Optional[Callable[[int], None]] = None
        self.on_state: Optional[Callable[[ScanState], None]] = None

        self.status: Optional[str] = None
        self._run: Optional[PortScanRun] = None

    @property
    def state(self) -> ScanState:
        if self._run is None:
            return ScanState.IDLE
        return self._run.state

    @property
    def host(self) -> Optional[str]:
        return self._run.host if self._run else None

    @property
    def open_ports(self) -> List[int]:
        return list(self._run.open_ports) if self._run else []

    @property
    def progress(self) -> ScanProgress:
        if self._run is None:
            return ScanProgress(scanned=0, total=len(self.ports))
        return self._run.progress

    def _emit(self, callback, *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Port scan observer raised")

    def _finish(self, run: PortScanRun, state: ScanState) -> bool:
        if run.state.is_terminal:
            return False
        run.state = state
        if run is self._run:
            self._emit(self.on_state, state)
        return True

    async def _wait_drained(self, run: PortScanRun):
        try:
            await asyncio.wait_for(run.drained.wait(), timeout=self.options.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Port scan of {run.host} still draining after {self.options.drain_timeout}s, forcing it down")
            self.registry.cancel_all()
            if run.task is not None:
                run.task.cancel()
                await asyncio.gather(run.task, return_exceptions=True)

    async def scan(self, host: str) -> List[int]:
        """Scan ``host`` and return its open ports in ascending order"""
        current = self._run
        if current is not None:
            if current.state is ScanState.SCANNING:
                logger.warning(f"Port scan of {current.host} already in progress")
                return list(current.open_ports)
            if not current.drained.is_set():
                logger.debug(f"Waiting for port scan of {current.host} to drain")
                await self._wait_drained(current)
            if self._run is not current:
                return list(self._run.open_ports)

        try:
            ipaddress.IPv4Address(host)
        except ValueError:
            self.status = f"'{host}' is not a valid IPv4 address"
            logger.warning(self.status)
            return []

        run = PortScanRun(host, len(self.ports))
        self._run = run
        self.status = None
        self._emit(self.on_state, ScanState.SCANNING)

        run.task = asyncio.create_task(self._sweep(run))
        await run.task
        return list(run.open_ports)

    async def _sweep(self, run: PortScanRun):
        logger.info(f"Scanning {len(self.ports)} ports on {run.host}")
        start_time = time.monotonic()

        semaphore = asyncio.Semaphore(self.options.port_concurrency)
        pacer = LaunchPacer(self.options.port_pause, every=self.options.port_pause_every)
        tasks: List[asyncio.Task] = []

        try:
            for port in self.ports:
                await semaphore.acquire()
                if run.cancelled:
                    semaphore.release()
                    break
                await pacer.wait()
                if run.cancelled:
                    semaphore.release()
                    break
                tasks.append(asyncio.create_task(self._probe_port(run, port, semaphore)))

            await asyncio.gather(*tasks)
            self._finish(run, ScanState.COMPLETED)
        except asyncio.CancelledError:
            run.cancelled = True
            for task in tasks:
                task.cancel()
            self._finish(run, ScanState.CANCELLED)
            raise
        finally:
            run.drained.set()

        logger.info(
            f"Port scan of {run.host} {run.state.value}: {len(run.open_ports)} open, "
            f"{run.progress.scanned}/{run.progress.total} probed in {time.monotonic() - start_time:.2f}s"
        )

    async def _probe_port(self, run: PortScanRun, port: int, semaphore: asyncio.Semaphore):
        try:
            result: ProbeResult = await self.probe.probe(run.host, port, self.options.port_timeout)
        finally:
            semaphore.release()

        current = run is self._run
        if result.is_open:
            bisect.insort(run.open_ports, port)
            logger.debug(f"Open: {run.host}:{port}")
            if current:
                self._emit(self.on_open_port, port)

        run.progress.scanned += 1
        if current:
            self._emit(self.on_progress, run.progress)

    def stop(self) -> bool:
        """Cancel the running port scan; open ports found so far are kept"""
        run = self._run
        if run is None or run.state is not ScanState.SCANNING:
            return False
        run.cancelled = True
        self.registry.cancel_all()
        logger.info(f"Port scan of {run.host} stopped")
        return self._finish(run, ScanState.CANCELLED)

    async def scan_device(self, device: Device) -> Device:
        """Replace a device's open ports with a fresh scan"""
        device.open_ports = await self.scan(device.ip_address)
        return device
