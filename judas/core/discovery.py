"""
Judas Host Discovery
Paced, bounded-concurrency liveness sweep over a subnet
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Set, Union

import aiohttp

from judas.core.errors import ConnectivityError, ScanError
from judas.core.liveness import HostLivenessProbe, default_checks
from judas.core.models import Device, ScanProgress, ScanState
from judas.core.options import ScanOptions
from judas.core.pacing import LaunchPacer
from judas.core.probes import HttpProbe, PortProbe
from judas.core.registry import ConnectionRegistry
from judas.core.targets import TargetSetBuilder, TargetSpec, parse_target_spec, spec_for_interface
from judas.utils.network import local_interface_info

logger = logging.getLogger(__name__)


class ScanSession:
    """One invocation of a host scan

    Owns the discovered-device list for that invocation. ``drained`` is set
    once every probe of the session has finished, whatever the final state.
    """

    def __init__(self, spec: TargetSpec, targets: List[str]):
        self.session_id = uuid.uuid4().hex
        self.spec = spec
        self.targets = targets
        self.devices: List[Device] = []
        self._seen: Set[str] = set()
        self.state = ScanState.SCANNING
        self.cancelled = False
        self.progress = ScanProgress(scanned=0, total=len(targets))
        self.start_time = datetime.now()
        self.end_time: Optional[datetime] = None
        self.drained = asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        self.watchdog: Optional[asyncio.Task] = None

    def add_device(self, ip: str) -> Optional[Device]:
        """Append a device unless the address is already known"""
        if ip in self._seen:
            return None
        self._seen.add(ip)
        device = Device(ip_address=ip)
        self.devices.append(device)
        return device

    @property
    def duration(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()


class HostScanCoordinator:
    """Runs host discovery sessions, one at a time

    Observers are plain callables assigned to ``on_host``, ``on_state``,
    ``on_status`` and ``on_progress``; they run on the event loop. ``stop``
    must be called from the loop thread as well.
    """

    def __init__(self, options: Optional[ScanOptions] = None,
                 registry: Optional[ConnectionRegistry] = None,
                 builder: Optional[TargetSetBuilder] = None,
                 interface_provider: Optional[Callable] = None,
                 liveness_factory: Optional[Callable] = None):
        self.options = options or ScanOptions()
        self.registry = registry or ConnectionRegistry()
        self.builder = builder or TargetSetBuilder()
        self.interface_provider = interface_provider or local_interface_info
        self.liveness_factory = liveness_factory or self._default_liveness

        self.on_host: Optional[Callable[[Device], None]] = None
        self.on_state: Optional[Callable[[ScanState], None]] = None
        self.on_status: Optional[Callable[[Optional[str]], None]] = None
        self.on_progress: Optional[Callable[[ScanProgress], None]] = None

        self._session: Optional[ScanSession] = None
        self._state = ScanState.IDLE
        self._status: Optional[str] = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def status(self) -> Optional[str]:
        return self._status

    @property
    def session(self) -> Optional[ScanSession]:
        return self._session

    @property
    def devices(self) -> List[Device]:
        if self._session is None:
            return []
        return list(self._session.devices)

    @property
    def active_connections(self) -> int:
        return len(self.registry)

    def _emit(self, callback, *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Scan observer raised")

    def _set_state(self, state: ScanState, session: Optional[ScanSession] = None):
        if session is not None:
            session.state = state
            if session is not self._session:
                return
        if state is not self._state:
            self._state = state
            self._emit(self.on_state, state)

    def _set_status(self, message: Optional[str]):
        if message != self._status:
            self._status = message
            self._emit(self.on_status, message)

    def _default_liveness(self, http: aiohttp.ClientSession, is_cancelled: Callable[[], bool]):
        strategies = {
            "http": HttpProbe(self.registry, http, self.options.http_timeout),
            "tcp": PortProbe(self.registry, self.options.tcp_timeout),
        }
        checks = default_checks(self.options.http_timeout, self.options.tcp_timeout)
        return HostLivenessProbe(strategies, checks, is_cancelled=is_cancelled)

    def _resolve_targets(self, spec: Union[TargetSpec, str, None]):
        local_ip = None
        if spec is None:
            info = self.interface_provider()
            if not info.connected:
                raise ConnectivityError("No network connection. Connect to a network or enter a subnet.")
            spec = spec_for_interface(info)
            local_ip = info.ip
        elif isinstance(spec, str):
            spec = parse_target_spec(spec)

        return spec, self.builder.build(spec, local_ip=local_ip)

    async def _wait_drained(self, session: ScanSession):
        try:
            await asyncio.wait_for(session.drained.wait(), timeout=self.options.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Previous scan still draining after {self.options.drain_timeout}s, forcing it down")
            self.registry.cancel_all()
            if session.task is not None:
                session.task.cancel()
                await asyncio.gather(session.task, return_exceptions=True)

    async def start(self, spec: Union[TargetSpec, str, None] = None) -> Optional[ScanSession]:
        """Start a discovery session

        ``spec`` may be a TargetSpec, user-entered text, or None to scan the
        local subnet. Returns the new session, the running one if a scan is
        already in progress, or None if the scan could not start; the reason
        is then in ``status``.
        """
        current = self._session
        if current is not None:
            if current.state is ScanState.SCANNING:
                logger.warning("Scan already in progress")
                return current
            if not current.drained.is_set():
                logger.debug("Waiting for previous scan to drain")
                await self._wait_drained(current)
            if self._session is not current:
                return self._session

        try:
            spec, targets = self._resolve_targets(spec)
        except ScanError as e:
            logger.warning(f"Scan not started: {e}")
            self._set_status(str(e))
            return None

        session = ScanSession(spec, targets)
        self._session = session
        self._set_status(None)
        self.registry.cancel_all()
        self._set_state(ScanState.SCANNING, session)

        if self.options.watchdog_enabled:
            session.watchdog = asyncio.create_task(self._watchdog(session))

        logger.info(f"Starting discovery of {len(targets)} hosts ({spec})")
        session.task = asyncio.create_task(self._run(session))
        return session

    def stop(self) -> bool:
        """Cancel the running scan; returns False if nothing was running"""
        session = self._session
        if session is None or session.state is not ScanState.SCANNING:
            return False
        logger.info("Stopping scan")
        return self._halt(session, ScanState.CANCELLED)

    def _halt(self, session: ScanSession, state: ScanState) -> bool:
        session.cancelled = True
        self.registry.cancel_all()
        return self._finish(session, state)

    def _finish(self, session: ScanSession, state: ScanState) -> bool:
        """Move to a terminal state unless one was already claimed"""
        if session.state.is_terminal:
            return False
        session.end_time = datetime.now()
        self._set_state(state, session)
        logger.info(
            f"Discovery {state.value}: {len(session.devices)} hosts up, "
            f"{session.progress.scanned}/{session.progress.total} probed in {session.duration:.2f}s"
        )
        return True

    async def _watchdog(self, session: ScanSession):
        timeout = self.options.watchdog_timeout
        await asyncio.sleep(timeout)
        if session.state is ScanState.SCANNING:
            logger.warning(f"Discovery timed out after {timeout:.0f}s")
            if self._halt(session, ScanState.TIMED_OUT) and session is self._session:
                self._set_status(f"Scan timed out after {timeout:.0f} seconds")

    async def _run(self, session: ScanSession):
        semaphore = asyncio.Semaphore(self.options.host_concurrency)
        pacer = LaunchPacer(self.options.launch_interval)
        tasks: List[asyncio.Task] = []
        started = time.monotonic()

        try:
            connector = aiohttp.TCPConnector(limit=0, force_close=True)
            async with aiohttp.ClientSession(connector=connector) as http:
                liveness = self.liveness_factory(http, lambda: session.cancelled)

                for ip in session.targets:
                    await semaphore.acquire()
                    if session.cancelled:
                        semaphore.release()
                        break
                    await pacer.wait()
                    if session.cancelled:
                        semaphore.release()
                        break
                    tasks.append(asyncio.create_task(self._probe_host(session, liveness, ip, semaphore)))

                await asyncio.gather(*tasks)

            self._finish(session, ScanState.COMPLETED)
        except asyncio.CancelledError:
            session.cancelled = True
            for task in tasks:
                task.cancel()
            self._finish(session, ScanState.CANCELLED)
            raise
        except Exception as e:
            logger.exception("Discovery failed")
            session.cancelled = True
            self.registry.cancel_all()
            if self._finish(session, ScanState.CANCELLED) and session is self._session:
                self._set_status(f"Scan failed: {e}")
        finally:
            if session.watchdog is not None:
                session.watchdog.cancel()
            logger.debug(f"Session {session.session_id} drained after {time.monotonic() - started:.2f}s")
            session.drained.set()

    async def _probe_host(self, session: ScanSession, liveness: HostLivenessProbe,
                          ip: str, semaphore: asyncio.Semaphore):
        try:
            alive = await liveness.is_alive(ip)
        except Exception as e:
            logger.debug(f"Liveness check for {ip} failed: {e}")
            alive = False
        finally:
            semaphore.release()

        session.progress.scanned += 1
        if session.state is not ScanState.SCANNING:
            return

        if session is self._session:
            self._emit(self.on_progress, session.progress)
        if alive:
            self._publish_host(session, ip)

    def _publish_host(self, session: ScanSession, ip: str):
        device = session.add_device(ip)
        if device is None:
            return
        logger.info(f"Host up: {ip}")
        if session is self._session:
            self._emit(self.on_host, device)

    async def wait(self) -> List[Device]:
        """Wait for the current session to drain"""
        session = self._session
        if session is None:
            return []
        await session.drained.wait()
        return list(session.devices)

    async def scan(self, spec: Union[TargetSpec, str, None] = None) -> List[Device]:
        """Run a full discovery and return the devices found"""
        session = await self.start(spec)
        if session is None:
            return []
        await self.wait()
        return list(session.devices)
