"""
In-flight connection registry
"""

import itertools
import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class ConnectionHandle:
    """Opaque token for one registered connection attempt"""

    __slots__ = ("id", "_cancel")

    def __init__(self, handle_id: int, cancel: Callable[[], Any]):
        self.id = handle_id
        self._cancel = cancel

    def cancel(self):
        self._cancel()

    def __repr__(self):
        return f"<ConnectionHandle {self.id}>"


class ConnectionRegistry:
    """Thread-safe set of cancellable in-flight probes

    ``register`` and ``release`` are the only ways a probe touches the set.
    ``cancel_all`` removes every handle under the lock before cancelling, so
    a probe can tell from ``release`` whether it still owned its handle.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handles: Dict[int, ConnectionHandle] = {}
        self._ids = itertools.count(1)

    def register(self, cancel: Callable[[], Any]) -> ConnectionHandle:
        """Track a new attempt; ``cancel`` is called on forced shutdown"""
        with self._lock:
            handle = ConnectionHandle(next(self._ids), cancel)
            self._handles[handle.id] = handle
        return handle

    def release(self, handle: ConnectionHandle) -> bool:
        """Remove a handle. Returns False if ``cancel_all`` already took it."""
        with self._lock:
            return self._handles.pop(handle.id, None) is not None

    def cancel_all(self) -> int:
        """Cancel and drop every registered attempt"""
        with self._lock:
            handles: List[ConnectionHandle] = list(self._handles.values())
            self._handles.clear()

        for handle in handles:
            try:
                handle.cancel()
            except Exception as e:
                logger.debug(f"Cancelling {handle!r} failed: {e}")

        if handles:
            logger.debug(f"Force-cancelled {len(handles)} in-flight connections")
        return len(handles)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, handle: ConnectionHandle) -> bool:
        with self._lock:
            return handle.id in self._handles
