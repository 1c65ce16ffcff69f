"""
Connectivity oracles.

A processing pass asks its oracle once whether network operations should be
attempted. Oracles provided here:
- StaticConnectivity: fixed/manually toggled verdict
- ConnectivityManager: fed by platform network-change events
- ProbingConnectivity: asks a backend health endpoint, caching the verdict
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

import httpx

from network.health import check_backend_health
from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Connectivity")

ConnectivityListener = Callable[[bool], None]


@runtime_checkable
class ConnectivityOracle(Protocol):
    def should_attempt_network_operation(self) -> bool:
        ...


class StaticConnectivity:
    """Oracle with an explicitly set verdict (default: online)."""

    def __init__(self, online: bool = True):
        self.online = online

    def set_online(self, online: bool) -> None:
        self.online = online

    def should_attempt_network_operation(self) -> bool:
        return self.online


def map_connection_type(raw: Optional[str]) -> str:
    """Collapse platform network types into wifi, cellular or none."""
    if not raw:
        return "none"
    lowered = raw.lower()
    if lowered in ("wifi", "ethernet"):
        return "wifi"
    if lowered in ("cellular", "mobile"):
        return "cellular"
    return "none"


@dataclass(frozen=True)
class NetworkState:
    """Last network state reported by the platform."""
    is_connected: bool
    is_internet_reachable: bool
    connection_type: str = "none"


class ConnectivityManager:
    """
    Event-fed connectivity oracle.

    The platform layer calls update() on every network change. Network
    operations are only sanctioned once a state is known and it reports
    both a connection and a reachable internet.

    Usage:
        manager = ConnectivityManager()
        manager.on_change(lambda online: online and worker.trigger())
        manager.update(is_connected=True, is_internet_reachable=True, connection_type="wifi")
    """

    def __init__(self):
        self._state: Optional[NetworkState] = None
        self._listeners: list[ConnectivityListener] = []
        self._lock = threading.Lock()

    @property
    def current_state(self) -> Optional[NetworkState]:
        return self._state

    def update(
        self,
        is_connected: bool,
        is_internet_reachable: Optional[bool] = None,
        connection_type: Optional[str] = None,
    ) -> None:
        """
        Record a new network state and notify listeners if the verdict changed.

        Args:
            is_connected: Device has a network connection
            is_internet_reachable: Internet reachable; unknown (None) counts as not
            connection_type: Raw platform type (wifi, ethernet, cellular, ...)
        """
        state = NetworkState(
            is_connected=bool(is_connected),
            is_internet_reachable=bool(is_internet_reachable),
            connection_type=map_connection_type(connection_type),
        )
        with self._lock:
            was_online = self._verdict(self._state)
            self._state = state
            now_online = self._verdict(state)
            listeners = list(self._listeners)

        log_debug(f"Network state: connected={state.is_connected}, "
                  f"reachable={state.is_internet_reachable}, type={state.connection_type}")

        if was_online != now_online:
            log_info(f"Connectivity {'restored' if now_online else 'lost'}")
            for listener in listeners:
                try:
                    listener(now_online)
                except Exception as e:
                    log_error(f"Connectivity listener {listener!r} failed: {e}")

    def on_change(self, listener: ConnectivityListener) -> Callable[[], None]:
        """
        Register a listener called with the new verdict when it flips.

        Returns:
            Function that unregisters the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Forget the known state and all listeners."""
        with self._lock:
            self._state = None
            self._listeners = []

    def is_network_reachable(self) -> bool:
        state = self._state
        return state.is_internet_reachable if state is not None else False

    def should_attempt_network_operation(self) -> bool:
        return self._verdict(self._state)

    @staticmethod
    def _verdict(state: Optional[NetworkState]) -> bool:
        if state is None:
            return False
        return state.is_connected and state.is_internet_reachable


class ProbingConnectivity:
    """
    Oracle backed by a backend health endpoint.

    Probes at most once per check_interval and reuses the last verdict in
    between.

    Args:
        client: httpx.Client used for probes
        health_url: Health endpoint (absolute or relative to client base_url)
        check_interval: Seconds a verdict stays valid (default: 30.0)
        timeout: Probe timeout in seconds (default: 5.0)
        clock: Monotonic clock (for testing)
    """

    def __init__(
        self,
        client: httpx.Client,
        health_url: str,
        check_interval: float = 30.0,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.health_url = health_url
        self.check_interval = check_interval
        self.timeout = timeout
        self._clock = clock
        self._last_check: Optional[float] = None
        self._healthy = False

    def invalidate(self) -> None:
        """Force a fresh probe on the next check."""
        self._last_check = None

    def should_attempt_network_operation(self) -> bool:
        now = self._clock()
        if self._last_check is not None and now - self._last_check < self.check_interval:
            return self._healthy

        healthy, latency_ms = check_backend_health(self.client, self.health_url, timeout=self.timeout)
        if healthy != self._healthy:
            if healthy:
                log_info(f"Backend reachable ({latency_ms:.0f}ms)")
            else:
                log_warn("Backend unreachable, holding queued requests")
        self._healthy = healthy
        self._last_check = now
        return healthy


__all__ = [
    'ConnectivityOracle',
    'StaticConnectivity',
    'ConnectivityManager',
    'NetworkState',
    'ProbingConnectivity',
    'map_connection_type',
]
