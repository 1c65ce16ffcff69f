"""
Backend health probe.

A GET against a lightweight health endpoint tells us whether network
operations are worth attempting at all. Any exception or non-2xx response
counts as unhealthy.
"""

import time
from typing import Tuple

import httpx

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Health")

__all__ = ["check_backend_health"]


def check_backend_health(client: httpx.Client, url: str, timeout: float = 5.0) -> Tuple[bool, float]:
    """
    Check backend health via a health endpoint.

    Args:
        client: httpx.Client used for the probe
        url: Absolute or client-relative health URL
        timeout: Request timeout in seconds (shorter than normal requests)

    Returns:
        Tuple of (is_healthy, latency_ms):
        - (True, latency_ms) if the endpoint answered 2xx
        - (False, 0.0) if unreachable or it returned an error status

    Examples:
        >>> with httpx.Client(base_url="https://api.example.com") as client:
        ...     healthy, latency = check_backend_health(client, "/health")
    """
    try:
        start = time.perf_counter()
        response = client.get(url, timeout=timeout)
        end = time.perf_counter()
    except httpx.HTTPError as exc:
        # Failures during outages are expected; caller logs at the right level
        log_debug(f"Health check failed: {type(exc).__name__}: {exc}")
        return (False, 0.0)

    if not response.is_success:
        log_debug(f"Health check failed: HTTP {response.status_code}")
        return (False, 0.0)

    latency_ms = (end - start) * 1000.0
    log_debug(f"Health check passed (latency: {latency_ms:.1f}ms)")
    return (True, latency_ms)
