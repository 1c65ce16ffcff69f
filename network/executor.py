"""
HTTP request executor.

Performs the network call for a queued request and reduces the outcome to
success or failure. Transport errors, timeouts and non-2xx responses are
all plain failures; the processor applies one retry policy to all of them.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable

import httpx

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Executor")

TokenProvider = Callable[[], Optional[str]]


@runtime_checkable
class RequestExecutor(Protocol):
    def execute(self, endpoint: str, method: str, payload: Any, requires_auth: bool) -> bool:
        ...


class HttpRequestExecutor:
    """
    Executes queued requests with httpx.

    Args:
        base_url: API base URL endpoints are resolved against
        token_provider: Returns the current bearer token (or None); consulted
                        only for requests that require auth
        timeout: Request timeout in seconds (default: 30.0)
        client: Pre-built httpx.Client (overrides base_url/timeout)

    Usage:
        with HttpRequestExecutor("https://api.example.com", lambda: session.token) as executor:
            ok = executor.execute("/rides", "POST", {"from": "A"}, requires_auth=True)
    """

    def __init__(
        self,
        base_url: str = "",
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._token_provider = token_provider

    def _headers(self, payload: Any, requires_auth: bool) -> Optional[dict]:
        headers = {"Accept": "application/json"}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        if requires_auth:
            token = self._token_provider() if self._token_provider else None
            if not token:
                return None
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def execute(self, endpoint: str, method: str, payload: Any, requires_auth: bool) -> bool:
        """
        Perform one request.

        Returns:
            True on a 2xx response, False otherwise
        """
        headers = self._headers(payload, requires_auth)
        if headers is None:
            log_warn(f"{method} {endpoint} requires auth but no token is available")
            return False

        try:
            response = self._client.request(
                method,
                endpoint,
                json=payload,
                headers=headers,
            )
        except httpx.HTTPError as e:
            log_debug(f"{method} {endpoint} failed: {type(e).__name__}: {e}")
            return False

        if response.is_success:
            log_trace(f"{method} {endpoint} -> {response.status_code}")
            return True

        log_debug(f"{method} {endpoint} -> HTTP {response.status_code}")
        return False

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpRequestExecutor:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


__all__ = ['RequestExecutor', 'HttpRequestExecutor', 'TokenProvider']
