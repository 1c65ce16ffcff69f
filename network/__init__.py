"""
Network collaborators of the offline queue: connectivity oracles,
the backend health probe and the HTTP request executor.
"""

from network.connectivity import (
    ConnectivityManager,
    ConnectivityOracle,
    ProbingConnectivity,
    StaticConnectivity,
)
from network.executor import HttpRequestExecutor, RequestExecutor
from network.health import check_backend_health

__all__ = [
    'ConnectivityOracle',
    'ConnectivityManager',
    'ProbingConnectivity',
    'StaticConnectivity',
    'RequestExecutor',
    'HttpRequestExecutor',
    'check_backend_health',
]
