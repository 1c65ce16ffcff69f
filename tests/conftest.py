"""
Shared pytest fixtures for offline queue tests.

Provides reusable fixtures for:
- A controllable millisecond clock
- Stores (in-memory) and initialized OfflineQueue instances
- Mock collaborators (connectivity oracle, request executor)
- QueueProcessor wired to the mocks with backoff sleeps stubbed out
- Configuration dictionaries

Collaborators are unittest.mock objects so no network access is needed.
"""

import pytest
from unittest.mock import Mock, MagicMock


HOUR_MS = 60 * 60 * 1000
BASE_TIME_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = BASE_TIME_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


# =============================================================================
# Clock and Storage Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """
    Controllable clock for created_at/age computations.

    Usage:
        def test_age(offline_queue, clock):
            clock.advance(HOUR_MS)
    """
    return FakeClock()


@pytest.fixture
def memory_store():
    """Fresh in-memory PersistentStore."""
    from offline_queue.storage import MemoryStore
    return MemoryStore()


@pytest.fixture
def failing_store():
    """
    Mock PersistentStore whose every operation raises StorageError.

    Usage:
        def test_degraded(failing_store):
            queue = OfflineQueue(failing_store)
    """
    from offline_queue.storage import StorageError

    store = MagicMock()
    store.get.side_effect = StorageError("disk unavailable")
    store.set.side_effect = StorageError("disk full")
    store.delete.side_effect = StorageError("disk unavailable")
    return store


@pytest.fixture
def offline_queue(memory_store, clock):
    """
    Initialized OfflineQueue backed by memory_store and the fake clock.

    Usage:
        def test_enqueue(offline_queue):
            request_id = offline_queue.enqueue('/api/test', 'POST')
    """
    from offline_queue.engine import OfflineQueue

    queue = OfflineQueue(memory_store, clock=clock)
    queue.initialize()
    return queue


# =============================================================================
# Collaborator Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_connectivity():
    """
    Mock connectivity oracle that sanctions network operations.

    Usage:
        def test_offline(mock_connectivity):
            mock_connectivity.should_attempt_network_operation.return_value = False
    """
    connectivity = Mock()
    connectivity.should_attempt_network_operation.return_value = True
    return connectivity


@pytest.fixture
def mock_executor():
    """
    Mock request executor that reports success for every call.

    execute(endpoint, method, payload, requires_auth) -> bool

    Usage:
        def test_failure(mock_executor):
            mock_executor.execute.return_value = False
    """
    executor = Mock()
    executor.execute.return_value = True
    return executor


@pytest.fixture
def mock_sleep():
    """Stand-in for time.sleep so backoff delays return immediately."""
    return Mock()


@pytest.fixture
def processor(offline_queue, mock_connectivity, mock_executor, mock_sleep):
    """
    QueueProcessor over offline_queue with mocked collaborators.

    Uses max_retries=3 and a stubbed sleep.
    """
    from worker.processor import QueueProcessor

    return QueueProcessor(
        offline_queue,
        mock_connectivity,
        mock_executor,
        max_retries=3,
        sleep=mock_sleep,
    )


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def valid_config_dict(tmp_path):
    """
    Dictionary with valid configuration values for OfflineQueueConfig.

    Usage:
        def test_config_parsing(valid_config_dict):
            config = OfflineQueueConfig(**valid_config_dict)
    """
    return {
        "api_base_url": "https://api.example.com",
        "auth_token": "token-abcdef123456",
        "data_dir": str(tmp_path / "data"),
        "storage_backend": "json",
        "max_queue_size": 1000,
        "max_retries": 3,
        "retry_base_delay": 0.0,
    }


@pytest.fixture
def sample_snapshot():
    """
    Persisted queue snapshot (list of dicts) from a previous session.

    Two items: a medium POST that already failed twice and a critical PUT.
    """
    return [
        {
            "id": "req_1700000000000_aaaaaaaaaaaa",
            "endpoint": "/rides",
            "method": "POST",
            "payload": {"from": "A", "to": "B"},
            "requires_auth": True,
            "priority": "medium",
            "created_at": BASE_TIME_MS - 5000,
            "retry_count": 2,
        },
        {
            "id": "req_1700000000000_bbbbbbbbbbbb",
            "endpoint": "/rides/42/status",
            "method": "PUT",
            "payload": {"status": "arrived"},
            "requires_auth": True,
            "priority": "critical",
            "created_at": BASE_TIME_MS - 1000,
            "retry_count": 0,
        },
    ]
