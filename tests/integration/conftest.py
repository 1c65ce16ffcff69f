"""
Integration test fixtures for the offline queue.

These fixtures compose the unit test fixtures from tests/conftest.py
into on-disk scenarios for testing:
- Queue persistence across sessions (SQLite and JSON stores)
- End-to-end passes against a respx-mocked backend

All integration tests should be marked with @pytest.mark.integration
"""

import pytest


# Integration fixtures inherit from tests/conftest.py automatically via pytest


@pytest.fixture(params=["sqlite", "json"])
def disk_store_factory(request, tmp_path):
    """
    Factory returning a fresh store instance over the same directory.

    Each call simulates a new process opening the persisted queue.

    Usage:
        def test_restart(disk_store_factory):
            first = OfflineQueue(disk_store_factory())
            second = OfflineQueue(disk_store_factory())
    """
    from offline_queue.storage import JsonFileStore, SQLiteStore

    data_dir = str(tmp_path / "queue")

    def factory():
        if request.param == "json":
            return JsonFileStore(data_dir)
        return SQLiteStore(data_dir)

    return factory


@pytest.fixture
def open_session(disk_store_factory, clock):
    """
    Open a new OfflineQueue session over the shared on-disk store.

    Usage:
        def test_restart(open_session):
            queue = open_session()
    """
    from offline_queue.engine import OfflineQueue

    def opener(max_queue_size=1000):
        queue = OfflineQueue(disk_store_factory(), max_queue_size=max_queue_size, clock=clock)
        queue.initialize()
        return queue

    return opener
