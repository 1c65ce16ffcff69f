"""
Offline Queue Module

Durable, priority-ordered queue of outbound API requests. Requests survive
process restarts via a pluggable persistent store and are drained by
worker.processor.QueueProcessor when connectivity allows.
"""

from offline_queue.engine import OfflineQueue, MAX_QUEUE_SIZE, STORAGE_KEY
from offline_queue.models import (
    HttpMethod,
    ItemState,
    Priority,
    QueuedRequest,
    QueueStats,
    RequestSpec,
)
from offline_queue.storage import (
    JsonFileStore,
    MemoryStore,
    PersistentStore,
    SQLiteStore,
    StorageError,
)

__all__ = [
    'OfflineQueue',
    'MAX_QUEUE_SIZE',
    'STORAGE_KEY',
    'HttpMethod',
    'ItemState',
    'Priority',
    'QueuedRequest',
    'QueueStats',
    'RequestSpec',
    'PersistentStore',
    'StorageError',
    'MemoryStore',
    'JsonFileStore',
    'SQLiteStore',
]
