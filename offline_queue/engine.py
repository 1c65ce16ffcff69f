"""
Offline queue engine.

Owns the in-memory sequence of QueuedRequest items and is its only
mutator. Every mutation runs under one lock and is followed by a full
snapshot write to the persistent store. Storage failures are logged and
never raised: the in-memory queue stays authoritative for the session.

Items are kept in insertion order; the logical read order (and the
processing order) is priority rank, then created_at, with insertion order
as the final tie-break.
"""

import threading
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from offline_queue.models import (
    ItemState,
    Priority,
    QueuedRequest,
    QueueSnapshot,
    QueueStats,
    RequestSpec,
    now_ms,
)
from offline_queue.storage import PersistentStore, StorageError
from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Engine")

STORAGE_KEY = 'offline_queue'
MAX_QUEUE_SIZE = 1000
DEFAULT_MAX_AGE_MS = 24 * 60 * 60 * 1000

QueueListener = Callable[[list[QueuedRequest]], None]


def ordered(items: Iterable[QueuedRequest]) -> list[QueuedRequest]:
    """Sort by (priority rank, created_at); stable, so insertion order breaks ties."""
    return sorted(items, key=QueuedRequest.sort_key)


class OfflineQueue:
    """
    Durable, bounded, priority-ordered queue of outbound requests.

    Construct one per process and pass it to whatever enqueues or drains
    requests. Callers only ever receive copies of queued items.

    Args:
        store: PersistentStore holding the serialized queue
        storage_key: Key the snapshot is stored under (default: offline_queue)
        max_queue_size: Capacity; overflow evicts the oldest inserted items
        clock: Returns the current time in ms since epoch (for testing)

    Usage:
        queue = OfflineQueue(SQLiteStore(data_dir))
        queue.initialize()
        request_id = queue.enqueue('/rides', 'POST', {'from': 'A'}, priority='high')
    """

    def __init__(
        self,
        store: PersistentStore,
        storage_key: str = STORAGE_KEY,
        max_queue_size: int = MAX_QUEUE_SIZE,
        clock: Callable[[], int] = now_ms,
    ):
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")
        self._store = store
        self._storage_key = storage_key
        self.max_queue_size = max_queue_size
        self._clock = clock
        self._items: list[QueuedRequest] = []
        self._lock = threading.RLock()
        self._listeners: list[QueueListener] = []

    # -------------------------------------------------------------------------
    # Lifecycle and persistence
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load the queue from the persistent store.

        Missing or unparsable snapshots yield an empty queue. Never raises.
        """
        with self._lock:
            self._items = self._load()
        log_info(f"Initialized with {len(self._items)} queued request(s)")

    def _load(self) -> list[QueuedRequest]:
        try:
            raw = self._store.get(self._storage_key)
        except StorageError as e:
            log_error(f"Failed to read queue from storage, starting empty: {e}")
            return []

        if raw is None:
            log_debug("No persisted queue found, starting empty")
            return []

        try:
            items = QueueSnapshot.validate_json(raw)
        except (ValidationError, ValueError, TypeError) as e:
            log_warn(f"Persisted queue is malformed, discarding it: {e}")
            return []

        unique: list[QueuedRequest] = []
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                log_warn(f"Dropping duplicate persisted request {item.id}")
                continue
            seen.add(item.id)
            unique.append(item)

        if len(unique) > self.max_queue_size:
            overflow = len(unique) - self.max_queue_size
            log_warn(f"Persisted queue exceeds capacity, evicting {overflow} oldest request(s)")
            unique = unique[overflow:]

        return unique

    def flush(self) -> bool:
        """
        Write the current queue to the persistent store.

        Returns:
            True if the snapshot was stored, False if storage failed
        """
        with self._lock:
            snapshot = QueueSnapshot.dump_json(self._items)
            try:
                self._store.set(self._storage_key, snapshot)
            except StorageError as e:
                log_error(f"Failed to persist queue ({len(self._items)} items), "
                          f"continuing in memory: {e}")
                return False
            log_trace(f"Persisted {len(self._items)} request(s)")
            return True

    # -------------------------------------------------------------------------
    # Change listeners
    # -------------------------------------------------------------------------

    def on_queue_change(self, listener: QueueListener) -> Callable[[], None]:
        """
        Register a listener called with the ordered queue after each mutation.

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

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            if not listeners:
                return
            view = self._ordered_copies()
        for listener in listeners:
            try:
                listener(list(view))
            except Exception as e:
                log_error(f"Queue listener {listener!r} failed: {e}")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def enqueue(
        self,
        endpoint: str,
        method: str,
        payload=None,
        priority=Priority.MEDIUM,
        requires_auth: bool = False,
    ) -> str:
        """
        Append a request and persist the queue.

        When the queue is full the oldest inserted items are evicted, whatever
        their priority, so the new item always stays.

        Args:
            endpoint: Target resource path (non-empty)
            method: GET, POST, PUT, PATCH or DELETE
            payload: Optional JSON-serializable body
            priority: critical, high, medium (default) or low
            requires_auth: Passed through to the request executor

        Returns:
            The generated request id

        Raises:
            pydantic.ValidationError: Invalid endpoint, method, priority or a
                payload that cannot be serialized
        """
        spec = RequestSpec(
            endpoint=endpoint,
            method=method,
            payload=payload,
            priority=priority,
            requires_auth=requires_auth,
        )
        return self.enqueue_spec(spec)

    def enqueue_spec(self, spec: RequestSpec) -> str:
        """Enqueue a pre-validated RequestSpec. See enqueue()."""
        with self._lock:
            request = QueuedRequest.from_spec(spec, created_at=self._clock())
            existing = {item.id for item in self._items}
            while request.id in existing:
                request = QueuedRequest.from_spec(spec, created_at=request.created_at)

            self._items.append(request)
            overflow = len(self._items) - self.max_queue_size
            if overflow > 0:
                evicted = self._items[:overflow]
                del self._items[:overflow]
                log_warn(
                    f"Queue at capacity ({self.max_queue_size}), evicted {overflow} oldest "
                    f"request(s): {', '.join(r.id for r in evicted)}"
                )

            log_debug(f"Enqueued {request.id} {request.method.value} {request.endpoint} "
                      f"(priority={request.priority.value})")
            self.flush()

        self._notify()
        return request.id

    def remove(self, request_id: str) -> bool:
        """
        Remove a request by id.

        Returns:
            True if an item was removed, False for an unknown id
        """
        with self._lock:
            if not self._discard(request_id):
                return False
            log_debug(f"Removed {request_id}")
            self.flush()

        self._notify()
        return True

    def clear(self) -> None:
        """Empty the queue and persist the empty snapshot."""
        with self._lock:
            count = len(self._items)
            self._items = []
            log_info(f"Cleared queue ({count} request(s) dropped)")
            self.flush()

        self._notify()

    def clear_by_priority(self, priority) -> int:
        """
        Remove every request of one priority tier.

        Returns:
            Number of requests removed
        """
        priority = Priority(priority)
        with self._lock:
            kept = [item for item in self._items if item.priority != priority]
            removed = len(self._items) - len(kept)
            if removed == 0:
                return 0
            self._items = kept
            log_info(f"Cleared {removed} {priority.value} request(s)")
            self.flush()

        self._notify()
        return removed

    def cleanup_old_requests(self, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> int:
        """
        Remove requests older than max_age_ms, regardless of priority.

        Items are swept whether or not they were ever attempted.

        Args:
            max_age_ms: Maximum age in milliseconds (default: 24 hours)

        Returns:
            Number of requests removed
        """
        with self._lock:
            now = self._clock()
            kept = [item for item in self._items if item.age_ms(now) <= max_age_ms]
            removed = len(self._items) - len(kept)
            if removed == 0:
                return 0
            self._items = kept
            log_info(f"Cleaned up {removed} request(s) older than {max_age_ms / 3_600_000:.1f}h")
            self.flush()

        self._notify()
        return removed

    # -------------------------------------------------------------------------
    # Processing-pass primitives (used by worker.processor)
    # -------------------------------------------------------------------------

    def mark_delivered(self, request_id: str, persist: bool = True) -> bool:
        """
        Drop a request after successful delivery.

        Args:
            request_id: Id of the delivered request
            persist: Commit immediately; pass False to batch within a pass
                     and call commit_pass() at the end

        Returns:
            True if the request was still queued
        """
        with self._lock:
            if not self._discard(request_id):
                return False
            log_trace(f"{request_id} delivered")

        if persist:
            self.commit_pass()
        return True

    def record_failure(self, request_id: str, max_retries: int,
                       persist: bool = True) -> Optional[ItemState]:
        """
        Count a failed attempt against a request.

        The request is abandoned (removed) once retry_count exceeds max_retries,
        i.e. after max_retries + 1 failed attempts.

        Args:
            request_id: Id of the failed request
            max_retries: Retries allowed after the first attempt
            persist: Commit immediately; pass False to batch within a pass
                     and call commit_pass() at the end

        Returns:
            ItemState.PENDING_RETRY or ItemState.ABANDONED, or None if the
            request is no longer queued
        """
        with self._lock:
            item = self._find(request_id)
            if item is None:
                return None

            item.retry_count += 1
            if item.retry_count > max_retries:
                self._discard(request_id)
                log_warn(f"{request_id} abandoned after {item.retry_count} failed attempt(s): "
                         f"{item.method.value} {item.endpoint}")
                state = ItemState.ABANDONED
            else:
                log_debug(f"{request_id} failed (retry {item.retry_count}/{max_retries})")
                state = ItemState.PENDING_RETRY

        if persist:
            self.commit_pass()
        return state

    def commit_pass(self) -> None:
        """Persist and notify listeners once at the end of a processing pass."""
        self.flush()
        self._notify()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_queue(self) -> list[QueuedRequest]:
        """Copies of all requests in processing order."""
        with self._lock:
            return self._ordered_copies()

    def get_queue_size(self) -> int:
        with self._lock:
            return len(self._items)

    def contains(self, request_id: str) -> bool:
        """True while the request is still queued."""
        with self._lock:
            return self._find(request_id) is not None

    def get_request(self, request_id: str) -> Optional[QueuedRequest]:
        with self._lock:
            item = self._find(request_id)
            return item.model_copy(deep=True) if item is not None else None

    def get_requests_by_priority(self, priority) -> list[QueuedRequest]:
        priority = Priority(priority)
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items
                    if item.priority == priority]

    def get_requests_by_endpoint(self, prefix: str) -> list[QueuedRequest]:
        """Requests whose endpoint starts with prefix, in insertion order."""
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items
                    if item.endpoint.startswith(prefix)]

    def get_oldest_request(self) -> Optional[QueuedRequest]:
        with self._lock:
            if not self._items:
                return None
            return min(self._items, key=lambda r: r.created_at).model_copy(deep=True)

    def get_newest_request(self) -> Optional[QueuedRequest]:
        with self._lock:
            if not self._items:
                return None
            # Equal timestamps resolve to the latest inserted
            newest = self._items[0]
            for item in self._items:
                if item.created_at >= newest.created_at:
                    newest = item
            return newest.model_copy(deep=True)

    def get_stats(self) -> QueueStats:
        with self._lock:
            if not self._items:
                return QueueStats()

            now = self._clock()
            stats = QueueStats(total=len(self._items))
            for item in self._items:
                stats.by_priority[item.priority.value] += 1
            timestamps = [item.created_at for item in self._items]
            stats.oldest_request = min(timestamps)
            stats.newest_request = max(timestamps)
            stats.average_age = sum(now - ts for ts in timestamps) / len(timestamps)
            return stats

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _find(self, request_id: str) -> Optional[QueuedRequest]:
        for item in self._items:
            if item.id == request_id:
                return item
        return None

    def _discard(self, request_id: str) -> bool:
        for index, item in enumerate(self._items):
            if item.id == request_id:
                del self._items[index]
                return True
        return False

    def _ordered_copies(self) -> list[QueuedRequest]:
        return [item.model_copy(deep=True) for item in ordered(self._items)]


__all__ = ['OfflineQueue', 'ordered', 'STORAGE_KEY', 'MAX_QUEUE_SIZE', 'DEFAULT_MAX_AGE_MS']
