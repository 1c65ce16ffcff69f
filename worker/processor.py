"""
Processing pass for the offline queue.

Drains queued requests in priority order against a request executor,
gated by a connectivity oracle:
- Delivered requests are removed
- Failed requests have their retry_count incremented
- Requests that exceed max_retries are abandoned (removed)
- Requests removed by a caller mid-pass are not sent
- Backoff before retries shares one budget per pass (max_pass_backoff)
- The queue is persisted once, after the whole pass

A pass never raises. Executor failures of any kind count as one failed
attempt; there is no per-error-class retry policy.
"""

import threading
import time
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Callable, Optional

from offline_queue.models import ItemState
from shared.log import create_logger
from worker.backoff import calculate_delay

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Processor")

if TYPE_CHECKING:
    from network.connectivity import ConnectivityOracle
    from network.executor import RequestExecutor
    from offline_queue.engine import OfflineQueue

MAX_RETRIES = 3

SKIPPED_BUSY = "busy"
SKIPPED_OFFLINE = "offline"
SKIPPED_EMPTY = "empty"


@dataclass
class PassResult:
    """Outcome of one processing pass."""
    attempted: int = 0
    delivered: int = 0
    retried: int = 0
    abandoned: int = 0
    skipped: Optional[str] = None   # busy, offline or empty when nothing ran

    @property
    def failed(self) -> int:
        return self.retried + self.abandoned

    def to_dict(self) -> dict:
        return asdict(self)


class QueueProcessor:
    """
    Runs processing passes over an OfflineQueue.

    Passes are non-preemptive: each request runs to success or failure
    before the next one starts, and requests are attempted sequentially.
    Only one pass runs at a time; a concurrent call returns a skipped result.

    Args:
        queue: OfflineQueue to drain
        connectivity: Oracle consulted once per pass
        executor: Performs the network call for each request
        max_retries: Retries allowed after the first attempt (default: 3)
        retry_base_delay: Backoff base in seconds before re-attempting a
                          previously failed request (0 disables the delay)
        retry_max_delay: Backoff cap in seconds
        max_pass_backoff: Total backoff allowed in one pass (default:
                          retry_max_delay); later retries go out undelayed
        sleep: Blocking sleep used for backoff (default: an interruptible
               wait, see interrupt())

    Usage:
        processor = QueueProcessor(queue, connectivity, executor)
        result = processor.process_queue()
        log_info(f"{result.delivered} delivered")
    """

    def __init__(
        self,
        queue: 'OfflineQueue',
        connectivity: 'ConnectivityOracle',
        executor: 'RequestExecutor',
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        max_pass_backoff: Optional[float] = None,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        self.queue = queue
        self.connectivity = connectivity
        self.executor = executor
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.max_pass_backoff = retry_max_delay if max_pass_backoff is None else max_pass_backoff
        self._interrupted = threading.Event()
        self._sleep = sleep or self._interrupted.wait
        self._in_flight = threading.Lock()

    @property
    def is_processing(self) -> bool:
        return self._in_flight.locked()

    def interrupt(self) -> None:
        """
        Cut short backoff waits until the running (or next) pass ends.

        Remaining requests of that pass go out undelayed. Called by
        QueueWorker.stop().
        """
        self._interrupted.set()

    def process_queue(self) -> PassResult:
        """
        Run one processing pass.

        Returns:
            PassResult with per-outcome counts; skipped is set when the pass
            did not attempt anything
        """
        if not self._in_flight.acquire(blocking=False):
            log_debug("Processing pass already running, skipping")
            return PassResult(skipped=SKIPPED_BUSY)
        try:
            return self._run_pass()
        finally:
            self._interrupted.clear()
            self._in_flight.release()

    def _should_attempt(self) -> bool:
        try:
            return bool(self.connectivity.should_attempt_network_operation())
        except Exception as e:
            log_warn(f"Connectivity check failed, treating as offline: {e}")
            return False

    def _run_pass(self) -> PassResult:
        if not self._should_attempt():
            log_debug("Network operations not sanctioned, skipping pass")
            return PassResult(skipped=SKIPPED_OFFLINE)

        pending = self.queue.get_queue()
        if not pending:
            log_trace("Queue empty, nothing to process")
            return PassResult(skipped=SKIPPED_EMPTY)

        log_debug(f"Processing {len(pending)} queued request(s)")
        result = PassResult()
        backoff_budget = self.max_pass_backoff
        _pass_start = time.perf_counter()

        for request in pending:
            if (request.retry_count > 0 and backoff_budget > 0
                    and not self._interrupted.is_set() and self.queue.contains(request.id)):
                backoff_budget -= self._wait_before_retry(
                    request.id, request.retry_count, backoff_budget)

            # Removed by a caller while the pass was running
            if not self.queue.contains(request.id):
                log_trace(f"{request.id} left the queue during the pass, skipping")
                continue

            result.attempted += 1
            log_trace(f"Attempting {request.id} {request.method.value} {request.endpoint} "
                      f"(attempt {request.retry_count + 1})")

            if self._execute(request):
                if self.queue.mark_delivered(request.id, persist=False):
                    result.delivered += 1
                continue

            state = self.queue.record_failure(request.id, self.max_retries, persist=False)
            if state == ItemState.ABANDONED:
                result.abandoned += 1
            elif state == ItemState.PENDING_RETRY:
                result.retried += 1

        self.queue.commit_pass()

        _elapsed = time.perf_counter() - _pass_start
        log_info(
            f"Pass complete in {_elapsed:.2f}s: {result.delivered}/{result.attempted} delivered, "
            f"{result.retried} pending retry, {result.abandoned} abandoned"
        )
        return result

    def _wait_before_retry(self, request_id: str, retry_count: int, budget: float) -> float:
        delay = min(calculate_delay(
            retry_count=retry_count - 1,
            base=self.retry_base_delay,
            cap=self.retry_max_delay,
        ), budget)
        if delay > 0:
            log_trace(f"Backing off {delay:.2f}s before retrying {request_id}")
            self._sleep(delay)
        return delay

    def _execute(self, request) -> bool:
        try:
            return bool(self.executor.execute(
                request.endpoint,
                request.method.value,
                request.payload,
                request.requires_auth,
            ))
        except Exception as e:
            log_warn(f"{request.id} executor error ({type(e).__name__}): {e}")
            return False


__all__ = [
    'QueueProcessor',
    'PassResult',
    'MAX_RETRIES',
    'SKIPPED_BUSY',
    'SKIPPED_OFFLINE',
    'SKIPPED_EMPTY',
]
