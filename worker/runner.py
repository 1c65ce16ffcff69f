"""
Background trigger for processing passes.

The queue never re-runs a pass on its own; QueueWorker is the external
trigger. It runs a daemon thread that:
- Sweeps requests older than max_age at start and every cleanup_interval
- Runs a processing pass every process_interval
- Runs a pass immediately when trigger() is called (e.g. connectivity
  came back)
"""

import threading
import time
from typing import TYPE_CHECKING, Optional

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Worker")

if TYPE_CHECKING:
    from offline_queue.engine import OfflineQueue
    from worker.processor import PassResult, QueueProcessor


class QueueWorker:
    """
    Daemon thread driving QueueProcessor and age-based cleanup.

    Args:
        queue: OfflineQueue to sweep
        processor: QueueProcessor running the passes
        process_interval: Seconds between scheduled passes
        max_age_ms: Age beyond which requests are swept
        cleanup_interval: Seconds between cleanup sweeps

    Usage:
        worker = QueueWorker(queue, processor)
        worker.start()
        connectivity.on_change(lambda online: online and worker.trigger())
        ...
        worker.stop()
    """

    def __init__(
        self,
        queue: 'OfflineQueue',
        processor: 'QueueProcessor',
        process_interval: float = 30.0,
        max_age_ms: int = 24 * 60 * 60 * 1000,
        cleanup_interval: float = 3600.0,
    ):
        self.queue = queue
        self.processor = processor
        self.process_interval = process_interval
        self.max_age_ms = max_age_ms
        self.cleanup_interval = cleanup_interval
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._wake = threading.Event()
        self._last_cleanup = 0.0
        self.last_result: Optional['PassResult'] = None

    def start(self):
        """Start the background worker thread"""
        if self.running:
            log_trace("Already running")
            return

        self.running = True
        self._wake.clear()
        self.thread = threading.Thread(target=self._worker_loop, name="offline-queue-worker",
                                       daemon=True)
        self.thread.start()
        log_info("Started")

    def stop(self, timeout: float = 10.0):
        """Stop the worker thread, letting an in-progress pass finish."""
        if not self.running:
            return

        log_trace("Stopping worker...")
        self.running = False
        self._wake.set()
        self.processor.interrupt()

        if self.thread:
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                log_warn(f"Worker thread did not stop within {timeout:.0f}s, "
                         f"current pass is still running")

        log_trace("Worker stopped")

    def trigger(self):
        """Request a pass as soon as possible."""
        log_trace("Pass requested")
        self._wake.set()

    def run_once(self) -> 'PassResult':
        """Run a cleanup sweep if due, then one processing pass."""
        self._cleanup_if_due()
        result = self.processor.process_queue()
        self.last_result = result
        return result

    def _cleanup_if_due(self, now: Optional[float] = None) -> int:
        if now is None:
            now = time.monotonic()
        if self._last_cleanup and now - self._last_cleanup < self.cleanup_interval:
            return 0
        self._last_cleanup = now
        removed = self.queue.cleanup_old_requests(self.max_age_ms)
        if removed:
            log_info(f"Cleanup sweep removed {removed} expired request(s)")
        return removed

    def _worker_loop(self):
        """Main worker loop - runs in background thread"""
        while self.running:
            try:
                self.run_once()
            except Exception as e:
                # Worker loop error: log and continue
                log_error(f"Worker loop error: {e}")

            self._wake.wait(timeout=self.process_interval)
            self._wake.clear()


__all__ = ['QueueWorker']
