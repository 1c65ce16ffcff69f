"""
Queue processing.

Exports QueueProcessor (one processing pass), PassResult and QueueWorker
(background thread that triggers passes and cleanup sweeps).
"""

from worker.processor import PassResult, QueueProcessor
from worker.runner import QueueWorker

__all__ = ['QueueProcessor', 'PassResult', 'QueueWorker']
