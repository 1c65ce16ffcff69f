"""
Validation module for the offline queue.

Provides configuration validation and the configured store factory.
"""

from validation.config import OfflineQueueConfig, build_store, validate_config

__all__ = [
    'OfflineQueueConfig',
    'build_store',
    'validate_config',
]
