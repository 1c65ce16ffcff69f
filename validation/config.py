"""
Configuration validation for the offline queue.

Provides a pydantic v2 model for validating queue/worker configuration
with fail-fast behavior and sensible defaults, plus a factory for the
configured persistent store.
"""

from pydantic import BaseModel, Field, field_validator, ValidationError
from typing import Optional
import logging

from offline_queue.storage import JsonFileStore, MemoryStore, PersistentStore, SQLiteStore

log = logging.getLogger('offline_queue.config')

STORAGE_BACKENDS = ('sqlite', 'json', 'memory')


class OfflineQueueConfig(BaseModel):
    """
    Offline queue configuration with validation.

    Required:
        api_base_url: Backend base URL (e.g., https://api.example.com)

    Optional tunables:
        auth_token: Bearer token for requests that require auth
        data_dir: Directory for the persistent store (default: ./data)
        storage_backend: sqlite, json or memory (default: sqlite)
        storage_key: Key the queue snapshot is stored under (default: offline_queue)
        max_queue_size: Capacity before oldest requests are evicted (default: 1000)
        max_retries: Retries after the first failed attempt (default: 3, range: 0-20)
        retry_base_delay: Backoff base in seconds (default: 1.0, 0 disables)
        retry_max_delay: Backoff cap in seconds (default: 30.0)
        max_pass_backoff: Total backoff per processing pass in seconds (default: 30.0)
        request_timeout: Per-request timeout in seconds (default: 30.0)
        health_url: Health endpoint; when unset, passes are always sanctioned
        health_check_interval: Seconds a health verdict is reused (default: 30.0)
        process_interval: Seconds between background passes (default: 30.0)
        max_age_hours: Age after which requests are swept (default: 24.0)
        cleanup_interval: Seconds between cleanup sweeps (default: 3600.0)
        debug_logging: Emit trace/debug output (default: False)
    """

    # Required fields
    api_base_url: str

    auth_token: Optional[str] = None

    # Storage
    data_dir: str = "./data"
    storage_backend: str = "sqlite"
    storage_key: str = Field(default="offline_queue", min_length=1)

    # Queue bounds
    max_queue_size: int = Field(default=1000, ge=1, le=100000)
    max_retries: int = Field(default=3, ge=0, le=20)

    # Retry backoff (seconds)
    retry_base_delay: float = Field(default=1.0, ge=0.0, le=60.0)
    retry_max_delay: float = Field(default=30.0, ge=0.0, le=600.0)
    max_pass_backoff: float = Field(default=30.0, ge=0.0, le=3600.0)

    request_timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    # Connectivity probe
    health_url: Optional[str] = Field(
        default=None,
        description="Health endpoint probed before each pass. If not set, passes always run."
    )
    health_check_interval: float = Field(default=30.0, ge=1.0, le=3600.0)

    # Background worker
    process_interval: float = Field(default=30.0, ge=0.1, le=3600.0)
    max_age_hours: float = Field(default=24.0, gt=0.0, le=24.0 * 30)
    cleanup_interval: float = Field(default=3600.0, ge=1.0, le=86400.0)

    debug_logging: bool = Field(
        default=False,
        description="Enable trace/debug output for queue processing"
    )

    @property
    def max_age_ms(self) -> int:
        return int(self.max_age_hours * 60 * 60 * 1000)

    @field_validator('api_base_url', mode='after')
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate api_base_url is a valid HTTP/HTTPS URL."""
        if not v:
            raise ValueError('api_base_url is required')
        if not v.startswith(('http://', 'https://')):
            raise ValueError('api_base_url must start with http:// or https://')
        return v.rstrip('/')  # Normalize: remove trailing slash

    @field_validator('storage_backend', mode='before')
    @classmethod
    def validate_storage_backend(cls, v):
        """Validate storage_backend is one of: sqlite, json, memory."""
        if isinstance(v, str) and v.lower() in STORAGE_BACKENDS:
            return v.lower()
        raise ValueError(f"storage_backend must be one of {STORAGE_BACKENDS}, got: {v}")

    @field_validator('debug_logging', mode='before')
    @classmethod
    def validate_booleans(cls, v):
        """Ensure boolean fields are actual booleans, not truthy strings."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            lower = v.lower()
            if lower in ('true', '1', 'yes'):
                return True
            if lower in ('false', '0', 'no'):
                return False
            raise ValueError(f"Invalid boolean value: {v}")
        raise ValueError(f"Expected boolean, got {type(v).__name__}")

    def log_config(self) -> None:
        """Log configuration with masked token for security."""
        if self.auth_token and len(self.auth_token) > 8:
            masked = self.auth_token[:4] + '****' + self.auth_token[-4:]
        elif self.auth_token:
            masked = '****'
        else:
            masked = 'none'
        log.info(
            f"Offline queue config: url={self.api_base_url}, token={masked}, "
            f"storage={self.storage_backend}:{self.data_dir}, "
            f"max_queue_size={self.max_queue_size}, max_retries={self.max_retries}, "
            f"backoff={self.retry_base_delay}s..{self.retry_max_delay}s, "
            f"health_url={self.health_url or 'none'}, "
            f"max_age={self.max_age_hours}h"
        )
        if self.debug_logging:
            log.warning(
                "DEBUG LOGGING ENABLED: every queued request attempt is logged. "
                "Use only while troubleshooting."
            )


def build_store(config: OfflineQueueConfig) -> PersistentStore:
    """Create the persistent store selected by config.storage_backend."""
    if config.storage_backend == 'json':
        return JsonFileStore(config.data_dir)
    if config.storage_backend == 'memory':
        return MemoryStore()
    return SQLiteStore(config.data_dir)


def validate_config(config_dict: dict) -> tuple[Optional[OfflineQueueConfig], Optional[str]]:
    """
    Validate configuration dictionary and return OfflineQueueConfig or error message.

    Args:
        config_dict: Dictionary containing configuration values

    Returns:
        Tuple of (OfflineQueueConfig, None) on success,
        or (None, error_message) on validation failure
    """
    try:
        config = OfflineQueueConfig(**config_dict)
        return (config, None)
    except ValidationError as e:
        # Extract user-friendly error messages
        errors = []
        for error in e.errors():
            field = '.'.join(str(loc) for loc in error['loc'])
            msg = error['msg']
            errors.append(f"{field}: {msg}")
        error_message = '; '.join(errors)
        return (None, error_message)


# Re-export ValidationError for external use
__all__ = ['OfflineQueueConfig', 'validate_config', 'build_store', 'ValidationError']
