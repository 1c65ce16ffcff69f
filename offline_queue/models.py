"""
Data models for queued outbound requests.

QueuedRequest is the unit of work held by the offline queue. Models are
pydantic v2 so the persisted snapshot is validated as a whole on load:
any malformed entry rejects the snapshot instead of keeping a partial parse.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class Priority(str, Enum):
    """Enqueue-time priority tier (critical > high > medium > low)."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Scheduling rank, 0 is served first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ItemState(Enum):
    """Per-item processing states."""
    QUEUED = "queued"
    PENDING_RETRY = "pending_retry"
    DELIVERED = "delivered"
    ABANDONED = "abandoned"


def now_ms() -> int:
    """Current wall clock in milliseconds since epoch."""
    return int(time.time() * 1000)


def generate_request_id(created_at: int) -> str:
    """Opaque id of the form req_<created_at>_<random>."""
    return f"req_{created_at}_{uuid.uuid4().hex[:12]}"


_PAYLOAD = TypeAdapter(Any)


class RequestSpec(BaseModel):
    """
    Caller-supplied description of an outbound request.

    Method and priority accept case-insensitive strings; endpoint must be a
    non-empty path.
    """

    endpoint: str = Field(min_length=1)
    method: HttpMethod
    payload: Optional[Any] = None
    priority: Priority = Priority.MEDIUM
    requires_auth: bool = False

    @field_validator('endpoint', mode='before')
    @classmethod
    def strip_endpoint(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('method', mode='before')
    @classmethod
    def normalize_method(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('payload')
    @classmethod
    def ensure_serializable_payload(cls, v):
        """Reject payloads the persisted snapshot could not encode."""
        if v is None:
            return v
        try:
            _PAYLOAD.dump_json(v)
        except (ValueError, TypeError) as e:
            raise ValueError(f"payload is not JSON-serializable: {e}") from e
        return v

    @field_validator('priority', mode='before')
    @classmethod
    def normalize_priority(cls, v):
        if v is None:
            return Priority.MEDIUM
        if isinstance(v, str):
            return v.lower()
        return v


class QueuedRequest(BaseModel):
    """
    A pending outbound operation.

    created_at is milliseconds since epoch and never changes after enqueue;
    retry_count only grows until the item leaves the queue.
    """

    id: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)
    method: HttpMethod
    payload: Optional[Any] = None
    requires_auth: bool = False
    priority: Priority = Priority.MEDIUM
    created_at: int = Field(ge=0)
    retry_count: int = Field(default=0, ge=0)

    @classmethod
    def from_spec(cls, spec: RequestSpec, created_at: int) -> 'QueuedRequest':
        return cls(
            id=generate_request_id(created_at),
            endpoint=spec.endpoint,
            method=spec.method,
            payload=spec.payload,
            requires_auth=spec.requires_auth,
            priority=spec.priority,
            created_at=created_at,
            retry_count=0,
        )

    def sort_key(self) -> tuple[int, int]:
        """(priority rank, created_at): ascending order is processing order."""
        return (self.priority.rank, self.created_at)

    def age_ms(self, now: int) -> int:
        return now - self.created_at


# Whole-queue snapshot codec
QueueSnapshot = TypeAdapter(list[QueuedRequest])


@dataclass
class QueueStats:
    """Point-in-time summary of the queue."""
    total: int = 0
    by_priority: dict = field(default_factory=lambda: {p.value: 0 for p in Priority})
    oldest_request: Optional[int] = None   # created_at of oldest item
    newest_request: Optional[int] = None   # created_at of newest item
    average_age: float = 0.0               # milliseconds

    def to_dict(self) -> dict:
        return asdict(self)


__all__ = [
    'Priority',
    'HttpMethod',
    'ItemState',
    'RequestSpec',
    'QueuedRequest',
    'QueueSnapshot',
    'QueueStats',
    'now_ms',
    'generate_request_id',
]
