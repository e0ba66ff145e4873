"""
Cache Domain Entities

Cache entries and the serializable models describing cache state.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic_core import to_json

from .value_objects import TTL, CacheEntryStatus

T = TypeVar("T")


def estimate_size(data: Any) -> int:
    """Rough serialized size of a value in bytes."""
    try:
        return len(to_json(data, fallback=str))
    except (TypeError, ValueError):
        return len(repr(data))


@dataclass
class CacheEntry(Generic[T]):
    """
    Cached value with expiration and access metadata.

    Owned by the cache store; only ``get``/``set`` mutate it.
    """

    data: T
    created_at: datetime
    expires_at: datetime
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    size_bytes: int = 0

    def __post_init__(self) -> None:
        if self.expires_at < self.created_at:
            raise ValueError("Cache entry cannot expire before it was created")
        if self.last_accessed_at is None:
            self.last_accessed_at = self.created_at

    @classmethod
    def create(cls, data: T, ttl: TTL, now: datetime) -> "CacheEntry[T]":
        """Create new cache entry expiring ``ttl`` after ``now``."""
        return cls(
            data=data,
            created_at=now,
            expires_at=now + ttl.delta,
            size_bytes=estimate_size(data),
        )

    def is_expired(self, now: datetime) -> bool:
        """Check if cache entry is expired."""
        return now > self.expires_at

    def touch(self, now: datetime) -> None:
        """Record access to cache entry."""
        self.access_count += 1
        self.last_accessed_at = now

    def status(self, now: datetime) -> CacheEntryStatus:
        if self.is_expired(now):
            return CacheEntryStatus.EXPIRED
        return CacheEntryStatus.ACTIVE


class CacheStats(BaseModel):
    """Cache statistics for operator visibility."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0
    expirations: int = 0
    entry_count: int = 0
    capacity: int = 0
    estimated_bytes: int = 0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    @property
    def miss_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.misses / self.total_requests


class CacheSnapshotEntry(BaseModel):
    """One persisted cache entry."""

    key: str
    data: Any
    created_at: datetime
    expires_at: datetime
    access_count: int = 0
    last_accessed_at: datetime


class CacheSnapshot(BaseModel):
    """Serializable image of the cache, for optional local persistence."""

    taken_at: datetime
    entries: List[CacheSnapshotEntry] = Field(default_factory=list)


class OfflineAvailability(BaseModel):
    """What question content can be served without the provider."""

    subjects: List[str] = Field(default_factory=list)
    total_questions: int = 0
    available_offline: bool = False
