"""
Cache Store Interface

Abstract contract for the cache store. Components depend on this interface so
tests can substitute fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Union

from .entities import CacheEntry, CacheSnapshot, CacheStats, OfflineAvailability
from .value_objects import TTL, CacheKey

KeyLike = Union[CacheKey, str]
TTLLike = Union[TTL, int, float]


class CacheStoreInterface(ABC):
    """
    Key -> entry map with per-entry TTL and a global capacity.

    All methods are synchronous: in-memory cache operations never suspend.
    """

    @abstractmethod
    def get(self, key: KeyLike, allow_stale: bool = False) -> Optional[Any]:
        """Return cached data, or None on a miss.

        Expired entries count as misses unless ``allow_stale`` is set, in which
        case the last known value is returned.
        """
        pass

    @abstractmethod
    def get_entry(self, key: KeyLike, allow_stale: bool = False) -> Optional[CacheEntry]:
        """Like ``get`` but returns the entry, so callers can tell if it is stale."""
        pass

    @abstractmethod
    def peek(self, key: KeyLike) -> Optional[CacheEntry]:
        """Return the entry without touching access metadata or statistics."""
        pass

    @abstractmethod
    def set(self, key: KeyLike, data: Any, ttl: Optional[TTLLike] = None) -> bool:
        """Write an entry. Returns False when the write was skipped."""
        pass

    @abstractmethod
    def has(self, key: KeyLike, include_stale: bool = False) -> bool:
        """Check if an entry is present (and fresh, unless ``include_stale``)."""
        pass

    @abstractmethod
    def delete(self, key: KeyLike) -> bool:
        """Delete an entry. Returns True if one was removed."""
        pass

    @abstractmethod
    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries and reset statistics."""
        pass

    @abstractmethod
    def keys(self, prefix: Optional[str] = None) -> List[str]:
        """List keys, optionally restricted to a prefix."""
        pass

    @abstractmethod
    def stats(self) -> CacheStats:
        """Hit/miss counters and size estimates."""
        pass

    @abstractmethod
    def snapshot(self) -> CacheSnapshot:
        """Serializable image of the current entries."""
        pass

    @abstractmethod
    def restore(self, snapshot: CacheSnapshot) -> int:
        """Load entries from a snapshot. Returns the number restored."""
        pass

    @abstractmethod
    def offline_availability(self) -> OfflineAvailability:
        """Summarize question content servable without the provider."""
        pass

    @abstractmethod
    def is_available_offline(self, subject: str, key_stage: Optional[Any] = None) -> bool:
        """Whether unexpired questions for a subject (and key stage) are cached."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass
