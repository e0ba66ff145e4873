"""
In-Memory Cache Store

TTL + capacity-bounded key/value store with least-recently-used eviction.
Expired entries are kept until the periodic sweep (or LRU eviction) removes
them, so fallback reads can still serve them as stale data.
"""

import logging
from collections import OrderedDict
from typing import Any, List, Optional

from ...constants import CACHE_KEY_WILDCARD, OP_GET_QUESTIONS
from ...core.scheduler import Clock, SystemClock
from ...domain.cache.entities import (
    CacheEntry,
    CacheSnapshot,
    CacheSnapshotEntry,
    CacheStats,
    OfflineAvailability,
    estimate_size,
)
from ...domain.cache.repository_interfaces import (
    CacheStoreInterface,
    KeyLike,
    TTLLike,
)
from ...domain.cache.value_objects import TTL, CacheKey

logger = logging.getLogger(__name__)


def _key(key: KeyLike) -> str:
    return key.value if isinstance(key, CacheKey) else str(key)


def _ttl(ttl: TTLLike) -> TTL:
    return ttl if isinstance(ttl, TTL) else TTL.from_seconds(ttl)


class InMemoryCacheStore(CacheStoreInterface):
    """
    Process-local cache store.

    Eviction is synchronous with insertion: after ``set`` returns, the store
    never holds more than ``capacity`` entries.
    """

    def __init__(
        self,
        capacity: int = 1000,
        default_ttl: TTLLike = TTL.hours(24),
        clock: Optional[Clock] = None,
    ):
        if capacity < 0:
            raise ValueError("Cache capacity cannot be negative")
        self.capacity = capacity
        self.default_ttl = _ttl(default_ttl)
        self.clock = clock or SystemClock()
        # Insertion/access order; used to break ties between equal timestamps
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._evictions = 0
        self._expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: KeyLike) -> bool:
        return self.has(key)

    # Reads

    def get(self, key: KeyLike, allow_stale: bool = False) -> Optional[Any]:
        entry = self.get_entry(key, allow_stale=allow_stale)
        return entry.data if entry is not None else None

    def get_entry(self, key: KeyLike, allow_stale: bool = False) -> Optional[CacheEntry]:
        cache_key = _key(key)
        entry = self._entries.get(cache_key)
        now = self.clock.now()

        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(now):
            self._misses += 1
            if not allow_stale:
                return None
            self._stale_hits += 1
            logger.debug(
                f"Serving stale cache entry {cache_key}",
                extra={"key": cache_key, "expired_at": entry.expires_at.isoformat()},
            )
        else:
            self._hits += 1

        entry.touch(now)
        self._entries.move_to_end(cache_key)
        return entry

    def peek(self, key: KeyLike) -> Optional[CacheEntry]:
        return self._entries.get(_key(key))

    def has(self, key: KeyLike, include_stale: bool = False) -> bool:
        entry = self._entries.get(_key(key))
        if entry is None:
            return False
        return include_stale or not entry.is_expired(self.clock.now())

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        if prefix is None:
            return list(self._entries)
        return [k for k in self._entries if k.startswith(prefix)]

    # Writes

    def set(self, key: KeyLike, data: Any, ttl: Optional[TTLLike] = None) -> bool:
        cache_key = _key(key)
        cache_ttl = _ttl(ttl) if ttl is not None else self.default_ttl

        if self.capacity == 0:
            return False
        if not cache_ttl.cacheable:
            logger.debug(
                f"Skipping cache write for {cache_key}: non-positive TTL",
                extra={"key": cache_key, "ttl": cache_ttl.seconds},
            )
            return False

        entry = CacheEntry.create(data, cache_ttl, self.clock.now())
        self._entries.pop(cache_key, None)
        self._entries[cache_key] = entry
        self._evict_if_needed()
        return True

    def delete(self, key: KeyLike) -> bool:
        return self._entries.pop(_key(key), None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._evictions = 0
        self._expirations = 0
        logger.info("Cache cleared")

    def sweep_expired(self) -> int:
        now = self.clock.now()
        expired = [k for k, e in self._entries.items() if e.expires_at < now]
        for cache_key in expired:
            del self._entries[cache_key]
        self._expirations += len(expired)

        if expired:
            logger.info(
                f"Cleaned up {len(expired)} expired cache entries",
                extra={"count": len(expired), "remaining": len(self._entries)},
            )
        return len(expired)

    def _evict_if_needed(self) -> None:
        """Evict least-recently-accessed entries until back within capacity."""
        evicted = []
        while len(self._entries) > self.capacity:
            # min() keeps the first of equal timestamps, i.e. the least recent in order
            victim = min(
                self._entries.items(), key=lambda item: item[1].last_accessed_at
            )[0]
            del self._entries[victim]
            evicted.append(victim)

        if evicted:
            self._evictions += len(evicted)
            logger.info(
                f"Evicted {len(evicted)} cache entries",
                extra={"keys": evicted, "capacity": self.capacity},
            )

    # Reporting

    def stats(self) -> CacheStats:
        entries = list(self._entries.values())
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            stale_hits=self._stale_hits,
            evictions=self._evictions,
            expirations=self._expirations,
            entry_count=len(entries),
            capacity=self.capacity,
            estimated_bytes=sum(
                len(k) + e.size_bytes for k, e in self._entries.items()
            ),
            oldest_entry=min((e.created_at for e in entries), default=None),
            newest_entry=max((e.created_at for e in entries), default=None),
        )

    def offline_availability(self) -> OfflineAvailability:
        now = self.clock.now()
        subjects: List[str] = []
        total_questions = 0

        for cache_key, entry in self._entries.items():
            key = CacheKey(cache_key)
            if key.operation != OP_GET_QUESTIONS or entry.is_expired(now):
                continue
            subject = key.params.get("subject")
            if subject and subject != CACHE_KEY_WILDCARD and subject not in subjects:
                subjects.append(subject)
            if isinstance(entry.data, list):
                total_questions += len(entry.data)

        return OfflineAvailability(
            subjects=subjects,
            total_questions=total_questions,
            available_offline=bool(subjects) and total_questions > 0,
        )

    def is_available_offline(self, subject: str, key_stage: Optional[Any] = None) -> bool:
        """
        Whether unexpired questions for ``subject`` are cached.

        With ``key_stage`` given, only sets for that key stage or for every key
        stage count.
        """
        now = self.clock.now()
        wanted = CacheKey.questions(subject, key_stage).params

        for cache_key, entry in self._entries.items():
            key = CacheKey(cache_key)
            if key.operation != OP_GET_QUESTIONS or entry.is_expired(now):
                continue
            params = key.params
            if params.get("subject") != wanted["subject"]:
                continue
            if key_stage is not None and params.get("key_stage") not in (
                wanted["key_stage"],
                CACHE_KEY_WILDCARD,
            ):
                continue
            if entry.data:
                return True
        return False

    # Persistence

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            taken_at=self.clock.now(),
            entries=[
                CacheSnapshotEntry(
                    key=cache_key,
                    data=entry.data,
                    created_at=entry.created_at,
                    expires_at=entry.expires_at,
                    access_count=entry.access_count,
                    last_accessed_at=entry.last_accessed_at,
                )
                for cache_key, entry in self._entries.items()
            ],
        )

    def restore(self, snapshot: CacheSnapshot) -> int:
        """
        Load entries from a snapshot, keeping their original timestamps.

        Entries already expired are skipped; capacity is re-applied afterwards.
        """
        if self.capacity == 0:
            return 0

        now = self.clock.now()
        restored = 0
        for item in sorted(snapshot.entries, key=lambda e: e.last_accessed_at):
            if item.expires_at < now:
                continue
            entry = CacheEntry(
                data=item.data,
                created_at=item.created_at,
                expires_at=item.expires_at,
                access_count=item.access_count,
                last_accessed_at=item.last_accessed_at,
            )
            entry.size_bytes = estimate_size(item.data)
            self._entries.pop(item.key, None)
            self._entries[item.key] = entry
            restored += 1

        self._evict_if_needed()
        logger.info(
            f"Restored {restored} cache entries from snapshot",
            extra={"restored": restored, "entries": len(self._entries)},
        )
        return restored
