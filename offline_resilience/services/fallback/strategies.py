"""
Fallback Strategies

Ordered tiers tried after a live provider call fails. Each strategy either
resolves the read or returns None to let the next tier try.
"""

import itertools
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import TypeAdapter

from ...core.telemetry import add_span_attribute
from ...domain.cache.repository_interfaces import CacheStoreInterface
from ...domain.cache.value_objects import TTL, CacheKey
from .models import FallbackResult, FallbackTier

Args = Dict[str, Any]


@dataclass
class OperationPolicy:
    """
    How one logical operation is executed and degraded.

    Reads walk ``strategies`` in order after a live failure. Writes that fail
    are handed to the retry queue when ``mutation_builder`` is set, otherwise
    the failure propagates.
    """

    name: str
    provider_method: str
    is_write: bool = False
    strategies: Sequence["FallbackStrategy"] = ()
    ttl: Optional[TTL] = None
    # Builds the exact cache key from call arguments
    key_builder: Optional[Callable[[Args], CacheKey]] = None
    # Key arguments widened to ``all`` for the broadened lookup
    broaden_fields: Tuple[str, ...] = ()
    # Re-applies the provider's filter to a broader cached set
    refilter: Optional[Callable[[Args, Any], Any]] = None
    # Narrows data served from any tier to what the caller asked for
    select: Optional[Callable[[Args, Any, random.Random], Any]] = None
    defaults: Optional[Callable[[Args], Any]] = None
    # Validates cached data (possibly restored as plain dicts) back into models
    result_adapter: Optional[TypeAdapter] = None
    live_args: Optional[Callable[[Args], Args]] = None
    mutation_builder: Optional[Callable[[Args], Any]] = None
    mirror: Optional[Callable[[CacheStoreInterface, Any, Args, TTL], None]] = None
    network: bool = False
    network_operation: Optional[str] = None

    def cache_key(self, args: Args) -> CacheKey:
        if self.key_builder is not None:
            return self.key_builder(args)
        return CacheKey.for_operation(self.name, **args)

    def adapt(self, data: Any) -> Any:
        if self.result_adapter is None:
            return data
        return self.result_adapter.validate_python(data)

    def narrow(self, args: Args, data: Any, rng: random.Random) -> Any:
        if self.select is None:
            return data
        return self.select(args, data, rng)

    @property
    def deferrable(self) -> bool:
        return self.mutation_builder is not None


@dataclass
class FallbackContext:
    """Everything a strategy needs to resolve one failed read."""

    policy: OperationPolicy
    args: Args
    key: CacheKey
    cache: CacheStoreInterface
    now: datetime
    rng: random.Random
    attempted: List[str] = field(default_factory=list)


def _has_data(data: Any) -> bool:
    if data is None:
        return False
    if isinstance(data, (list, tuple, dict)):
        return len(data) > 0
    return True


class FallbackStrategy(ABC):
    """One tier of the degradation chain."""

    tier: FallbackTier

    @abstractmethod
    def resolve(self, ctx: FallbackContext) -> Optional[FallbackResult]:
        """
        Try to produce data for the failed read.

        Args:
            ctx: Failed read context

        Returns:
            Result, or None when this tier has nothing to offer
        """
        pass


class ExactCacheStrategy(FallbackStrategy):
    """Serve the entry stored under the request's own key, even if expired."""

    tier = FallbackTier.EXACT_CACHE

    def resolve(self, ctx: FallbackContext) -> Optional[FallbackResult]:
        entry = ctx.cache.get_entry(ctx.key, allow_stale=True)
        if entry is None or not _has_data(entry.data):
            return None

        add_span_attribute("cache_hit", True)
        data = ctx.policy.narrow(ctx.args, ctx.policy.adapt(entry.data), ctx.rng)
        return FallbackResult(
            data=data,
            source=self.tier,
            stale=entry.is_expired(ctx.now),
            cache_key=ctx.key.value,
        )


class BroadenedCacheStrategy(FallbackStrategy):
    """
    Serve a broader cached set re-filtered to the request.

    Candidate keys widen the fewest fields first, so the closest cached
    superset wins. Selection from the filtered set is randomized.
    """

    tier = FallbackTier.BROADENED_CACHE

    def candidate_keys(self, ctx: FallbackContext) -> List[CacheKey]:
        fields = ctx.policy.broaden_fields
        seen = {ctx.key.value}
        keys = []
        for size in range(1, len(fields) + 1):
            for combo in itertools.combinations(fields, size):
                key = ctx.key.broaden(*combo)
                if key.value not in seen:
                    seen.add(key.value)
                    keys.append(key)
        return keys

    def resolve(self, ctx: FallbackContext) -> Optional[FallbackResult]:
        policy = ctx.policy
        if not policy.broaden_fields or policy.refilter is None:
            return None

        for key in self.candidate_keys(ctx):
            entry = ctx.cache.get_entry(key, allow_stale=True)
            if entry is None or not _has_data(entry.data):
                continue
            filtered = policy.refilter(ctx.args, policy.adapt(entry.data))
            if not _has_data(filtered):
                continue
            add_span_attribute("cache_hit", True)
            add_span_attribute("broadened_key", key.value)
            return FallbackResult(
                data=policy.narrow(ctx.args, filtered, ctx.rng),
                source=self.tier,
                stale=entry.is_expired(ctx.now),
                cache_key=key.value,
            )
        return None


class DefaultDataStrategy(FallbackStrategy):
    """Synthesize the operation's minimal default dataset."""

    tier = FallbackTier.DEFAULTS

    def resolve(self, ctx: FallbackContext) -> Optional[FallbackResult]:
        if ctx.policy.defaults is None:
            return None
        data = ctx.policy.defaults(ctx.args)
        if data is None:
            return None
        return FallbackResult(
            data=ctx.policy.narrow(ctx.args, data, ctx.rng),
            source=self.tier,
            stale=False,
        )


STANDARD_READ_CHAIN: Tuple[FallbackStrategy, ...] = (
    ExactCacheStrategy(),
    BroadenedCacheStrategy(),
    DefaultDataStrategy(),
)
