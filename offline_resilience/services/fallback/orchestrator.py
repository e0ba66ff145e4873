"""
Fallback Orchestrator

Runs each logical operation against the live provider and degrades locally on
failure. Reads fall back through cache and default tiers; writes that fail are
deferred to the retry queue so the caller never sees the failure.
"""

import logging
import random
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from opentelemetry import trace

from ...constants import MAX_ERROR_LOG_ENTRIES
from ...core.config import Settings, get_settings
from ...core.scheduler import Clock, SystemClock
from ...core.telemetry import mark_span_error
from ...domain.cache.repository_interfaces import CacheStoreInterface
from ...domain.cache.value_objects import TTL, CacheKey
from ...domain.exceptions import (
    ConfigurationError,
    NoDataAvailable,
    TransientProviderFailure,
    UnknownOperationError,
    categorize_error,
)
from ..interfaces import (
    FallbackOrchestratorInterface,
    PrivacyGuardInterface,
    RetryQueueInterface,
)
from .models import ErrorStats, FallbackResult, FallbackTier, OfflineError
from .policies import default_policies
from .strategies import Args, FallbackContext, OperationPolicy

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ErrorListener = Callable[[List[OfflineError]], None]


class FallbackOrchestrator(FallbackOrchestratorInterface):
    """
    Per-operation live call with local degradation.

    Provider failures are resolved locally whenever any tier succeeds; only
    total exhaustion reaches the caller, as NoDataAvailable.
    """

    def __init__(
        self,
        cache: CacheStoreInterface,
        retry_queue: RetryQueueInterface,
        privacy_guard: Optional[PrivacyGuardInterface] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        policies: Optional[Dict[str, OperationPolicy]] = None,
    ):
        self.cache = cache
        self.retry_queue = retry_queue
        self.privacy_guard = privacy_guard
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self._policies: Dict[str, OperationPolicy] = (
            dict(policies) if policies is not None else default_policies(self.settings)
        )
        self._errors: Deque[OfflineError] = deque(maxlen=MAX_ERROR_LOG_ENTRIES)
        self._error_listeners: List[ErrorListener] = []
        self._last_results: Dict[str, FallbackResult] = {}

    # Policy registry

    def register_policy(self, policy: OperationPolicy) -> None:
        """Add or replace the policy for ``policy.name``."""
        if policy.network and self.privacy_guard is None:
            raise ConfigurationError(
                "Network-facing operations require a privacy guard",
                operation=policy.name,
            )
        self._policies[policy.name] = policy

    def policy(self, operation: str) -> OperationPolicy:
        try:
            return self._policies[operation]
        except KeyError:
            raise UnknownOperationError(operation) from None

    @property
    def operations(self) -> List[str]:
        return sorted(self._policies)

    def _ttl(self, policy: OperationPolicy) -> TTL:
        if policy.ttl is not None:
            return policy.ttl
        return TTL.from_seconds(self.settings.ttl_for(policy.name))

    # Reads

    async def read(self, operation: str, args: Optional[Args], provider: Any) -> Any:
        result = await self.read_result(operation, args, provider)
        return result.data

    async def read_result(
        self, operation: str, args: Optional[Args], provider: Any
    ) -> FallbackResult:
        """
        Read with fallback and report which tier produced the data.

        Raises:
            NoDataAvailable: If the live call and every fallback tier failed
            UnknownOperationError: If no policy is registered for ``operation``
        """
        policy = self.policy(operation)
        if policy.is_write:
            raise ConfigurationError("Cannot read a write operation", operation=operation)
        args = dict(args or {})
        key = policy.cache_key(args)

        with tracer.start_as_current_span(f"fallback.read.{operation}") as span:
            span.set_attribute("operation", operation)
            span.set_attribute("cache_key", key.value)

            try:
                live_args = policy.live_args(args) if policy.live_args else args
                data = await self._invoke(policy, provider, live_args)
            except Exception as e:
                error = self._record_error(operation, e)
                span.set_attribute("cache_hit", False)
                try:
                    result = self._fallback(policy, args, key, error, e)
                finally:
                    self._notify_error_listeners()
                span.set_attribute("fallback_tier", result.source.value)
                span.set_attribute("stale", result.stale)
                self._last_results[operation] = result
                return result

            self.cache.set(key, data, self._ttl(policy))
            result = FallbackResult(
                data=policy.narrow(args, data, self.rng),
                source=FallbackTier.LIVE,
                cache_key=key.value,
            )
            span.set_attribute("fallback_tier", FallbackTier.LIVE.value)
            self._last_results[operation] = result
            return result

    async def prefetch(self, operation: str, args: Optional[Args], provider: Any) -> Optional[Any]:
        """
        Populate the cache from a live call without any fallback.

        Returns:
            The fetched data, or None when the provider call failed
        """
        policy = self.policy(operation)
        args = dict(args or {})
        key = policy.cache_key(args)
        try:
            data = await self._invoke(policy, provider, args)
        except Exception as e:
            logger.warning(
                f"Prefetch of {key.value} failed: {e}",
                extra={"operation": operation, "cache_key": key.value},
            )
            return None
        self.cache.set(key, data, self._ttl(policy))
        return data

    def _fallback(
        self,
        policy: OperationPolicy,
        args: Args,
        key: CacheKey,
        error: OfflineError,
        cause: Exception,
    ) -> FallbackResult:
        ctx = FallbackContext(
            policy=policy,
            args=args,
            key=key,
            cache=self.cache,
            now=self.clock.now(),
            rng=self.rng,
        )

        for strategy in policy.strategies:
            ctx.attempted.append(strategy.tier.value)
            try:
                result = strategy.resolve(ctx)
            except Exception as e:
                logger.warning(
                    f"Fallback tier {strategy.tier.value} failed for {policy.name}: {e}",
                    extra={"operation": policy.name, "tier": strategy.tier.value},
                )
                continue
            if result is None:
                continue

            error.resolved = True
            error.fallback_used = result.source.value
            logger.info(
                f"Fallback {result.source.value} served {policy.name}",
                extra={
                    "operation": policy.name,
                    "tier": result.source.value,
                    "stale": result.stale,
                    "cache_key": result.cache_key,
                },
            )
            return result

        logger.error(
            f"No fallback available for {policy.name}",
            extra={"operation": policy.name, "tiers_attempted": ctx.attempted},
        )
        raise NoDataAvailable(policy.name, tiers_attempted=ctx.attempted) from cause

    def last_source(self, operation: str) -> Optional[FallbackTier]:
        """Tier that served the most recent successful read of ``operation``."""
        result = self._last_results.get(operation)
        return result.source if result is not None else None

    # Writes

    async def write(self, operation: str, args: Optional[Args], provider: Any) -> Any:
        """
        Run a mutation against the provider.

        Returns:
            The provider's result, or None when the mutation was deferred

        Raises:
            PrivacyViolationError: If the privacy guard blocks a network-facing call
            TransientProviderFailure: If a non-deferrable write failed
        """
        policy = self.policy(operation)
        if not policy.is_write:
            raise ConfigurationError("Cannot write a read operation", operation=operation)
        args = dict(args or {})

        with tracer.start_as_current_span(f"fallback.write.{operation}") as span:
            span.set_attribute("operation", operation)

            call_args = args
            if policy.network:
                # Raises before the provider is touched when the call is blocked
                call_args = self.privacy_guard.inspect_outbound(
                    policy.network_operation or operation, args
                )

            try:
                result = await self._invoke(policy, provider, call_args)
            except Exception as e:
                error = self._record_error(operation, e)
                if not policy.deferrable:
                    self._notify_error_listeners()
                    mark_span_error(span, e)
                    raise TransientProviderFailure(operation, e, error.category) from e

                queued = self.retry_queue.enqueue(operation, policy.mutation_builder(args))
                error.resolved = True
                error.fallback_used = "retry_queue"
                span.set_attribute("deferred", True)
                span.set_attribute("queue_size", self.retry_queue.size())
                logger.warning(
                    f"Write {operation} failed, queued for retry",
                    extra={"operation": operation, "operation_id": queued.id},
                )
                self._notify_error_listeners()
                return None

            if policy.mirror is not None:
                policy.mirror(self.cache, result, args, self._ttl(policy))
            return result

    async def replay(self, operation: str, args: Args, provider: Any) -> Any:
        """Re-run a queued mutation; failures propagate to the retry queue."""
        policy = self.policy(operation)
        call_args = args
        if policy.network:
            call_args = self.privacy_guard.inspect_outbound(
                policy.network_operation or operation, args
            )
        result = await self._invoke(policy, provider, call_args)
        if policy.mirror is not None:
            policy.mirror(self.cache, result, args, self._ttl(policy))
        return result

    async def _invoke(self, policy: OperationPolicy, provider: Any, args: Args) -> Any:
        method = getattr(provider, policy.provider_method, None)
        if method is None:
            if not callable(provider):
                raise ConfigurationError(
                    "Provider does not implement operation",
                    operation=policy.name,
                    method=policy.provider_method,
                )
            method = provider
        return await method(**args)

    # Error log

    def _record_error(self, operation: str, error: Exception) -> OfflineError:
        category = categorize_error(error)
        record = OfflineError(
            operation=operation,
            category=category,
            message=str(error) or type(error).__name__,
            timestamp=self.clock.now(),
        )
        self._errors.append(record)
        logger.warning(
            f"Provider call {operation} failed: {record.message}",
            extra={"operation": operation, "category": category.value},
        )
        return record

    def errors(self) -> List[OfflineError]:
        return list(self._errors)

    def unresolved_errors(self) -> List[OfflineError]:
        return [e for e in self._errors if not e.resolved]

    def resolve_error(self, error_id: str) -> bool:
        """Mark an error as handled. Returns False for unknown ids."""
        for error in self._errors:
            if error.id == error_id:
                error.resolved = True
                self._notify_error_listeners()
                return True
        return False

    def clear_resolved_errors(self) -> int:
        """Drop resolved errors from the log. Returns the number removed."""
        remaining = [e for e in self._errors if not e.resolved]
        removed = len(self._errors) - len(remaining)
        if removed:
            self._errors = deque(remaining, maxlen=MAX_ERROR_LOG_ENTRIES)
            self._notify_error_listeners()
        return removed

    def subscribe_errors(self, listener: ErrorListener) -> Callable[[], None]:
        """Register an error log listener. Returns a function that unsubscribes it."""
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    def _notify_error_listeners(self) -> None:
        errors = self.errors()
        for listener in list(self._error_listeners):
            try:
                listener(errors)
            except Exception as e:
                logger.error(f"Error log listener failed: {e}", exc_info=True)

    def error_stats(self) -> ErrorStats:
        stats = ErrorStats(total=len(self._errors))
        for error in self._errors:
            if not error.resolved:
                stats.unresolved += 1
            category = error.category.value
            stats.by_category[category] = stats.by_category.get(category, 0) + 1
            stats.by_operation[error.operation] = stats.by_operation.get(error.operation, 0) + 1
            if error.fallback_used:
                stats.by_fallback[error.fallback_used] = (
                    stats.by_fallback.get(error.fallback_used, 0) + 1
                )
        return stats

    def clear_errors(self) -> None:
        self._errors.clear()
        self._notify_error_listeners()
