"""
Composition Root

Constructs one instance of each component and wires them together. There are
no module-level singletons: the application owns the returned layer.
"""

import random
from dataclasses import dataclass
from typing import Optional

import structlog

from .constants import JOB_CACHE_SWEEP, JOB_RETRY_FLUSH
from .core.config import Settings, get_settings
from .core.scheduler import AsyncioScheduler, Clock, Scheduler, SystemClock
from .domain.cache.value_objects import TTL
from .infrastructure.cache.memory_store import InMemoryCacheStore
from .providers.protocol import ContentProvider
from .services.content_service import OfflineContentService
from .services.fallback.orchestrator import FallbackOrchestrator
from .services.privacy.guard import PrivacyConfig, PrivacyGuard
from .services.queues.connectivity import ConnectivityMonitor
from .services.queues.retry_queue import RetryQueue

logger = structlog.get_logger(__name__)


@dataclass
class OfflineLayer:
    """All components of the offline layer for one provider."""

    settings: Settings
    clock: Clock
    scheduler: Scheduler
    cache: InMemoryCacheStore
    retry_queue: RetryQueue
    privacy_guard: PrivacyGuard
    orchestrator: FallbackOrchestrator
    connectivity: ConnectivityMonitor
    service: OfflineContentService

    async def start(self) -> None:
        """Register the periodic cache sweep and retry flush, then start them."""
        self.scheduler.every(
            JOB_CACHE_SWEEP,
            self.settings.CACHE_SWEEP_INTERVAL_SECONDS,
            self.cache.sweep_expired,
        )
        self.scheduler.every(
            JOB_RETRY_FLUSH,
            self.settings.RETRY_FLUSH_INTERVAL_SECONDS,
            self.retry_queue.flush,
        )
        await self.scheduler.start()
        logger.info(
            "Offline layer started",
            sweep_interval=self.settings.CACHE_SWEEP_INTERVAL_SECONDS,
            flush_interval=self.settings.RETRY_FLUSH_INTERVAL_SECONDS,
        )

    async def stop(self) -> None:
        self.scheduler.cancel(JOB_CACHE_SWEEP)
        self.scheduler.cancel(JOB_RETRY_FLUSH)
        await self.scheduler.stop()
        logger.info("Offline layer stopped")

    async def __aenter__(self) -> "OfflineLayer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


def build_offline_layer(
    provider: ContentProvider,
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    scheduler: Optional[Scheduler] = None,
    rng: Optional[random.Random] = None,
) -> OfflineLayer:
    """
    Build a fully wired offline layer around ``provider``.

    Args:
        provider: Content provider implementing the provider contract
        settings: Layer settings; environment-derived settings when omitted
        clock: Time source shared by every component
        scheduler: Periodic job runner; an asyncio scheduler when omitted
        rng: Random source for question subset selection
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    scheduler = scheduler or AsyncioScheduler()

    cache = InMemoryCacheStore(
        capacity=settings.CACHE_CAPACITY,
        default_ttl=TTL.from_seconds(settings.CACHE_DEFAULT_TTL_SECONDS),
        clock=clock,
    )
    retry_queue = RetryQueue(clock=clock, max_retries=settings.RETRY_MAX_RETRIES)
    privacy_guard = PrivacyGuard(
        config=PrivacyConfig(
            allowed_network_operations=set(settings.allowed_network_operations),
            monitoring_enabled=settings.PRIVACY_MONITORING_ENABLED,
        ),
        clock=clock,
        cache=cache,
        retry_queue=retry_queue,
    )
    orchestrator = FallbackOrchestrator(
        cache=cache,
        retry_queue=retry_queue,
        privacy_guard=privacy_guard,
        settings=settings,
        clock=clock,
        rng=rng,
    )
    connectivity = ConnectivityMonitor(retry_queue, clock=clock)
    service = OfflineContentService(
        provider=provider,
        orchestrator=orchestrator,
        cache=cache,
        retry_queue=retry_queue,
        privacy_guard=privacy_guard,
        connectivity=connectivity,
        settings=settings,
    )

    return OfflineLayer(
        settings=settings,
        clock=clock,
        scheduler=scheduler,
        cache=cache,
        retry_queue=retry_queue,
        privacy_guard=privacy_guard,
        orchestrator=orchestrator,
        connectivity=connectivity,
        service=service,
    )
