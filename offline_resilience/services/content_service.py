"""
Offline Content Service

Application-facing facade. Exposes the provider's operations with caching,
fallback and deferred retry added transparently.
"""

from datetime import datetime
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel, Field

from ..constants import (
    OP_CREATE_CUSTOM_MIX,
    OP_CREATE_PROFILE,
    OP_GET_CUSTOM_MIXES,
    OP_GET_PROFILES,
    OP_GET_QUESTIONS,
    OP_GET_SUBJECTS,
    OP_UPDATE_PROGRESS,
)
from ..core.config import Settings, get_settings
from ..domain.cache.repository_interfaces import CacheStoreInterface
from ..domain.cache.value_objects import CacheKey
from ..domain.content.models import (
    CreateCustomMixRequest,
    CreateProfileRequest,
    CustomMix,
    DifficultyRange,
    KeyStage,
    Profile,
    Question,
    QuizResult,
    Subject,
)
from ..providers.protocol import ContentProvider
from .fallback.orchestrator import FallbackOrchestrator
from .privacy.guard import PrivacyGuard
from .queues.connectivity import ConnectivityMonitor
from .queues.mutations import CreateCustomMixMutation, UpdateProgressMutation
from .queues.retry_queue import RetryQueue
from .verification import VerificationReport, verify_offline_capabilities

logger = structlog.get_logger(__name__)


class PreloadReport(BaseModel):
    """Outcome of preloading content for offline use."""

    subjects_cached: bool = False
    question_sets: int = 0
    questions: int = 0
    failures: List[str] = Field(default_factory=list)


class OfflineStatus(BaseModel):
    """What the layer can serve without the provider right now."""

    is_offline_ready: bool
    is_online: bool
    cached_subjects: int = 0
    cached_questions: int = 0
    cached_profiles: int = 0
    cached_mixes: int = 0
    failed_operations: int = 0
    dropped_operations: int = 0
    available_subjects: List[str] = Field(default_factory=list)
    last_checked_at: Optional[datetime] = None


StatusListener = Callable[[OfflineStatus], None]


class OfflineContentService:
    """Content operations with offline guarantees."""

    def __init__(
        self,
        provider: ContentProvider,
        orchestrator: FallbackOrchestrator,
        cache: CacheStoreInterface,
        retry_queue: RetryQueue,
        privacy_guard: PrivacyGuard,
        connectivity: Optional[ConnectivityMonitor] = None,
        settings: Optional[Settings] = None,
    ):
        self.provider = provider
        self.orchestrator = orchestrator
        self.cache = cache
        self.retry_queue = retry_queue
        self.privacy_guard = privacy_guard
        self.connectivity = connectivity
        self.settings = settings or get_settings()
        self._listeners: List[StatusListener] = []

        self.retry_queue.register_executor(OP_UPDATE_PROGRESS, self._replay_update_progress)
        self.retry_queue.register_executor(OP_CREATE_CUSTOM_MIX, self._replay_create_custom_mix)
        if self.connectivity is not None:
            self.connectivity.subscribe(lambda _status: self._notify_listeners())

    # Reads

    async def get_subjects(self) -> List[Subject]:
        return await self.orchestrator.read(OP_GET_SUBJECTS, {}, self.provider)

    async def get_questions(
        self,
        subject: str,
        key_stage: Optional[KeyStage] = None,
        difficulty_range: Optional[DifficultyRange] = None,
        count: int = 10,
    ) -> List[Question]:
        return await self.orchestrator.read(
            OP_GET_QUESTIONS,
            {
                "subject": subject,
                "key_stage": key_stage,
                "difficulty_range": difficulty_range,
                "count": count,
            },
            self.provider,
        )

    async def get_profiles(self) -> List[Profile]:
        """Profiles are local-only; a failure here surfaces as NoDataAvailable."""
        return await self.orchestrator.read(OP_GET_PROFILES, {}, self.provider)

    async def get_custom_mixes(self) -> List[CustomMix]:
        return await self.orchestrator.read(OP_GET_CUSTOM_MIXES, {}, self.provider)

    # Writes

    async def create_profile(self, request: CreateProfileRequest) -> Profile:
        return await self.orchestrator.write(
            OP_CREATE_PROFILE, {"request": request}, self.provider
        )

    async def update_progress(self, profile_id: int, quiz_result: QuizResult) -> None:
        """Never raises for provider failures; the update is retried later."""
        pending = self.retry_queue.size()
        await self.orchestrator.write(
            OP_UPDATE_PROGRESS,
            {"profile_id": profile_id, "quiz_result": quiz_result},
            self.provider,
        )
        if self.retry_queue.size() != pending:
            self._notify_listeners()

    async def create_custom_mix(self, request: CreateCustomMixRequest) -> Optional[CustomMix]:
        """
        Create a custom mix.

        Returns:
            The created mix, or None when creation was deferred to the retry queue
        """
        pending = self.retry_queue.size()
        mix = await self.orchestrator.write(
            OP_CREATE_CUSTOM_MIX, {"request": request}, self.provider
        )
        if self.retry_queue.size() != pending:
            self._notify_listeners()
        return mix

    async def _replay_update_progress(self, mutation: UpdateProgressMutation) -> None:
        await self.orchestrator.replay(
            OP_UPDATE_PROGRESS,
            {"profile_id": mutation.profile_id, "quiz_result": mutation.quiz_result},
            self.provider,
        )

    async def _replay_create_custom_mix(self, mutation: CreateCustomMixMutation) -> None:
        await self.orchestrator.replay(
            OP_CREATE_CUSTOM_MIX, {"request": mutation.request}, self.provider
        )

    # Offline readiness

    async def preload(self) -> PreloadReport:
        """Cache subjects and per-subject KS1/KS2 question sets."""
        report = PreloadReport()
        logger.info("Preloading essential content for offline access")

        subjects = await self.orchestrator.prefetch(OP_GET_SUBJECTS, {}, self.provider)
        report.subjects_cached = subjects is not None
        if subjects is None:
            report.failures.append(OP_GET_SUBJECTS)

        for subject in self.settings.preload_subjects:
            for key_stage in (KeyStage.KS1, KeyStage.KS2):
                questions = await self.orchestrator.prefetch(
                    OP_GET_QUESTIONS,
                    {
                        "subject": subject,
                        "key_stage": key_stage,
                        "difficulty_range": None,
                        "count": self.settings.PRELOAD_QUESTION_LIMIT,
                    },
                    self.provider,
                )
                if questions is None:
                    report.failures.append(f"{subject}/{key_stage.value}")
                    continue
                report.question_sets += 1
                report.questions += len(questions)

        logger.info(
            "Preload finished",
            question_sets=report.question_sets,
            questions=report.questions,
            failures=len(report.failures),
        )
        self._notify_listeners()
        return report

    async def refresh_cache(self) -> PreloadReport:
        """Drop every cached entry and preload again from the provider."""
        logger.info("Refreshing offline content cache", entries=len(self.cache))
        self.cache.clear()
        return await self.preload()

    def offline_status(self) -> OfflineStatus:
        availability = self.cache.offline_availability()
        connectivity = self.connectivity.status() if self.connectivity else None
        return OfflineStatus(
            is_offline_ready=availability.available_offline
            and self._cached_len(OP_GET_SUBJECTS) > 0,
            is_online=connectivity.is_online if connectivity else True,
            cached_subjects=self._cached_len(OP_GET_SUBJECTS),
            cached_questions=availability.total_questions,
            cached_profiles=self._cached_len(OP_GET_PROFILES),
            cached_mixes=self._cached_len(OP_GET_CUSTOM_MIXES),
            failed_operations=self.retry_queue.size(),
            dropped_operations=len(self.retry_queue.dropped()),
            available_subjects=availability.subjects,
            last_checked_at=connectivity.last_checked_at if connectivity else None,
        )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener for offline status changes.

        Listeners receive a fresh OfflineStatus after connectivity changes,
        preloads and deferred writes. Returns a function that unsubscribes it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify_listeners(self) -> None:
        if not self._listeners:
            return
        status = self.offline_status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error("Offline status listener failed", error=str(e), exc_info=True)

    async def verify_offline_capabilities(self) -> VerificationReport:
        """Run the offline readiness checklist."""
        return await verify_offline_capabilities(self)

    def _cached_len(self, operation: str) -> int:
        entry = self.cache.peek(CacheKey.for_operation(operation))
        if entry is None or not isinstance(entry.data, list):
            return 0
        return len(entry.data)
