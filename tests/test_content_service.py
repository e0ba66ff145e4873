"""
Offline Content Service Tests

Unit tests for the application-facing facade: reads, deferred writes, preload,
offline status and the readiness checklist.
"""

import pytest

from offline_resilience.core.config import Settings
from offline_resilience.container import build_offline_layer
from offline_resilience.domain.cache.value_objects import CacheKey
from offline_resilience.domain.content.models import (
    CreateCustomMixRequest,
    CreateProfileRequest,
    KeyStage,
    MixConfig,
)
from offline_resilience.domain.exceptions import NoDataAvailable, TransientProviderFailure
from offline_resilience.services.fallback.models import FallbackTier


@pytest.fixture
def preload_settings():
    return Settings(_env_file=None, PRELOAD_SUBJECTS="Mathematics,English", PRELOAD_QUESTION_LIMIT=50)


@pytest.fixture
def service(provider, preload_settings, clock, scheduler, rng):
    layer = build_offline_layer(
        provider, settings=preload_settings, clock=clock, scheduler=scheduler, rng=rng
    )
    return layer.service


@pytest.fixture
def mix_request():
    return CreateCustomMixRequest(
        name="Spelling",
        created_by=1,
        config=MixConfig(subjects=["English"], key_stages=[KeyStage.KS1], question_count=5),
    )


class TestReads:
    """Test cases for facade reads."""

    @pytest.mark.asyncio
    async def test_get_questions(self, service):
        questions = await service.get_questions("Mathematics", KeyStage.KS1, (1, 2), count=3)

        assert len(questions) == 3
        assert all(q.key_stage == KeyStage.KS1 for q in questions)
        assert all(q.difficulty_level <= 2 for q in questions)

    @pytest.mark.asyncio
    async def test_reads_survive_provider_outage(self, service, provider):
        """Test that previously fetched content is served while offline."""
        subjects = await service.get_subjects()
        mixes = await service.get_custom_mixes()
        provider.go_offline()

        assert await service.get_subjects() == subjects
        assert await service.get_custom_mixes() == mixes
        assert service.orchestrator.last_source("get_custom_mixes") == FallbackTier.EXACT_CACHE

    @pytest.mark.asyncio
    async def test_custom_mixes_default_to_empty(self, service, provider):
        provider.go_offline()

        assert await service.get_custom_mixes() == []

    @pytest.mark.asyncio
    async def test_profiles_unavailable_offline(self, service, provider):
        provider.go_offline()

        with pytest.raises(NoDataAvailable):
            await service.get_profiles()


class TestWrites:
    """Test cases for facade writes."""

    @pytest.mark.asyncio
    async def test_update_progress_never_raises(self, service, provider, quiz_result):
        """Test that an offline progress update is queued and replayed on reconnect."""
        provider.go_offline()

        await service.update_progress(1, quiz_result)
        assert service.retry_queue.size() == 1

        provider.go_online()
        await service.connectivity.set_online(False)
        report = await service.connectivity.set_online(True)

        assert report.succeeded == 1
        assert provider.progress[1] == [quiz_result]
        assert service.retry_queue.size() == 0

    @pytest.mark.asyncio
    async def test_deferred_custom_mix_is_created_later(self, service, provider, mix_request):
        await service.get_custom_mixes()
        provider.go_offline()

        assert await service.create_custom_mix(mix_request) is None

        provider.go_online()
        await service.retry_queue.flush()

        assert [m.name for m in provider.custom_mixes] == ["Times tables", "Spelling"]
        cached = service.cache.peek(CacheKey.for_operation("get_custom_mixes")).data
        assert [m.name for m in cached] == ["Times tables", "Spelling"]

    @pytest.mark.asyncio
    async def test_create_profile(self, service, provider):
        profile = await service.create_profile(CreateProfileRequest(name="Sam", avatar="fox"))

        assert profile.id == 2
        assert provider.profiles[-1] == profile

    @pytest.mark.asyncio
    async def test_create_profile_failure_surfaces(self, service, provider):
        provider.go_offline()

        with pytest.raises(TransientProviderFailure):
            await service.create_profile(CreateProfileRequest(name="Sam", avatar="fox"))


class TestOfflineReadiness:
    """Test cases for preload, status and verification."""

    @pytest.mark.asyncio
    async def test_preload(self, service, provider):
        """Test that subjects and per key stage question sets are cached."""
        report = await service.preload()

        assert report.subjects_cached is True
        assert report.question_sets == 4
        assert report.questions == 21
        assert report.failures == []

        provider.go_offline()
        questions = await service.get_questions("Mathematics", KeyStage.KS2, count=5)
        assert len(questions) == 5
        assert service.orchestrator.last_source("get_questions") == FallbackTier.EXACT_CACHE

    @pytest.mark.asyncio
    async def test_preload_offline_records_failures(self, service, provider):
        provider.go_offline()

        report = await service.preload()

        assert report.subjects_cached is False
        assert report.question_sets == 0
        assert report.failures == [
            "get_subjects",
            "Mathematics/KS1",
            "Mathematics/KS2",
            "English/KS1",
            "English/KS2",
        ]
        assert len(service.cache) == 0

    @pytest.mark.asyncio
    async def test_offline_status(self, service, provider, quiz_result):
        """Test the status summary after preload and a deferred write."""
        await service.preload()
        provider.go_offline()
        await service.update_progress(1, quiz_result)

        status = service.offline_status()

        assert status.is_offline_ready is True
        assert status.is_online is True
        assert status.cached_subjects == 2
        assert status.cached_questions == 21
        assert status.failed_operations == 1
        assert status.dropped_operations == 0
        assert status.available_subjects == ["Mathematics", "English"]

    @pytest.mark.asyncio
    async def test_refresh_cache(self, service):
        """Test that a refresh drops every entry and preloads again."""
        await service.get_custom_mixes()
        await service.preload()
        mixes_key = CacheKey.for_operation("get_custom_mixes")
        assert mixes_key in service.cache

        report = await service.refresh_cache()

        assert report.question_sets == 4
        assert report.failures == []
        assert mixes_key not in service.cache
        assert service.cache.is_available_offline("English", KeyStage.KS1) is True

    @pytest.mark.asyncio
    async def test_status_listeners(self, service, provider, quiz_result):
        """Test that listeners hear about connectivity, deferred writes and preloads."""
        statuses = []
        unsubscribe = service.subscribe(statuses.append)

        await service.connectivity.set_online(False)
        assert statuses[-1].is_online is False

        provider.go_offline()
        await service.update_progress(1, quiz_result)
        assert statuses[-1].failed_operations == 1
        assert len(statuses) == 2

        provider.go_online()
        await service.preload()
        assert statuses[-1].cached_questions == 21

        unsubscribe()
        await service.connectivity.set_online(True)
        assert len(statuses) == 3

    def test_offline_status_when_empty(self, service):
        status = service.offline_status()

        assert status.is_offline_ready is False
        assert status.cached_questions == 0

    @pytest.mark.asyncio
    async def test_verification_passes_after_preload(self, service):
        """Test that every readiness check passes with a healthy provider."""
        await service.preload()

        report = await service.verify_offline_capabilities()

        assert report.passed is True
        assert report.score == report.max_score == 10
        assert report.critical_failures == []

    @pytest.mark.asyncio
    async def test_verification_reports_failures(self, service, provider):
        provider.go_offline()

        report = await service.verify_offline_capabilities()

        assert report.passed is False
        failed = {r.test for r in report.results if not r.passed}
        assert failed == {
            "Offline-First - Core Features",
            "Content Cache - Offline Availability",
        }
        assert [r.test for r in report.critical_failures] == ["Offline-First - Core Features"]
