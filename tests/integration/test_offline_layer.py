"""
Offline Layer Integration Tests

Exercises the composed layer on virtual time: periodic retry flushes, the
expired-entry sweep and recovery after an outage.
"""

import pytest

from offline_resilience.constants import JOB_CACHE_SWEEP, JOB_RETRY_FLUSH
from offline_resilience.domain.cache.value_objects import CacheKey
from offline_resilience.domain.content.models import KeyStage
from offline_resilience.services.fallback.models import FallbackTier

pytestmark = pytest.mark.integration


class TestOfflineLayer:
    """Integration tests for the composed offline layer."""

    @pytest.mark.asyncio
    async def test_start_registers_periodic_jobs(self, layer, scheduler):
        async with layer:
            assert scheduler.running is True
            assert scheduler.job_names == sorted([JOB_CACHE_SWEEP, JOB_RETRY_FLUSH])

        assert scheduler.running is False
        assert scheduler.job_names == []

    @pytest.mark.asyncio
    async def test_periodic_flush_replays_queued_write(self, layer, provider, scheduler, quiz_result):
        """Test that the timer flush delivers a write queued during an outage."""
        await layer.start()
        provider.go_offline()
        await layer.service.update_progress(1, quiz_result)

        await scheduler.advance(29)
        assert layer.retry_queue.size() == 1

        provider.go_online()
        await scheduler.advance(1)

        assert layer.retry_queue.size() == 0
        assert provider.progress[1] == [quiz_result]
        await layer.stop()

    @pytest.mark.asyncio
    async def test_persistent_outage_drops_after_retry_budget(self, layer, provider, scheduler, quiz_result):
        """Test that a write is attempted exactly max_retries times on the timer."""
        await layer.start()
        provider.go_offline()
        await layer.service.update_progress(1, quiz_result)

        await scheduler.advance(30 * 5)

        assert provider.calls["update_progress"] == 1 + layer.settings.RETRY_MAX_RETRIES
        assert layer.retry_queue.size() == 0
        assert len(layer.retry_queue.dropped()) == 1
        assert layer.service.offline_status().dropped_operations == 1
        await layer.stop()

    @pytest.mark.asyncio
    async def test_sweep_removes_expired_entries(self, layer, provider, scheduler):
        """Test that the sweep job clears entries once their TTL has passed."""
        await layer.start()
        await layer.service.get_questions("Mathematics", KeyStage.KS1)
        key = CacheKey.questions("Mathematics", KeyStage.KS1)
        assert key in layer.cache

        await scheduler.advance(layer.settings.QUESTIONS_TTL_SECONDS + 300)

        assert layer.cache.has(key, include_stale=True) is False
        assert layer.cache.stats().expirations == 1
        await layer.stop()

    @pytest.mark.asyncio
    async def test_outage_and_recovery(self, layer, provider, scheduler, quiz_result):
        """Test a full offline session followed by reconnection."""
        await layer.start()
        report = await layer.service.preload()
        assert report.failures == []

        provider.go_offline()
        await layer.connectivity.set_online(False)

        questions = await layer.service.get_questions("Mathematics", KeyStage.KS1, (1, 3), count=4)
        assert len(questions) == 4
        assert layer.orchestrator.last_source("get_questions") == FallbackTier.BROADENED_CACHE

        await layer.service.update_progress(1, quiz_result)
        status = layer.service.offline_status()
        assert status.is_online is False
        assert status.failed_operations == 1

        provider.go_online()
        flushed = await layer.connectivity.set_online(True)

        assert flushed.succeeded == 1
        assert provider.progress[1] == [quiz_result]
        assert layer.privacy_guard.verify().is_compliant is True
        await layer.stop()
