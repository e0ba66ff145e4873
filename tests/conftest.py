"""
Main pytest configuration for the offline layer tests.

Fixtures for virtual time, cache stores, in-memory providers and sample
content.
"""

import os
import random
from datetime import datetime, timezone

import pytest

# Set test environment variables before importing package modules
os.environ["OFFLINE_ENVIRONMENT"] = "test"
os.environ["OFFLINE_LOG_LEVEL"] = "DEBUG"

from offline_resilience.container import build_offline_layer
from offline_resilience.core.config import Settings, clear_settings_cache
from offline_resilience.core.scheduler import ManualClock, ManualScheduler
from offline_resilience.domain.content.models import (
    CustomMix,
    KeyStage,
    MixConfig,
    Profile,
    QuizResult,
    Subject,
)
from offline_resilience.infrastructure.cache.memory_store import InMemoryCacheStore
from offline_resilience.providers.memory import InMemoryContentProvider
from offline_resilience.services.fallback.orchestrator import FallbackOrchestrator
from offline_resilience.services.privacy.guard import PrivacyGuard
from offline_resilience.services.queues.retry_queue import RetryQueue
from tests.fixtures.content import make_question

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Drop cached settings and stray OFFLINE_ variables between tests."""
    for name in list(os.environ):
        if name.startswith("OFFLINE_") and name not in (
            "OFFLINE_ENVIRONMENT",
            "OFFLINE_LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings():
    """Test settings that ignore any local .env file."""
    return Settings(_env_file=None, ENVIRONMENT="test")


@pytest.fixture
def clock():
    """Virtual clock starting at a fixed instant."""
    return ManualClock(START)


@pytest.fixture
def scheduler(clock):
    """Deterministic scheduler driven by the virtual clock."""
    return ManualScheduler(clock)


@pytest.fixture
def rng():
    """Seeded random source for reproducible subset selection."""
    return random.Random(1234)


@pytest.fixture
def cache_store(clock):
    """Cache store on virtual time."""
    return InMemoryCacheStore(capacity=100, clock=clock)


@pytest.fixture
def retry_queue(clock):
    """Retry queue with the default retry budget."""
    return RetryQueue(clock=clock, max_retries=3)


@pytest.fixture
def privacy_guard(clock, cache_store, retry_queue):
    """Privacy guard reporting over the shared cache and queue."""
    return PrivacyGuard(clock=clock, cache=cache_store, retry_queue=retry_queue)


@pytest.fixture
def sample_subjects():
    return [
        Subject(id=1, name="Mathematics", display_name="Mathematics"),
        Subject(id=2, name="English", display_name="English"),
    ]


@pytest.fixture
def sample_questions():
    """Mathematics questions across both key stages and all difficulties."""
    questions = []
    question_id = 1
    for key_stage in (KeyStage.KS1, KeyStage.KS2):
        for difficulty in range(1, 6):
            for _ in range(2):
                questions.append(make_question(question_id, "Mathematics", key_stage, difficulty))
                question_id += 1
    questions.append(make_question(question_id, "English", KeyStage.KS1, 1))
    return questions


@pytest.fixture
def sample_profiles():
    return [Profile(id=1, name="Alex", avatar="owl")]


@pytest.fixture
def sample_mix():
    return CustomMix(
        id=1,
        name="Times tables",
        created_by=1,
        config=MixConfig(
            subjects=["Mathematics"],
            key_stages=[KeyStage.KS1],
            question_count=10,
        ),
    )


@pytest.fixture
def quiz_result():
    return QuizResult(
        subject="Mathematics",
        key_stage=KeyStage.KS1,
        questions_answered=10,
        correct_answers=7,
        time_spent_seconds=300,
    )


@pytest.fixture
def provider(sample_subjects, sample_questions, sample_profiles, sample_mix):
    """In-memory provider that can be switched offline."""
    return InMemoryContentProvider(
        subjects=sample_subjects,
        questions=sample_questions,
        profiles=sample_profiles,
        custom_mixes=[sample_mix],
    )


@pytest.fixture
def orchestrator(cache_store, retry_queue, privacy_guard, settings, clock, rng):
    """Fallback orchestrator over the shared cache, queue and guard."""
    return FallbackOrchestrator(
        cache=cache_store,
        retry_queue=retry_queue,
        privacy_guard=privacy_guard,
        settings=settings,
        clock=clock,
        rng=rng,
    )


@pytest.fixture
def layer(provider, settings, clock, scheduler, rng):
    """Fully wired offline layer on virtual time."""
    return build_offline_layer(
        provider, settings=settings, clock=clock, scheduler=scheduler, rng=rng
    )
