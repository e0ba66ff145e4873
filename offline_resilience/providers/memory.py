"""
In-Memory Content Provider

A provider holding its data in process memory. Used by tests and demos, and as
a reference for the provider contract. Connectivity can be switched off as a
whole or per operation to simulate failures.
"""

import asyncio
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from ..domain.content.models import (
    CreateCustomMixRequest,
    CreateProfileRequest,
    CustomMix,
    KeyStage,
    Profile,
    Question,
    QuestionQuery,
    QuizResult,
    Subject,
)


class ProviderUnavailableError(ConnectionError):
    """Raised by the in-memory provider while simulating an outage."""


class InMemoryContentProvider:
    """Content provider backed by plain lists."""

    def __init__(
        self,
        subjects: Optional[Iterable[Subject]] = None,
        questions: Optional[Iterable[Question]] = None,
        profiles: Optional[Iterable[Profile]] = None,
        custom_mixes: Optional[Iterable[CustomMix]] = None,
        latency_seconds: float = 0.0,
    ):
        self.subjects: List[Subject] = list(subjects or [])
        self.questions: List[Question] = list(questions or [])
        self.profiles: List[Profile] = list(profiles or [])
        self.custom_mixes: List[CustomMix] = list(custom_mixes or [])
        self.progress: Dict[int, List[QuizResult]] = defaultdict(list)
        self.latency_seconds = latency_seconds
        self.online = True
        self.failing_operations: Set[str] = set()
        self.calls: Counter = Counter()

    # Failure simulation

    def go_offline(self) -> None:
        self.online = False

    def go_online(self) -> None:
        self.online = True

    def fail(self, *operations: str) -> None:
        """Make the named operations fail until ``recover`` is called."""
        self.failing_operations.update(operations)

    def recover(self, *operations: str) -> None:
        if operations:
            self.failing_operations.difference_update(operations)
        else:
            self.failing_operations.clear()

    async def _call(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if not self.online or operation in self.failing_operations:
            raise ProviderUnavailableError(f"network unavailable for {operation}")

    # Provider contract

    async def get_subjects(self) -> List[Subject]:
        await self._call("get_subjects")
        return list(self.subjects)

    async def get_questions(
        self,
        subject: str,
        key_stage: Optional[KeyStage] = None,
        difficulty_range: Optional[tuple] = None,
        count: int = 10,
    ) -> List[Question]:
        await self._call("get_questions")
        query = QuestionQuery(
            subject=subject,
            key_stage=key_stage,
            difficulty_range=difficulty_range,
            count=count,
        )
        return query.filter(self.questions)[:count]

    async def get_profiles(self) -> List[Profile]:
        await self._call("get_profiles")
        return list(self.profiles)

    async def create_profile(self, request: CreateProfileRequest) -> Profile:
        await self._call("create_profile")
        profile = Profile(
            id=max((p.id or 0 for p in self.profiles), default=0) + 1,
            name=request.name,
            avatar=request.avatar,
            theme_preference=request.theme_preference,
            created_at=datetime.now(timezone.utc),
        )
        self.profiles.append(profile)
        return profile

    async def update_progress(self, profile_id: int, quiz_result: QuizResult) -> None:
        await self._call("update_progress")
        self.progress[profile_id].append(quiz_result)

    async def get_custom_mixes(self) -> List[CustomMix]:
        await self._call("get_custom_mixes")
        return list(self.custom_mixes)

    async def create_custom_mix(self, request: CreateCustomMixRequest) -> CustomMix:
        await self._call("create_custom_mix")
        now = datetime.now(timezone.utc)
        mix = CustomMix(
            id=max((m.id or 0 for m in self.custom_mixes), default=0) + 1,
            name=request.name,
            created_by=request.created_by,
            config=request.config,
            created_at=now,
            updated_at=now,
        )
        self.custom_mixes.append(mix)
        return mix
