"""
Content Provider Contract

The external content/data source wrapped by the offline layer. Only the
request/response contract matters here; every call is asynchronous and may
fail with any exception.
"""

from typing import List, Optional, Protocol, runtime_checkable

from ..domain.content.models import (
    CreateCustomMixRequest,
    CreateProfileRequest,
    CustomMix,
    KeyStage,
    Profile,
    Question,
    QuizResult,
    Subject,
)


@runtime_checkable
class ContentProvider(Protocol):
    """Asynchronous content provider."""

    async def get_subjects(self) -> List[Subject]: ...

    async def get_questions(
        self,
        subject: str,
        key_stage: Optional[KeyStage] = None,
        difficulty_range: Optional[tuple] = None,
        count: int = 10,
    ) -> List[Question]: ...

    async def get_profiles(self) -> List[Profile]: ...

    async def create_profile(self, request: CreateProfileRequest) -> Profile: ...

    async def update_progress(self, profile_id: int, quiz_result: QuizResult) -> None: ...

    async def get_custom_mixes(self) -> List[CustomMix]: ...

    async def create_custom_mix(self, request: CreateCustomMixRequest) -> CustomMix: ...
