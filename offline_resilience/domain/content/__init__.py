"""
Content domain - subjects, questions, profiles, progress and custom mixes.
"""

from .models import (
    CreateCustomMixRequest,
    CreateProfileRequest,
    CustomMix,
    KeyStage,
    MixConfig,
    Profile,
    Question,
    QuestionContent,
    QuestionQuery,
    QuestionType,
    QuizResult,
    Subject,
)

__all__ = [
    "CreateCustomMixRequest",
    "CreateProfileRequest",
    "CustomMix",
    "KeyStage",
    "MixConfig",
    "Profile",
    "Question",
    "QuestionContent",
    "QuestionQuery",
    "QuestionType",
    "QuizResult",
    "Subject",
]
