"""
Content Domain Models

Pydantic models for the data exchanged with the content provider.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class KeyStage(str, Enum):
    """Curriculum key stages."""

    KS1 = "KS1"
    KS2 = "KS2"


class QuestionType(str, Enum):
    """Supported question formats."""

    MULTIPLE_CHOICE = "multiple_choice"
    DRAG_DROP = "drag_drop"
    HOTSPOT = "hotspot"
    FILL_BLANK = "fill_blank"
    STORY_QUIZ = "story_quiz"


DifficultyRange = Tuple[int, int]


class Subject(BaseModel):
    """Curriculum subject."""

    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    display_name: str
    icon_path: Optional[str] = None
    color_scheme: Optional[str] = None
    description: Optional[str] = None


class QuestionContent(BaseModel):
    """Question body."""

    text: str
    options: Optional[List[str]] = None
    story: Optional[str] = None
    image_url: Optional[str] = None
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class Question(BaseModel):
    """A single quiz question."""

    id: Optional[int] = None
    subject_id: Optional[int] = None
    subject: Optional[str] = None
    key_stage: KeyStage
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    content: QuestionContent
    correct_answer: Union[str, List[str], Dict[str, str]]
    difficulty_level: int = Field(..., ge=1, le=5)
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class Profile(BaseModel):
    """Local learner profile. Never leaves the device."""

    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    avatar: str
    theme_preference: str = "default"
    created_at: Optional[datetime] = None


class CreateProfileRequest(BaseModel):
    """Profile creation request."""

    name: str = Field(..., min_length=1)
    avatar: str
    theme_preference: str = "default"


class QuizResult(BaseModel):
    """Outcome of one quiz, applied to a profile's progress."""

    subject: str
    key_stage: KeyStage
    questions_answered: int = Field(..., ge=0)
    correct_answers: int = Field(..., ge=0)
    time_spent_seconds: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_counts(self) -> "QuizResult":
        if self.correct_answers > self.questions_answered:
            raise ValueError("correct_answers cannot exceed questions_answered")
        return self


class MixConfig(BaseModel):
    """Configuration of a custom quiz mix."""

    subjects: List[str] = Field(..., min_length=1)
    key_stages: List[KeyStage] = Field(..., min_length=1)
    question_count: int = Field(..., ge=1, le=100)
    time_limit: Optional[int] = Field(default=None, ge=1)
    difficulty_range: DifficultyRange = (1, 5)
    question_types: Optional[List[QuestionType]] = None
    randomize_order: bool = True
    show_immediate_feedback: bool = True
    allow_review: bool = True

    @field_validator("difficulty_range")
    @classmethod
    def validate_difficulty_range(cls, v):
        return _validate_difficulty_range(v)


class CustomMix(BaseModel):
    """A learner-defined quiz mix."""

    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    created_by: int
    config: MixConfig
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreateCustomMixRequest(BaseModel):
    """Custom mix creation request."""

    name: str = Field(..., min_length=1)
    created_by: int
    config: MixConfig


def _validate_difficulty_range(v: Optional[DifficultyRange]) -> Optional[DifficultyRange]:
    if v is None:
        return v
    low, high = v
    if low > high:
        raise ValueError("difficulty range minimum cannot exceed maximum")
    if low < 1 or high > 5:
        raise ValueError("difficulty range must be within 1..5")
    return v


class QuestionQuery(BaseModel):
    """
    Parameters of a question request.

    ``matches`` is the one filter predicate shared by providers and by the
    client-side re-filtering of broader cached sets.
    """

    model_config = ConfigDict(frozen=True)

    subject: str = Field(..., min_length=1)
    key_stage: Optional[KeyStage] = None
    difficulty_range: Optional[DifficultyRange] = None
    count: int = Field(default=10, ge=1, le=1000)

    @field_validator("difficulty_range")
    @classmethod
    def validate_difficulty_range(cls, v):
        return _validate_difficulty_range(v)

    def cache_params(self) -> Dict[str, Any]:
        """Arguments that identify the request in the cache; count is excluded."""
        return {
            "subject": self.subject,
            "key_stage": self.key_stage,
            "difficulty": self.difficulty_range,
        }

    def matches(self, question: Question, check_subject: bool = True) -> bool:
        """Check whether a question satisfies this query."""
        if (
            check_subject
            and question.subject is not None
            and question.subject.lower() != self.subject.lower()
        ):
            return False
        if self.key_stage is not None and question.key_stage != self.key_stage:
            return False
        if self.difficulty_range is not None:
            low, high = self.difficulty_range
            if question.difficulty_level < low or question.difficulty_level > high:
                return False
        return True

    def filter(self, questions: List[Question], check_subject: bool = True) -> List[Question]:
        return [q for q in questions if self.matches(q, check_subject=check_subject)]
