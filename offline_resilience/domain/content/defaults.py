"""
Minimal built-in datasets served when neither the provider nor the cache can
answer a read. Enough to keep a feature usable, nothing more.
"""

from typing import List, Optional

from .models import (
    CustomMix,
    KeyStage,
    Question,
    QuestionContent,
    QuestionQuery,
    QuestionType,
    Subject,
)


def default_subjects() -> List[Subject]:
    return [
        Subject(id=1, name="Mathematics", display_name="Mathematics", color_scheme="blue"),
        Subject(id=2, name="English", display_name="English", color_scheme="green"),
        Subject(id=3, name="Science", display_name="Science", color_scheme="purple"),
        Subject(id=4, name="Geography", display_name="Geography", color_scheme="orange"),
    ]


_SAMPLE_QUESTIONS = [
    {
        "id": 1,
        "key_stage": KeyStage.KS1,
        "text": "What color do you get when you mix red and blue?",
        "options": ["Purple", "Green", "Yellow", "Orange"],
        "answer": "Purple",
        "difficulty": 1,
        "tags": ["colors", "mixing"],
    },
    {
        "id": 2,
        "key_stage": KeyStage.KS1,
        "text": "How many legs does a spider have?",
        "options": ["6", "8", "10", "4"],
        "answer": "8",
        "difficulty": 1,
        "tags": ["animals", "counting"],
    },
    {
        "id": 3,
        "key_stage": KeyStage.KS1,
        "text": "What is 5 + 3?",
        "options": ["7", "8", "9", "6"],
        "answer": "8",
        "difficulty": 1,
        "tags": ["addition"],
    },
    {
        "id": 4,
        "key_stage": KeyStage.KS2,
        "text": "What is the capital of France?",
        "options": ["London", "Berlin", "Paris", "Madrid"],
        "answer": "Paris",
        "difficulty": 2,
        "tags": ["geography", "capitals"],
    },
    {
        "id": 5,
        "key_stage": KeyStage.KS2,
        "text": "Which planet is closest to the Sun?",
        "options": ["Venus", "Mercury", "Earth", "Mars"],
        "answer": "Mercury",
        "difficulty": 2,
        "tags": ["space", "planets"],
    },
]


def sample_questions() -> List[Question]:
    """Generic questions, labelled with the catch-all ``General`` subject."""
    return [
        Question(
            id=item["id"],
            subject="General",
            key_stage=item["key_stage"],
            question_type=QuestionType.MULTIPLE_CHOICE,
            content=QuestionContent(text=item["text"], options=item["options"]),
            correct_answer=item["answer"],
            difficulty_level=item["difficulty"],
            tags=item["tags"],
        )
        for item in _SAMPLE_QUESTIONS
    ]


def default_questions(query: Optional[QuestionQuery] = None) -> List[Question]:
    """
    Sample questions for a request.

    Narrowed by key stage and difficulty when anything matches; otherwise the
    whole sample set is returned so the quiz can still run.
    """
    questions = sample_questions()
    if query is None:
        return questions
    narrowed = query.filter(questions, check_subject=False)
    return narrowed or questions


def default_custom_mixes() -> List[CustomMix]:
    return []
