"""
Queued Mutation Models

Failed write operations are stored as tagged variants, one per mutation kind,
discriminated on ``kind``. Executors are registered per kind, so every variant
has exactly one replay path.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ...domain.content.models import CreateCustomMixRequest, QuizResult


class UpdateProgressMutation(BaseModel):
    """Apply a quiz result to a profile's progress."""

    kind: Literal["update_progress"] = "update_progress"
    profile_id: int
    quiz_result: QuizResult


class CreateCustomMixMutation(BaseModel):
    """Create a custom quiz mix."""

    kind: Literal["create_custom_mix"] = "create_custom_mix"
    request: CreateCustomMixRequest


Mutation = Annotated[
    Union[UpdateProgressMutation, CreateCustomMixMutation],
    Field(discriminator="kind"),
]

mutation_adapter: TypeAdapter = TypeAdapter(Mutation)


def parse_mutation(operation_name: str, payload: Any) -> Mutation:
    """
    Build a mutation variant from a model or a plain mapping.

    Raises:
        ValueError: If the payload kind disagrees with ``operation_name``
        pydantic.ValidationError: If the payload does not fit the variant
    """
    if isinstance(payload, (UpdateProgressMutation, CreateCustomMixMutation)):
        mutation = payload
    else:
        data: Dict[str, Any] = dict(payload)
        data.setdefault("kind", operation_name)
        mutation = mutation_adapter.validate_python(data)

    if mutation.kind != operation_name:
        raise ValueError(
            f"Payload kind '{mutation.kind}' does not match operation '{operation_name}'"
        )
    return mutation


def generate_operation_id() -> str:
    return uuid.uuid4().hex


class FailedOperation(BaseModel):
    """A write that failed and awaits replay."""

    id: str = Field(default_factory=generate_operation_id)
    operation_name: str
    payload: Mutation
    enqueued_at: datetime
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(..., ge=1)
    last_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def attempts_left(self) -> int:
        return self.max_retries - self.retry_count


class DroppedOperation(BaseModel):
    """Dead-letter record for a mutation that exhausted its retries."""

    operation: FailedOperation
    dropped_at: datetime
    reason: str
    error_code: str = "QUEUE_EXHAUSTED"


class FlushReport(BaseModel):
    """Outcome of one flush pass."""

    attempted: int = 0
    succeeded: int = 0
    retried: int = 0
    dropped: int = 0
    remaining: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
