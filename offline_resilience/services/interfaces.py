"""
Service Interfaces

Abstract contracts for the orchestrator, retry queue and privacy guard, so
the composition root can wire real instances and tests can substitute fakes.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from .privacy.models import ComplianceReport, PrivacyViolation
    from .queues.mutations import DroppedOperation, FailedOperation, FlushReport

MutationExecutor = Callable[[Any], Awaitable[Any]]
DropListener = Callable[["DroppedOperation"], Any]


class RetryQueueInterface(ABC):
    """Queue of failed mutations replayed with a bounded retry count."""

    @abstractmethod
    def enqueue(
        self, operation_name: str, payload: Any, max_retries: Optional[int] = None
    ) -> "FailedOperation":
        """Capture a failed mutation for later replay."""
        pass

    @abstractmethod
    async def flush(self) -> "FlushReport":
        """Replay every pending mutation once."""
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def pending(self) -> List["FailedOperation"]:
        pass

    @abstractmethod
    def dropped(self) -> List["DroppedOperation"]:
        pass

    @abstractmethod
    def register_executor(self, kind: str, executor: MutationExecutor) -> None:
        pass

    @abstractmethod
    def remove(self, operation_id: str) -> bool:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class PrivacyGuardInterface(ABC):
    """Gate for any payload that could leave the device."""

    @abstractmethod
    def sanitize_for_network(self, payload: Any, operation: Optional[str] = None) -> Any:
        """Return a copy of ``payload`` without personal-data fields."""
        pass

    @abstractmethod
    def is_operation_allowed(self, operation: str) -> bool:
        pass

    @abstractmethod
    def inspect_outbound(self, operation: str, payload: Any) -> Any:
        """Check an outbound payload; raises PrivacyViolationError when it is blocked."""
        pass

    @abstractmethod
    def verify(self) -> "ComplianceReport":
        pass

    @abstractmethod
    def violations(self) -> List["PrivacyViolation"]:
        pass


class FallbackOrchestratorInterface(ABC):
    """Live call with cache/default fallback for reads, deferred retry for writes."""

    @abstractmethod
    async def read(self, operation: str, args: Dict[str, Any], provider: Any) -> Any:
        pass

    @abstractmethod
    async def write(self, operation: str, args: Dict[str, Any], provider: Any) -> Any:
        pass
