"""
Retry Queue

Holds writes that failed against the provider and replays them on a timer and
whenever connectivity returns. Each entry is attempted at most ``max_retries``
times; exhausted entries move to a bounded dead-letter list.
"""

import asyncio
from collections import OrderedDict, deque
from typing import Any, Deque, Dict, List, Optional

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ...constants import MAX_DROPPED_OPERATIONS
from ...core.scheduler import Clock, SystemClock
from ...domain.exceptions import QueueExhausted, UnknownOperationError
from ..interfaces import DropListener, MutationExecutor, RetryQueueInterface
from .mutations import (
    DroppedOperation,
    FailedOperation,
    FlushReport,
    parse_mutation,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class RetryQueue(RetryQueueInterface):
    """
    In-memory failed-mutation queue.

    State per entry: pending -> removed on success; pending -> pending on a
    failure while ``retry_count < max_retries``; pending -> dropped on the
    failure that reaches ``max_retries``.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        max_retries: int = 3,
        max_dropped: int = MAX_DROPPED_OPERATIONS,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.clock = clock or SystemClock()
        self.max_retries = max_retries
        self._entries: "OrderedDict[str, FailedOperation]" = OrderedDict()
        self._dropped: Deque[DroppedOperation] = deque(maxlen=max_dropped)
        self._executors: Dict[str, MutationExecutor] = {}
        self._drop_listeners: List[DropListener] = []
        self._flushing: Optional[asyncio.Future] = None

    def register_executor(self, kind: str, executor: MutationExecutor) -> None:
        """Register the coroutine function that replays mutations of ``kind``."""
        self._executors[kind] = executor

    def on_drop(self, listener: DropListener) -> None:
        """Subscribe to dropped (exhausted) mutations."""
        self._drop_listeners.append(listener)

    def enqueue(
        self, operation_name: str, payload: Any, max_retries: Optional[int] = None
    ) -> FailedOperation:
        mutation = parse_mutation(operation_name, payload)
        operation = FailedOperation(
            operation_name=operation_name,
            payload=mutation,
            enqueued_at=self.clock.now(),
            max_retries=max_retries if max_retries is not None else self.max_retries,
        )
        self._entries[operation.id] = operation

        logger.info(
            "Mutation queued for retry",
            operation_id=operation.id,
            operation_name=operation_name,
            max_retries=operation.max_retries,
            queue_size=len(self._entries),
        )
        return operation

    def size(self) -> int:
        return len(self._entries)

    def pending(self) -> List[FailedOperation]:
        return [op.model_copy(deep=True) for op in self._entries.values()]

    def dropped(self) -> List[DroppedOperation]:
        return list(self._dropped)

    def remove(self, operation_id: str) -> bool:
        return self._entries.pop(operation_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._dropped.clear()

    @property
    def is_flushing(self) -> bool:
        return self._flushing is not None

    async def flush(self) -> FlushReport:
        """
        Replay every pending mutation once.

        A call made while a flush is running waits for and returns that
        flush's report. Callers that give up waiting do not cancel the flush.
        """
        if self._flushing is None:
            self._flushing = asyncio.ensure_future(self._flush_pending())
            self._flushing.add_done_callback(self._flush_finished)
        return await asyncio.shield(self._flushing)

    def _flush_finished(self, future: asyncio.Future) -> None:
        if self._flushing is future:
            self._flushing = None

    async def _flush_pending(self) -> FlushReport:
        report = FlushReport(started_at=self.clock.now())
        batch = list(self._entries.values())

        with tracer.start_as_current_span("retry_queue.flush") as span:
            span.set_attribute("queue_size", len(batch))

            for operation in batch:
                if operation.id not in self._entries:
                    continue
                report.attempted += 1
                error = await self._attempt(operation)

                if operation.id not in self._entries:
                    # Removed while the attempt was in flight
                    continue
                if error is None:
                    del self._entries[operation.id]
                    report.succeeded += 1
                    continue

                operation.retry_count += 1
                operation.last_error = f"{type(error).__name__}: {error}"
                if operation.retry_count >= operation.max_retries:
                    self._drop(operation)
                    report.dropped += 1
                else:
                    report.retried += 1

            report.remaining = len(self._entries)
            report.finished_at = self.clock.now()
            span.set_attribute("succeeded", report.succeeded)
            span.set_attribute("dropped", report.dropped)
            if report.dropped:
                span.set_status(Status(StatusCode.ERROR, "mutations dropped"))

        if report.attempted:
            logger.info(
                "Retry queue flushed",
                attempted=report.attempted,
                succeeded=report.succeeded,
                retried=report.retried,
                dropped=report.dropped,
                remaining=report.remaining,
            )
        return report

    async def _attempt(self, operation: FailedOperation) -> Optional[Exception]:
        """Run one replay; returns the failure, or None on success."""
        operation.last_attempt_at = self.clock.now()
        executor = self._executors.get(operation.payload.kind)
        if executor is None:
            error = UnknownOperationError(operation.payload.kind)
            logger.warning(
                "No executor registered for queued mutation",
                operation_id=operation.id,
                kind=operation.payload.kind,
            )
            return error

        try:
            await executor(operation.payload)
            return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Queued mutation retry failed",
                operation_id=operation.id,
                operation_name=operation.operation_name,
                retry_count=operation.retry_count + 1,
                max_retries=operation.max_retries,
                error=str(e),
            )
            return e

    def _drop(self, operation: FailedOperation) -> None:
        del self._entries[operation.id]
        exhausted = QueueExhausted(
            operation.id, operation.operation_name, operation.max_retries
        )
        record = DroppedOperation(
            operation=operation,
            dropped_at=self.clock.now(),
            reason=exhausted.message,
            error_code=exhausted.error_code,
        )
        self._dropped.append(record)

        logger.error(
            "Queued mutation dropped after exhausting retries",
            operation_id=operation.id,
            operation_name=operation.operation_name,
            max_retries=operation.max_retries,
            last_error=operation.last_error,
        )

        for listener in self._drop_listeners:
            try:
                listener(record)
            except Exception as e:
                logger.error(
                    "Drop listener failed",
                    operation_id=operation.id,
                    error=str(e),
                    exc_info=True,
                )
