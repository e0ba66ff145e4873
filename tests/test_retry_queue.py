"""
Retry Queue Tests

Unit tests for failed-mutation queuing, bounded retries, dead-lettering and
reconnect-triggered flushing.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from offline_resilience.services.queues.connectivity import ConnectivityMonitor
from offline_resilience.services.queues.mutations import (
    FailedOperation,
    UpdateProgressMutation,
    mutation_adapter,
    parse_mutation,
)
from offline_resilience.services.queues.retry_queue import RetryQueue


@pytest.fixture
def progress_payload(quiz_result):
    return {"profile_id": 1, "quiz_result": quiz_result}


class TestMutations:
    """Test cases for queued mutation variants."""

    def test_parse_from_mapping(self, progress_payload):
        mutation = parse_mutation("update_progress", progress_payload)

        assert isinstance(mutation, UpdateProgressMutation)
        assert mutation.kind == "update_progress"

    def test_kind_mismatch_rejected(self, progress_payload):
        with pytest.raises(ValueError):
            parse_mutation("create_custom_mix", UpdateProgressMutation(**progress_payload))

    def test_unknown_kind_rejected(self, progress_payload):
        with pytest.raises(ValidationError):
            parse_mutation("delete_everything", progress_payload)

    def test_discriminated_round_trip(self, progress_payload):
        """Test that a serialized mutation validates back into its variant."""
        mutation = UpdateProgressMutation(**progress_payload)

        restored = mutation_adapter.validate_json(mutation.model_dump_json())

        assert restored == mutation


class TestRetryQueue:
    """Test cases for RetryQueue class."""

    def test_enqueue(self, retry_queue, progress_payload, clock):
        """Test that a failed write is recorded with a fresh retry budget."""
        operation = retry_queue.enqueue("update_progress", progress_payload)

        assert isinstance(operation, FailedOperation)
        assert operation.retry_count == 0
        assert operation.max_retries == 3
        assert operation.attempts_left == 3
        assert operation.enqueued_at == clock.now()
        assert retry_queue.size() == 1

    def test_enqueue_ids_are_unique(self, retry_queue, progress_payload):
        first = retry_queue.enqueue("update_progress", progress_payload)
        second = retry_queue.enqueue("update_progress", progress_payload)

        assert first.id != second.id
        assert retry_queue.size() == 2

    def test_pending_returns_copies(self, retry_queue, progress_payload):
        retry_queue.enqueue("update_progress", progress_payload)

        snapshot = retry_queue.pending()
        snapshot[0].retry_count = 2

        assert retry_queue.pending()[0].retry_count == 0

    def test_invalid_max_retries(self, clock):
        with pytest.raises(ValueError):
            RetryQueue(clock=clock, max_retries=0)

    @pytest.mark.asyncio
    async def test_flush_success_removes_entry(self, retry_queue, progress_payload):
        """Test that a successful replay removes the operation."""
        executor = AsyncMock()
        retry_queue.register_executor("update_progress", executor)
        retry_queue.enqueue("update_progress", progress_payload)

        report = await retry_queue.flush()

        assert report.attempted == 1
        assert report.succeeded == 1
        assert report.remaining == 0
        assert retry_queue.size() == 0
        replayed = executor.await_args.args[0]
        assert isinstance(replayed, UpdateProgressMutation)
        assert replayed.profile_id == 1

    @pytest.mark.asyncio
    async def test_failure_increments_retry_count(self, retry_queue, progress_payload, clock):
        retry_queue.register_executor(
            "update_progress", AsyncMock(side_effect=ConnectionError("offline"))
        )
        retry_queue.enqueue("update_progress", progress_payload)

        report = await retry_queue.flush()

        assert report.retried == 1
        operation = retry_queue.pending()[0]
        assert operation.retry_count == 1
        assert operation.last_attempt_at == clock.now()
        assert operation.last_error == "ConnectionError: offline"

    @pytest.mark.parametrize("max_retries", [1, 3, 5])
    @pytest.mark.asyncio
    async def test_retry_bound(self, clock, progress_payload, max_retries):
        """Test that an operation is attempted at most max_retries times, then removed."""
        queue = RetryQueue(clock=clock, max_retries=max_retries)
        executor = AsyncMock(side_effect=ConnectionError("offline"))
        queue.register_executor("update_progress", executor)
        queue.enqueue("update_progress", progress_payload)

        for attempt in range(max_retries + 2):
            await queue.flush()
            if attempt < max_retries - 1:
                assert queue.pending()[0].retry_count == attempt + 1
                assert queue.pending()[0].retry_count <= max_retries

        assert executor.await_count == max_retries
        assert queue.size() == 0
        assert len(queue.dropped()) == 1

    @pytest.mark.asyncio
    async def test_per_operation_retry_budget(self, retry_queue, progress_payload):
        executor = AsyncMock(side_effect=ConnectionError("offline"))
        retry_queue.register_executor("update_progress", executor)
        retry_queue.enqueue("update_progress", progress_payload, max_retries=1)

        report = await retry_queue.flush()

        assert report.dropped == 1
        assert executor.await_count == 1

    @pytest.mark.asyncio
    async def test_dropped_operation_record(self, retry_queue, progress_payload):
        """Test that exhausted operations land in the dead-letter list and notify listeners."""
        listener = MagicMock()
        retry_queue.on_drop(listener)
        retry_queue.register_executor(
            "update_progress", AsyncMock(side_effect=TimeoutError("slow"))
        )
        queued = retry_queue.enqueue("update_progress", progress_payload, max_retries=2)

        await retry_queue.flush()
        listener.assert_not_called()
        await retry_queue.flush()

        listener.assert_called_once()
        record = listener.call_args.args[0]
        assert record.operation.id == queued.id
        assert record.operation.retry_count == 2
        assert record.error_code == "QUEUE_EXHAUSTED"
        assert retry_queue.dropped() == [record]

    @pytest.mark.asyncio
    async def test_failing_drop_listener_is_isolated(self, retry_queue, progress_payload):
        retry_queue.on_drop(MagicMock(side_effect=RuntimeError("listener bug")))
        retry_queue.register_executor(
            "update_progress", AsyncMock(side_effect=ConnectionError("offline"))
        )
        retry_queue.enqueue("update_progress", progress_payload, max_retries=1)

        report = await retry_queue.flush()

        assert report.dropped == 1
        assert retry_queue.size() == 0

    @pytest.mark.asyncio
    async def test_missing_executor_counts_as_failure(self, retry_queue, progress_payload):
        retry_queue.enqueue("update_progress", progress_payload)

        report = await retry_queue.flush()

        assert report.retried == 1
        assert "UnknownOperationError" in retry_queue.pending()[0].last_error

    @pytest.mark.asyncio
    async def test_mixed_outcomes(self, retry_queue, progress_payload, sample_mix):
        """Test one flush over operations of different kinds."""
        retry_queue.register_executor("update_progress", AsyncMock())
        retry_queue.register_executor(
            "create_custom_mix", AsyncMock(side_effect=ConnectionError("offline"))
        )
        retry_queue.enqueue("update_progress", progress_payload)
        retry_queue.enqueue(
            "create_custom_mix",
            {
                "request": {
                    "name": sample_mix.name,
                    "created_by": sample_mix.created_by,
                    "config": sample_mix.config.model_dump(),
                }
            },
        )

        report = await retry_queue.flush()

        assert report.attempted == 2
        assert report.succeeded == 1
        assert report.retried == 1
        assert [op.operation_name for op in retry_queue.pending()] == ["create_custom_mix"]

    @pytest.mark.asyncio
    async def test_concurrent_flush_shares_one_pass(self, retry_queue, progress_payload):
        """Test that a flush requested mid-flush joins the running one."""
        release = asyncio.Event()
        calls = []

        async def executor(mutation):
            calls.append(mutation)
            await release.wait()

        retry_queue.register_executor("update_progress", executor)
        retry_queue.enqueue("update_progress", progress_payload)

        first = asyncio.create_task(retry_queue.flush())
        await asyncio.sleep(0)
        assert retry_queue.is_flushing is True
        second = asyncio.create_task(retry_queue.flush())
        await asyncio.sleep(0)
        release.set()

        first_report, second_report = await asyncio.gather(first, second)

        assert first_report is second_report
        assert len(calls) == 1
        assert retry_queue.is_flushing is False

    @pytest.mark.asyncio
    async def test_entry_removed_mid_flight(self, retry_queue, progress_payload):
        queued = retry_queue.enqueue("update_progress", progress_payload)

        async def executor(mutation):
            retry_queue.remove(queued.id)
            raise ConnectionError("offline")

        retry_queue.register_executor("update_progress", executor)

        report = await retry_queue.flush()

        assert report.attempted == 1
        assert report.retried == 0
        assert report.dropped == 0
        assert retry_queue.size() == 0

    @pytest.mark.asyncio
    async def test_flush_empty_queue(self, retry_queue):
        report = await retry_queue.flush()

        assert report.attempted == 0
        assert report.remaining == 0

    def test_remove_and_clear(self, retry_queue, progress_payload):
        queued = retry_queue.enqueue("update_progress", progress_payload)
        retry_queue.enqueue("update_progress", progress_payload)

        assert retry_queue.remove(queued.id) is True
        assert retry_queue.remove(queued.id) is False
        assert retry_queue.size() == 1

        retry_queue.clear()
        assert retry_queue.size() == 0
        assert retry_queue.dropped() == []


class TestConnectivityMonitor:
    """Test cases for ConnectivityMonitor class."""

    @pytest.mark.asyncio
    async def test_reconnect_flushes_queue(self, retry_queue, progress_payload, clock):
        """Test that an offline to online transition replays queued writes."""
        executor = AsyncMock()
        retry_queue.register_executor("update_progress", executor)
        monitor = ConnectivityMonitor(retry_queue, clock=clock)

        assert await monitor.set_online(False) is None
        retry_queue.enqueue("update_progress", progress_payload)
        report = await monitor.set_online(True)

        assert report.succeeded == 1
        assert retry_queue.size() == 0
        assert monitor.status().last_online_at == clock.now()

    @pytest.mark.asyncio
    async def test_staying_online_does_not_flush(self, retry_queue, progress_payload, clock):
        executor = AsyncMock()
        retry_queue.register_executor("update_progress", executor)
        retry_queue.enqueue("update_progress", progress_payload)
        monitor = ConnectivityMonitor(retry_queue, clock=clock)

        assert await monitor.set_online(True) is None
        executor.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_listeners(self, retry_queue, clock):
        monitor = ConnectivityMonitor(retry_queue, clock=clock, initially_online=False)
        seen = []
        unsubscribe = monitor.subscribe(lambda status: seen.append(status.is_online))

        await monitor.set_online(True)
        await monitor.set_online(True)
        unsubscribe()
        await monitor.set_online(False)

        assert seen == [True]
        assert monitor.is_online is False
