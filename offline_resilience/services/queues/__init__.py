"""
Failed Mutation Queue

Bounded-retry replay of writes that failed against the provider, with a
dead-letter list for mutations that exhaust their retries.
"""

from .connectivity import ConnectivityMonitor, ConnectivityStatus
from .mutations import (
    CreateCustomMixMutation,
    DroppedOperation,
    FailedOperation,
    FlushReport,
    Mutation,
    UpdateProgressMutation,
)
from .retry_queue import RetryQueue

__all__ = [
    "ConnectivityMonitor",
    "ConnectivityStatus",
    "CreateCustomMixMutation",
    "DroppedOperation",
    "FailedOperation",
    "FlushReport",
    "Mutation",
    "RetryQueue",
    "UpdateProgressMutation",
]
