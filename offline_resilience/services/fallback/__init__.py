"""
Read fallback and write deferral for provider operations.
"""

from .models import ErrorStats, FallbackResult, FallbackTier, OfflineError
from .orchestrator import FallbackOrchestrator
from .policies import default_policies
from .strategies import (
    BroadenedCacheStrategy,
    DefaultDataStrategy,
    ExactCacheStrategy,
    FallbackContext,
    FallbackStrategy,
    OperationPolicy,
)

__all__ = [
    "BroadenedCacheStrategy",
    "DefaultDataStrategy",
    "ErrorStats",
    "ExactCacheStrategy",
    "FallbackContext",
    "FallbackOrchestrator",
    "FallbackResult",
    "FallbackStrategy",
    "FallbackTier",
    "OfflineError",
    "OperationPolicy",
    "default_policies",
]
