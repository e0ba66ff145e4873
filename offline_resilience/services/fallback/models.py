"""
Fallback Models

Results and error records produced by the fallback orchestrator.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ...domain.exceptions import ErrorCategory


class FallbackTier(str, Enum):
    """Where a read's data came from, in order of preference."""

    LIVE = "live"
    EXACT_CACHE = "exact_cache"
    BROADENED_CACHE = "broadened_cache"
    DEFAULTS = "defaults"


@dataclass
class FallbackResult:
    """Data returned by a read plus its provenance."""

    data: Any
    source: FallbackTier
    stale: bool = False
    cache_key: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.source is not FallbackTier.LIVE


class OfflineError(BaseModel):
    """A provider failure handled by the orchestrator."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    operation: str
    category: ErrorCategory
    message: str
    timestamp: datetime
    resolved: bool = False
    fallback_used: Optional[str] = None


class ErrorStats(BaseModel):
    """Aggregate view over the error log."""

    total: int = 0
    unresolved: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_operation: Dict[str, int] = Field(default_factory=dict)
    by_fallback: Dict[str, int] = Field(default_factory=dict)
