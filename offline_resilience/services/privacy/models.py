"""
Privacy Models

Violation records and compliance reports produced by the privacy guard.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ViolationKind(str, Enum):
    """What kind of boundary a violation crossed."""

    NETWORK_TRANSMISSION = "network_transmission"
    STORAGE_LEAK = "storage_leak"
    UNAUTHORIZED_OPERATION = "unauthorized_operation"


class Severity(str, Enum):
    """Violation severity; ``critical`` aborts the triggering operation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def blocks(self) -> bool:
        return self is Severity.CRITICAL


class PrivacyViolation(BaseModel):
    """Immutable privacy violation record."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    description: str
    severity: Severity
    observed_at: datetime
    operation: Optional[str] = None
    # Field names only; never the offending values
    fields: List[str] = Field(default_factory=list)


class RedactionRecord(BaseModel):
    """Audit entry for fields removed from an outbound payload."""

    model_config = ConfigDict(frozen=True)

    removed_fields: List[str]
    redacted_at: datetime
    operation: Optional[str] = None


class DataTypeStatus(BaseModel):
    """Locally-held data of one type."""

    count: int = 0
    local_only: bool = True


class ComplianceReport(BaseModel):
    """Privacy compliance snapshot over the offline layer's tracked state."""

    is_compliant: bool
    checked_at: datetime
    violations: List[PrivacyViolation] = Field(default_factory=list)
    data_types: Dict[str, DataTypeStatus] = Field(default_factory=dict)
    cache_entries: int = 0
    pending_mutations: int = 0
    allowed_network_operations: List[str] = Field(default_factory=list)
    monitoring_enabled: bool = True

    @property
    def violation_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for violation in self.violations:
            counts[violation.severity.value] = counts.get(violation.severity.value, 0) + 1
        return counts


class OfflineFirstCheck(BaseModel):
    """Result of probing core features against the local provider."""

    is_compliant: bool
    issues: List[str] = Field(default_factory=list)
    checked_at: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)
