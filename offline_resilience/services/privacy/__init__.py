"""
Privacy enforcement for the offline layer.
"""

from .guard import PrivacyConfig, PrivacyGuard
from .models import (
    ComplianceReport,
    DataTypeStatus,
    OfflineFirstCheck,
    PrivacyViolation,
    RedactionRecord,
    Severity,
    ViolationKind,
)

__all__ = [
    "ComplianceReport",
    "DataTypeStatus",
    "OfflineFirstCheck",
    "PrivacyConfig",
    "PrivacyGuard",
    "PrivacyViolation",
    "RedactionRecord",
    "Severity",
    "ViolationKind",
]
