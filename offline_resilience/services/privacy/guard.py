"""
Privacy Guard

Ensures no personal data crosses a network boundary. Outbound payloads are
inspected and redacted; only content updates and signature verification may
reach the network at all. Violations are kept in an append-only log and a
violation that blocks a call aborts the triggering operation (fail-closed).
"""

import logging
import re
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set

from opentelemetry import trace
from pydantic import BaseModel

from ...constants import (
    ALLOWED_NETWORK_OPERATION_CLASSES,
    OP_GET_CUSTOM_MIXES,
    OP_GET_PROFILES,
    OP_GET_QUESTIONS,
    OP_GET_SUBJECTS,
    OP_UPDATE_PROGRESS,
)
from ...core.scheduler import Clock, SystemClock
from ...domain.cache.repository_interfaces import CacheStoreInterface
from ...domain.cache.value_objects import CacheKey
from ...domain.exceptions import PrivacyViolationError
from ..interfaces import PrivacyGuardInterface, RetryQueueInterface
from .models import (
    ComplianceReport,
    DataTypeStatus,
    OfflineFirstCheck,
    PrivacyViolation,
    RedactionRecord,
    Severity,
    ViolationKind,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DataSource = Callable[[], int]


def canonical_field(name: str) -> str:
    """Fold snake_case, camelCase and kebab-case spellings to one form."""
    return re.sub(r"[_\-\s]", "", str(name)).lower()


@dataclass
class PrivacyConfig:
    """Configuration for personal-data detection and network allow-listing."""

    # Exact field names removed from outbound payloads
    personal_fields: Set[str] = field(
        default_factory=lambda: {
            "profile_id",
            "user_id",
            "name",
            "avatar",
            "progress",
            "score",
            "scores",
            "achievement",
            "achievements",
            "custom_mix",
            "custom_mixes",
            "quiz_result",
            "quiz_results",
        }
    )

    # Substrings that mark a content update key as personal data
    content_update_markers: Set[str] = field(
        default_factory=lambda: {
            "profile",
            "user",
            "progress",
            "score",
            "achievement",
            "avatar",
            "custom_mix",
            "quiz_result",
        }
    )

    # Personal fields grouped by the locally-held data type they belong to
    data_type_fields: Dict[str, Set[str]] = field(
        default_factory=lambda: {
            "profiles": {"profile_id", "name", "avatar"},
            "progress": {"progress", "score", "scores", "achievement", "achievements"},
            "custom_mixes": {"custom_mix", "custom_mixes"},
            "quiz_sessions": {"quiz_result", "quiz_results"},
        }
    )

    allowed_network_operations: Set[str] = field(
        default_factory=lambda: set(ALLOWED_NETWORK_OPERATION_CLASSES)
    )

    monitoring_enabled: bool = True
    max_violations: int = 1000
    max_redactions: int = 1000


class PrivacyGuard(PrivacyGuardInterface):
    """Inspects outbound data and reports on locally-held personal data."""

    def __init__(
        self,
        config: Optional[PrivacyConfig] = None,
        clock: Optional[Clock] = None,
        cache: Optional[CacheStoreInterface] = None,
        retry_queue: Optional[RetryQueueInterface] = None,
    ):
        self.config = config or PrivacyConfig()
        self.clock = clock or SystemClock()
        self.cache = cache
        self.retry_queue = retry_queue

        unknown = self.config.allowed_network_operations - ALLOWED_NETWORK_OPERATION_CLASSES
        if unknown:
            raise ValueError(f"Operations may not be allowed network access: {sorted(unknown)}")

        self._allowed: Set[str] = set(self.config.allowed_network_operations)
        self._monitoring = self.config.monitoring_enabled
        self._personal = {canonical_field(f) for f in self.config.personal_fields}
        self._markers = {canonical_field(m) for m in self.config.content_update_markers}
        self._violations: Deque[PrivacyViolation] = deque(maxlen=self.config.max_violations)
        self._redactions: Deque[RedactionRecord] = deque(maxlen=self.config.max_redactions)
        self._data_sources: Dict[str, DataSource] = {
            "profiles": lambda: self._cached_count(OP_GET_PROFILES),
            "progress": self._pending_progress_count,
            "custom_mixes": lambda: self._cached_count(OP_GET_CUSTOM_MIXES),
            "quiz_sessions": lambda: 0,
        }

        logger.info(
            "Privacy guard initialized - local-only mode active",
            extra={"allowed_network_operations": sorted(self._allowed)},
        )

    # Allow-list

    def is_operation_allowed(self, operation: str) -> bool:
        return operation in self._allowed

    def allow_network_operation(self, operation: str) -> bool:
        """
        Add an operation class to the network allow-list.

        Only content updates and signature verification can be added; any
        other request is recorded as a high-severity violation.
        """
        if operation in ALLOWED_NETWORK_OPERATION_CLASSES:
            self._allowed.add(operation)
            return True

        self._record(
            ViolationKind.UNAUTHORIZED_OPERATION,
            f"Attempted to allow unauthorized network operation: {operation}",
            Severity.HIGH,
            operation=operation,
        )
        return False

    # Detection and redaction

    def is_personal_field(self, name: str) -> bool:
        return canonical_field(name) in self._personal

    def find_personal_fields(self, payload: Any) -> List[str]:
        """Dotted paths of every personal-data field inside ``payload``."""
        found: List[str] = []
        self._walk(payload, "", lambda key: self.is_personal_field(key), found)
        return found

    def sanitize_for_network(self, payload: Any, operation: Optional[str] = None) -> Any:
        """
        Return a copy of ``payload`` without personal-data fields.

        Nested mappings and lists are sanitized recursively; the input is
        never modified.
        """
        removed: List[str] = []
        sanitized = self._strip(payload, "", removed)

        if removed:
            self._redactions.append(
                RedactionRecord(
                    removed_fields=removed,
                    redacted_at=self.clock.now(),
                    operation=operation,
                )
            )
            logger.debug(
                f"Removed {len(removed)} personal data fields from outbound payload",
                extra={"operation": operation, "fields": removed},
            )
        return sanitized

    def inspect_outbound(self, operation: str, payload: Any) -> Any:
        """
        Gate a payload headed for the network.

        Returns:
            The sanitized payload

        Raises:
            PrivacyViolationError: If the operation is not on the allow-list
        """
        with tracer.start_as_current_span("privacy_guard.inspect_outbound") as span:
            span.set_attribute("operation", operation)
            allowed = self.is_operation_allowed(operation)
            span.set_attribute("allowed", allowed)

            if not allowed:
                fields = self.find_personal_fields(payload)
                if fields:
                    violation = self._record(
                        ViolationKind.NETWORK_TRANSMISSION,
                        f"Blocked personal data transmission by '{operation}'",
                        Severity.CRITICAL,
                        operation=operation,
                        fields=fields,
                    )
                else:
                    violation = self._record(
                        ViolationKind.UNAUTHORIZED_OPERATION,
                        f"Operation '{operation}' is not allowed network access",
                        Severity.HIGH,
                        operation=operation,
                    )
                span.set_attribute("blocked", True)
                raise PrivacyViolationError(violation, operation=operation)

            return self.sanitize_for_network(payload, operation=operation)

    def verify_content_update(self, data: Any) -> bool:
        """
        Check that a content update carries educational content only.

        Raises:
            PrivacyViolationError: If the update contains personal-data markers
        """
        matches: List[str] = []
        self._walk(
            data,
            "",
            lambda key: any(marker in canonical_field(key) for marker in self._markers),
            matches,
        )
        if not matches:
            return True

        violation = self._record(
            ViolationKind.NETWORK_TRANSMISSION,
            f"Content update contains personal data: {', '.join(matches)}",
            Severity.CRITICAL,
            operation="content_updates",
            fields=matches,
        )
        raise PrivacyViolationError(violation, operation="content_updates")

    # Violation log

    def violations(self) -> List[PrivacyViolation]:
        return list(self._violations)

    def clear_violations(self) -> None:
        self._violations.clear()

    def redactions(self) -> List[RedactionRecord]:
        return list(self._redactions)

    def clear_redactions(self) -> None:
        self._redactions.clear()

    def set_monitoring(self, enabled: bool) -> None:
        """Toggle logging of non-critical violations. Every violation is still recorded."""
        self._monitoring = enabled

    @property
    def monitoring_enabled(self) -> bool:
        return self._monitoring

    def _record(
        self,
        kind: ViolationKind,
        description: str,
        severity: Severity,
        operation: Optional[str] = None,
        fields: Optional[Iterable[str]] = None,
    ) -> PrivacyViolation:
        violation = PrivacyViolation(
            kind=kind,
            description=description,
            severity=severity,
            observed_at=self.clock.now(),
            operation=operation,
            fields=list(fields or []),
        )
        self._violations.append(violation)
        if not self._monitoring and not severity.blocks:
            return violation

        level = logging.ERROR if severity in (Severity.HIGH, Severity.CRITICAL) else logging.WARNING
        logger.log(
            level,
            f"Privacy violation: {description}",
            extra={
                "kind": kind.value,
                "severity": severity.value,
                "operation": operation,
                "fields": violation.fields,
            },
        )
        return violation

    # Reporting

    def register_data_source(self, data_type: str, counter: DataSource) -> None:
        """Report ``counter()`` as the local count of ``data_type``."""
        self._data_sources[data_type] = counter

    def verify(self) -> ComplianceReport:
        """Aggregate locally-held data counts into a compliance report."""
        with tracer.start_as_current_span("privacy_guard.verify") as span:
            violations = self.violations()
            data_types = {
                data_type: DataTypeStatus(
                    count=self._safe_count(data_type, counter),
                    local_only=self._is_local_only(data_type, violations),
                )
                for data_type, counter in self._data_sources.items()
            }

            report = ComplianceReport(
                is_compliant=not violations
                and all(status.local_only for status in data_types.values()),
                checked_at=self.clock.now(),
                violations=violations,
                data_types=data_types,
                cache_entries=len(self.cache) if self.cache is not None else 0,
                pending_mutations=self.retry_queue.size() if self.retry_queue else 0,
                allowed_network_operations=sorted(self._allowed),
                monitoring_enabled=self._monitoring,
            )
            span.set_attribute("is_compliant", report.is_compliant)
            span.set_attribute("violations", len(violations))
            return report

    async def verify_offline_first(self, provider: Any) -> OfflineFirstCheck:
        """Check the features that must work without a network."""
        issues: List[str] = []
        details: Dict[str, Any] = {}

        checks = (
            (OP_GET_PROFILES, provider.get_profiles, "Profile management requires network connection"),
            (OP_GET_SUBJECTS, provider.get_subjects, "Subject loading requires network connection"),
            (
                OP_GET_CUSTOM_MIXES,
                provider.get_custom_mixes,
                "Custom mix management requires network connection",
            ),
        )
        subjects: List[Any] = []
        for name, check, issue in checks:
            try:
                result = await check()
                details[name] = len(result)
                if name == OP_GET_SUBJECTS:
                    subjects = list(result)
            except Exception as e:
                logger.warning(f"Offline check {name} failed: {e}")
                issues.append(issue)

        if subjects:
            first = subjects[0]
            subject_name = first.name if hasattr(first, "name") else first["name"]
            try:
                questions = await provider.get_questions(subject_name, None, None, 1)
                details[OP_GET_QUESTIONS] = len(questions)
            except Exception as e:
                logger.warning(f"Offline check {OP_GET_QUESTIONS} failed: {e}")
                issues.append("Quiz functionality requires network connection")

        return OfflineFirstCheck(
            is_compliant=not issues,
            issues=issues,
            checked_at=self.clock.now(),
            details=details,
        )

    def _is_local_only(self, data_type: str, violations: List[PrivacyViolation]) -> bool:
        related = {
            canonical_field(f) for f in self.config.data_type_fields.get(data_type, ())
        }
        for violation in violations:
            if violation.kind is not ViolationKind.NETWORK_TRANSMISSION:
                continue
            if any(canonical_field(path.rsplit(".", 1)[-1]) in related for path in violation.fields):
                return False
        return True

    def _safe_count(self, data_type: str, counter: DataSource) -> int:
        try:
            return counter()
        except Exception as e:
            logger.error(
                f"Failed to count local {data_type}: {e}",
                extra={"data_type": data_type},
            )
            return 0

    def _cached_count(self, operation: str) -> int:
        if self.cache is None:
            return 0
        entry = self.cache.peek(CacheKey.for_operation(operation))
        if entry is None or not isinstance(entry.data, list):
            return 0
        return len(entry.data)

    def _pending_progress_count(self) -> int:
        if self.retry_queue is None:
            return 0
        return sum(1 for op in self.retry_queue.pending() if op.operation_name == OP_UPDATE_PROGRESS)

    # Traversal

    def _walk(
        self,
        value: Any,
        path: str,
        predicate: Callable[[str], bool],
        found: List[str],
    ) -> None:
        value = _as_plain(value)
        if isinstance(value, Mapping):
            for key, item in value.items():
                item_path = f"{path}.{key}" if path else str(key)
                if predicate(str(key)):
                    found.append(item_path)
                else:
                    self._walk(item, item_path, predicate, found)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                self._walk(item, f"{path}[{index}]", predicate, found)

    def _strip(self, value: Any, path: str, removed: List[str]) -> Any:
        value = _as_plain(value)
        if isinstance(value, Mapping):
            result = {}
            for key, item in value.items():
                item_path = f"{path}.{key}" if path else str(key)
                if self.is_personal_field(str(key)):
                    removed.append(item_path)
                    continue
                result[key] = self._strip(item, item_path, removed)
            return result
        if isinstance(value, list):
            return [self._strip(item, f"{path}[{i}]", removed) for i, item in enumerate(value)]
        if isinstance(value, tuple):
            return tuple(self._strip(item, f"{path}[{i}]", removed) for i, item in enumerate(value))
        return value


def _as_plain(payload: Any) -> Any:
    """Pydantic models are inspected through their field dump."""
    if isinstance(payload, BaseModel):
        return payload.model_dump()
    return payload
