"""
Offline Capability Verification

Scored checklist confirming the layer keeps core features working without a
network and without personal data leaving the device.
"""

from typing import TYPE_CHECKING, Awaitable, Callable, List, Tuple

import structlog
from pydantic import BaseModel, Field

from ..constants import NETWORK_OP_CONTENT_UPDATES, NETWORK_OP_SIGNATURE_VERIFICATION
from ..domain.content.models import KeyStage

if TYPE_CHECKING:
    from .content_service import OfflineContentService

logger = structlog.get_logger(__name__)

# Operation classes that must never be allowed network access
RESTRICTED_OPERATIONS = ("user_tracking", "analytics", "personal_data_sync")


class VerificationCheck(BaseModel):
    """One checklist item."""

    test: str
    passed: bool
    message: str
    critical: bool


class VerificationReport(BaseModel):
    """Checklist outcome; ``passed`` requires every check to pass."""

    passed: bool
    score: int
    max_score: int
    results: List[VerificationCheck] = Field(default_factory=list)

    @property
    def critical_failures(self) -> List[VerificationCheck]:
        return [r for r in self.results if r.critical and not r.passed]


Check = Tuple[str, bool, Callable[["OfflineContentService"], Awaitable[Tuple[bool, str]]]]


async def _check_subjects(service: "OfflineContentService") -> Tuple[bool, str]:
    subjects = await service.get_subjects()
    if not isinstance(subjects, list):
        return False, "Failed to retrieve subjects list"
    return True, f"Successfully retrieved {len(subjects)} subjects"


async def _check_questions(service: "OfflineContentService") -> Tuple[bool, str]:
    questions = await service.get_questions("Mathematics", KeyStage.KS1, None, 5)
    if not questions:
        return False, "No questions retrieved"
    return True, f"Successfully retrieved {len(questions)} questions"


async def _check_privacy_compliance(service: "OfflineContentService") -> Tuple[bool, str]:
    report = service.privacy_guard.verify()
    if report.is_compliant:
        return True, "All data stored locally, privacy compliant"
    return False, f"Privacy violations detected: {len(report.violations)}"


async def _check_offline_first(service: "OfflineContentService") -> Tuple[bool, str]:
    compliance = await service.privacy_guard.verify_offline_first(service.provider)
    if compliance.is_compliant:
        return True, "All core features work offline"
    return False, f"Issues: {', '.join(compliance.issues)}"


async def _check_cache_stats(service: "OfflineContentService") -> Tuple[bool, str]:
    stats = service.cache.stats()
    return (
        True,
        f"Cache has {stats.entry_count} entries with {stats.hit_rate * 100:.1f}% hit rate",
    )


async def _check_cache_availability(service: "OfflineContentService") -> Tuple[bool, str]:
    availability = service.cache.offline_availability()
    if availability.available_offline:
        return True, (
            f"{availability.total_questions} questions cached for "
            f"{len(availability.subjects)} subjects"
        )
    return False, "No question sets cached for offline use"


async def _check_queue_health(service: "OfflineContentService") -> Tuple[bool, str]:
    dropped = service.retry_queue.dropped()
    if dropped:
        return False, f"{len(dropped)} queued updates were dropped after exhausting retries"
    return True, f"{service.retry_queue.size()} updates pending retry, none dropped"


async def _check_network_restrictions(service: "OfflineContentService") -> Tuple[bool, str]:
    guard = service.privacy_guard
    allowed = all(
        guard.is_operation_allowed(op)
        for op in (NETWORK_OP_CONTENT_UPDATES, NETWORK_OP_SIGNATURE_VERIFICATION)
    )
    restricted = not any(guard.is_operation_allowed(op) for op in RESTRICTED_OPERATIONS)
    if allowed and restricted:
        return True, "Network operations properly restricted"
    return False, "Network operation restrictions not working properly"


async def _check_sanitization(service: "OfflineContentService") -> Tuple[bool, str]:
    payload = {"profileId": 1, "name": "Sample", "progress": {}, "contentId": 5}
    sanitized = service.privacy_guard.sanitize_for_network(payload, operation="verification")
    if set(sanitized) == {"contentId"}:
        return True, "Personal data removed before network transmission"
    return False, f"Fields left after sanitization: {sorted(sanitized)}"


async def _check_status_reporting(service: "OfflineContentService") -> Tuple[bool, str]:
    status = service.offline_status()
    return (
        True,
        f"Offline ready: {status.is_offline_ready}, {status.cached_subjects} subjects cached",
    )


CHECKS: List[Check] = [
    ("Offline Service - Get Subjects", True, _check_subjects),
    ("Offline Service - Get Questions", True, _check_questions),
    ("Data Privacy - Compliance Check", True, _check_privacy_compliance),
    ("Offline-First - Core Features", True, _check_offline_first),
    ("Content Cache - Statistics", False, _check_cache_stats),
    ("Content Cache - Offline Availability", False, _check_cache_availability),
    ("Retry Queue - Health", False, _check_queue_health),
    ("Data Privacy - Network Restrictions", True, _check_network_restrictions),
    ("Data Privacy - Sanitization", True, _check_sanitization),
    ("Offline Service - Status Reporting", False, _check_status_reporting),
]


async def verify_offline_capabilities(service: "OfflineContentService") -> VerificationReport:
    """Run every check; a raising check counts as failed."""
    results: List[VerificationCheck] = []

    for test, critical, check in CHECKS:
        try:
            passed, message = await check(service)
        except Exception as e:
            passed, message = False, f"Error: {e}"
        results.append(
            VerificationCheck(test=test, passed=passed, message=message, critical=critical)
        )

    score = sum(1 for r in results if r.passed)
    report = VerificationReport(
        passed=score == len(results),
        score=score,
        max_score=len(results),
        results=results,
    )
    logger.info(
        "Offline verification completed",
        score=report.score,
        max_score=report.max_score,
        critical_failures=[r.test for r in report.critical_failures],
    )
    return report
