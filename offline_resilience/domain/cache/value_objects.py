"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety for cache keys and expiration windows.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, unquote

from ...constants import (
    CACHE_KEY_MAX_LENGTH,
    CACHE_KEY_WILDCARD,
    OP_GET_QUESTIONS,
    OP_GET_SUBJECTS,
)


class CacheEntryStatus(str, Enum):
    """Cache entry status enumeration."""

    ACTIVE = "active"
    EXPIRED = "expired"
    MISSING = "missing"


def _normalize_param(value: Any) -> str:
    """Render one key argument deterministically."""
    if value is None:
        return CACHE_KEY_WILDCARD
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (tuple, list)):
        if len(value) == 2 and all(isinstance(v, (int, float)) for v in value):
            low, high = sorted(value)
            return f"{low}-{high}"
        return ",".join(_normalize_param(v) for v in value)
    return quote(str(value).strip(), safe="")


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable composite cache key.

    Format: ``operation`` or ``operation:arg=value|arg=value`` with arguments
    sorted by name, so semantically identical requests collide on one entry.
    A value of ``all`` marks an argument that was not narrowed.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > CACHE_KEY_MAX_LENGTH:
            raise ValueError(
                f"Cache key too long (max {CACHE_KEY_MAX_LENGTH} characters)"
            )

        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @classmethod
    def for_operation(cls, operation: str, **params: Any) -> "CacheKey":
        """Build the key for an operation and its (unordered) arguments."""
        if not operation or ":" in operation:
            raise ValueError("Invalid operation name for cache key")
        if not params:
            return cls(operation)
        rendered = "|".join(
            f"{name}={_normalize_param(params[name])}" for name in sorted(params)
        )
        return cls(f"{operation}:{rendered}")

    @classmethod
    def subjects(cls) -> "CacheKey":
        """Subject list cache key."""
        return cls.for_operation(OP_GET_SUBJECTS)

    @classmethod
    def questions(
        cls,
        subject: str,
        key_stage: Optional[str] = None,
        difficulty_range: Optional[Tuple[int, int]] = None,
    ) -> "CacheKey":
        """Question set cache key."""
        return cls.for_operation(
            OP_GET_QUESTIONS,
            subject=subject,
            key_stage=key_stage,
            difficulty=difficulty_range,
        )

    @property
    def operation(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def params(self) -> Dict[str, str]:
        """Decoded arguments of this key."""
        if ":" not in self.value:
            return {}
        _, rendered = self.value.split(":", 1)
        result = {}
        for part in rendered.split("|"):
            name, _, raw = part.partition("=")
            result[name] = unquote(raw)
        return result

    def broaden(self, *fields: str) -> "CacheKey":
        """Key for the same request with the given arguments widened to ``all``."""
        params = self.params
        for field_name in fields:
            params[field_name] = None
        return CacheKey.for_operation(self.operation, **params)

    def is_broad(self) -> bool:
        """True when every argument is the wildcard."""
        return all(v == CACHE_KEY_WILDCARD for v in self.params.values())

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Zero or negative TTLs are valid and mean "do not cache".
    """

    seconds: float

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def from_seconds(cls, seconds: float) -> "TTL":
        return cls(seconds)

    @classmethod
    def minutes(cls, minutes: float) -> "TTL":
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: float) -> "TTL":
        return cls(hours * 3600)

    @classmethod
    def days(cls, days: float) -> "TTL":
        return cls(days * 86400)

    @property
    def cacheable(self) -> bool:
        return self.seconds > 0

    @property
    def delta(self) -> timedelta:
        return timedelta(seconds=self.seconds)

    def __str__(self) -> str:
        return f"{self.seconds:g}s"
