"""
Offline Resilience Configuration

Configuration management with environment variable support.
Implements local-only defaults and validation for cache, retry and privacy settings.
"""

from functools import lru_cache
from typing import Dict, List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    ALLOWED_NETWORK_OPERATION_CLASSES,
    OP_CREATE_CUSTOM_MIX,
    OP_CREATE_PROFILE,
    OP_GET_CUSTOM_MIXES,
    OP_GET_PROFILES,
    OP_GET_QUESTIONS,
    OP_GET_SUBJECTS,
)

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Layer settings with validation and offline-first defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="OFFLINE_",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Cache store
    CACHE_CAPACITY: int = Field(
        default=1000, ge=0, le=100000, description="Maximum number of cache entries"
    )
    CACHE_DEFAULT_TTL_SECONDS: int = Field(
        default=86400, description="TTL used when an operation has no specific TTL"
    )
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(
        default=300.0, gt=0, le=86400, description="Expired-entry sweep interval"
    )

    # Per-operation TTLs
    SUBJECTS_TTL_SECONDS: int = Field(default=86400, description="Subject list TTL")
    QUESTIONS_TTL_SECONDS: int = Field(default=43200, description="Question set TTL")
    PROFILES_TTL_SECONDS: int = Field(default=86400, description="Profile list TTL")
    CUSTOM_MIXES_TTL_SECONDS: int = Field(
        default=86400, description="Custom mix list TTL"
    )

    # Retry queue
    RETRY_FLUSH_INTERVAL_SECONDS: float = Field(
        default=30.0, gt=0, le=3600, description="Failed mutation flush interval"
    )
    RETRY_MAX_RETRIES: int = Field(
        default=3, ge=1, le=10, description="Maximum retry attempts per mutation"
    )

    # Content fetching
    QUESTION_OVERFETCH_FACTOR: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Multiplier applied to live question requests to enrich the cache",
    )
    PRELOAD_SUBJECTS: str = Field(
        default="Mathematics,English,Science,Geography",
        description="Subjects preloaded for offline access (comma-separated)",
    )
    PRELOAD_QUESTION_LIMIT: int = Field(
        default=100, ge=1, le=1000, description="Questions preloaded per key stage"
    )

    # Privacy
    ALLOWED_NETWORK_OPERATIONS: str = Field(
        default="content_updates,signature_verification",
        description="Operation classes allowed to reach the network (comma-separated)",
    )
    PRIVACY_MONITORING_ENABLED: bool = Field(
        default=True, description="Record privacy violations"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level value."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("ALLOWED_NETWORK_OPERATIONS")
    @classmethod
    def validate_allowed_network_operations(cls, v):
        """Only content updates and signature verification may touch the network."""
        requested = {item.strip() for item in v.split(",") if item.strip()}
        unknown = requested - ALLOWED_NETWORK_OPERATION_CLASSES
        if unknown:
            raise ValueError(
                f"ALLOWED_NETWORK_OPERATIONS may only contain "
                f"{sorted(ALLOWED_NETWORK_OPERATION_CLASSES)}, got {sorted(unknown)}"
            )
        return v

    @property
    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.ENVIRONMENT == "test"

    @property
    def preload_subjects(self) -> List[str]:
        """Get preload subjects as list."""
        return [s.strip() for s in self.PRELOAD_SUBJECTS.split(",") if s.strip()]

    @property
    def allowed_network_operations(self) -> List[str]:
        """Get allowed network operation classes as list."""
        return [
            s.strip() for s in self.ALLOWED_NETWORK_OPERATIONS.split(",") if s.strip()
        ]

    @property
    def operation_ttls(self) -> Dict[str, int]:
        """TTL in seconds keyed by logical operation name."""
        return {
            OP_GET_SUBJECTS: self.SUBJECTS_TTL_SECONDS,
            OP_GET_QUESTIONS: self.QUESTIONS_TTL_SECONDS,
            OP_GET_PROFILES: self.PROFILES_TTL_SECONDS,
            OP_CREATE_PROFILE: self.PROFILES_TTL_SECONDS,
            OP_GET_CUSTOM_MIXES: self.CUSTOM_MIXES_TTL_SECONDS,
            OP_CREATE_CUSTOM_MIX: self.CUSTOM_MIXES_TTL_SECONDS,
        }

    def ttl_for(self, operation: str) -> int:
        """Get the cache TTL for an operation, falling back to the default TTL."""
        return self.operation_ttls.get(operation, self.CACHE_DEFAULT_TTL_SECONDS)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
