"""
Offline Resilience Global Constants

Centralized location for names and limits shared across the layer.
"""

from datetime import datetime, timezone


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone.

    Returns:
        datetime: Current UTC timestamp

    Note: Components take an injected Clock; this is only the SystemClock source.
    """
    return datetime.now(timezone.utc)


# Application Constants
APP_VERSION = "1.0.0"

# Logical operation names exposed to the application layer
OP_GET_SUBJECTS = "get_subjects"
OP_GET_QUESTIONS = "get_questions"
OP_GET_PROFILES = "get_profiles"
OP_CREATE_PROFILE = "create_profile"
OP_UPDATE_PROGRESS = "update_progress"
OP_GET_CUSTOM_MIXES = "get_custom_mixes"
OP_CREATE_CUSTOM_MIX = "create_custom_mix"

# Network operation classes that may ever leave the device
NETWORK_OP_CONTENT_UPDATES = "content_updates"
NETWORK_OP_SIGNATURE_VERIFICATION = "signature_verification"
ALLOWED_NETWORK_OPERATION_CLASSES = frozenset(
    {NETWORK_OP_CONTENT_UPDATES, NETWORK_OP_SIGNATURE_VERIFICATION}
)

# Cache key limits
CACHE_KEY_MAX_LENGTH = 250
CACHE_KEY_WILDCARD = "all"

# In-memory log bounds
MAX_ERROR_LOG_ENTRIES = 500
MAX_DROPPED_OPERATIONS = 200

# Scheduler job names
JOB_CACHE_SWEEP = "cache.sweep_expired"
JOB_RETRY_FLUSH = "retry_queue.flush"
