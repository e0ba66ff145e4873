"""
Offline Resilience

Offline-first layer between application features and a content provider:
TTL/LRU caching, tiered read fallback, bounded retry of failed writes and a
privacy guard for anything that could leave the device.
"""

from .constants import APP_VERSION
from .container import OfflineLayer, build_offline_layer

__version__ = APP_VERSION

__all__ = ["OfflineLayer", "build_offline_layer", "__version__"]
