"""
Content providers wrapped by the offline layer.
"""

from .memory import InMemoryContentProvider, ProviderUnavailableError
from .protocol import ContentProvider

__all__ = ["ContentProvider", "InMemoryContentProvider", "ProviderUnavailableError"]
