"""
Cache infrastructure.
"""

from .memory_store import InMemoryCacheStore

__all__ = ["InMemoryCacheStore"]
