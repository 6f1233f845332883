"""Release history storage backends."""

from .base import ReleaseStore
from .factory import get_release_store
from .memory import InMemoryReleaseStore
from .redis import RedisReleaseStore

__all__ = ["ReleaseStore", "get_release_store", "InMemoryReleaseStore", "RedisReleaseStore"]
