"""Factory for obtaining the configured release store backend."""

from typing import TYPE_CHECKING

from loguru import logger

from src.app.core.services.storage.base import ReleaseStore
from src.app.core.services.storage.memory import InMemoryReleaseStore

if TYPE_CHECKING:
    from src.app.runtime.config.config_data import StorageConfig


def get_release_store(config: "StorageConfig") -> ReleaseStore:
    """Get the configured release store instance."""

    if config.backend == "redis":
        from redis.asyncio import Redis

        from src.app.core.services.storage.redis import RedisReleaseStore

        logger.info(f"Using Redis release store at {config.redis_url}")
        client = Redis.from_url(config.redis_url, decode_responses=False)
        return RedisReleaseStore(client, key_prefix=config.key_prefix)

    logger.info("Using in-memory release store")
    return InMemoryReleaseStore()
