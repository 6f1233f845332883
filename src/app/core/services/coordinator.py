"""Per-release mutual exclusion for mutating operations.

At most one install, upgrade, rollback, uninstall or test may run against a
given release name at a time. Acquisition never waits: a second caller gets
``ReleaseBusyError`` immediately and nothing else happens.

Example:
    ```python
    coordinator = OperationCoordinator(InMemoryLeaseManager())
    async with coordinator.lease("web"):
        ...  # exclusive access to release "web"
    ```
"""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from typing_extensions import override

from loguru import logger

from src.app.core.errors import ReleaseBusyError

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from src.app.runtime.config.config_data import CoordinatorConfig


class LeaseManager(ABC):
    """Abstract non-blocking lease backend."""

    @abstractmethod
    async def try_acquire(self, name: str) -> str | None:
        """Try to take the lease for ``name``.

        Returns:
            An opaque token if the lease was taken, None if it is held
        """
        pass

    @abstractmethod
    async def release(self, name: str, token: str) -> None:
        """Give back a lease previously returned by try_acquire."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the lease backend is reachable."""
        pass


class InMemoryLeaseManager(LeaseManager):
    """Leases held in a process-local set.

    Guarded by a threading lock so it stays correct when requests run on
    different threads or event loops.
    """

    def __init__(self) -> None:
        self._held: dict[str, str] = {}
        self._lock = threading.Lock()

    @override
    async def try_acquire(self, name: str) -> str | None:
        with self._lock:
            if name in self._held:
                return None
            token = uuid.uuid4().hex
            self._held[name] = token
            return token

    @override
    async def release(self, name: str, token: str) -> None:
        with self._lock:
            if self._held.get(name) == token:
                del self._held[name]

    @override
    async def health_check(self) -> bool:
        return True


# Delete the key only if it still carries our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLeaseManager(LeaseManager):
    """Leases stored as Redis keys, shared by every service replica.

    A lease is ``SET key token NX PX ttl``; the TTL bounds how long a crashed
    holder can block a release.
    """

    def __init__(
        self, redis_client: Redis, key_prefix: str = "rlsd", ttl_ms: int = 600_000
    ) -> None:
        self._redis = redis_client
        self._prefix = key_prefix
        self._ttl_ms = ttl_ms

    def _key(self, name: str) -> str:
        return f"{self._prefix}:lease:{name}"

    @override
    async def try_acquire(self, name: str) -> str | None:
        token = uuid.uuid4().hex
        acquired = await self._redis.set(self._key(name), token, nx=True, px=self._ttl_ms)
        return token if acquired else None

    @override
    async def release(self, name: str, token: str) -> None:
        await self._redis.eval(_RELEASE_SCRIPT, 1, self._key(name), token)

    @override
    async def health_check(self) -> bool:
        try:
            await self._redis.ping()
            return True
        except Exception as e:
            logger.debug(f"Redis lease backend health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()


class OperationCoordinator:
    """Admits mutating operations one release name at a time."""

    def __init__(self, leases: LeaseManager) -> None:
        self.leases = leases

    @asynccontextmanager
    async def lease(self, name: str) -> AsyncIterator[None]:
        """Hold the exclusive lease for ``name`` for the duration of the block.

        Raises:
            ReleaseBusyError: If another operation holds the lease
        """
        token = await self.leases.try_acquire(name)
        if token is None:
            raise ReleaseBusyError(
                f"another operation is in progress for release {name}"
            )
        logger.debug(f"Acquired lease for release {name}")
        try:
            yield
        finally:
            await self.leases.release(name, token)
            logger.debug(f"Released lease for release {name}")


def get_lease_manager(config: CoordinatorConfig, redis_url: str, key_prefix: str) -> LeaseManager:
    """Get the configured lease backend."""
    if config.backend == "redis":
        from redis.asyncio import Redis

        logger.info(f"Using Redis lease manager at {redis_url}")
        client = Redis.from_url(redis_url)
        return RedisLeaseManager(client, key_prefix=key_prefix, ttl_ms=config.lease_ttl_ms)

    logger.info("Using in-memory lease manager")
    return InMemoryLeaseManager()
