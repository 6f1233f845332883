"""Redis-backed release store.

Each release name maps to one hash whose fields are version numbers and whose
values are the JSON-serialized revisions:

    {prefix}:release:{name}  ->  {"1": "{...}", "2": "{...}"}
"""

from typing import TYPE_CHECKING

from typing_extensions import override

from src.app.core.errors import ReleaseAlreadyExistsError, ReleaseNotFoundError
from src.app.core.models.release import Release
from src.app.core.services.storage.base import (
    ReleasePredicate,
    ReleaseSortKey,
    ReleaseStore,
    select,
)

if TYPE_CHECKING:
    from redis.asyncio import Redis


class RedisReleaseStore(ReleaseStore):
    """Redis-based release history with JSON serialization."""

    def __init__(self, redis_client: "Redis", key_prefix: str = "rlsd") -> None:
        self._redis = redis_client
        self._prefix = key_prefix
        self._available = True

    def _key(self, name: str) -> str:
        return f"{self._prefix}:release:{name}"

    @staticmethod
    def _decode(data: bytes | str) -> Release:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return Release.model_validate_json(data)

    @override
    async def get(self, name: str, version: int) -> Release:
        """Retrieve one revision from its release hash."""
        try:
            data = await self._redis.hget(self._key(name), str(version))
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis get failed: {e}") from e
        if data is None:
            raise ReleaseNotFoundError(f"release {name} version {version} not found")
        return self._decode(data)

    @override
    async def latest(self, name: str) -> Release:
        revisions = await self.history(name)
        if not revisions:
            raise ReleaseNotFoundError(f"release {name} not found")
        return revisions[-1]

    @override
    async def history(self, name: str) -> list[Release]:
        try:
            entries = await self._redis.hgetall(self._key(name))
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis history failed: {e}") from e
        revisions = [self._decode(v) for v in entries.values()]
        return sorted(revisions, key=lambda r: r.version)

    @override
    async def put(self, release: Release) -> None:
        """Append a revision; HSETNX makes the existence check atomic."""
        try:
            created = await self._redis.hsetnx(
                self._key(release.name), str(release.version), release.model_dump_json()
            )
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis put failed: {e}") from e
        if not created:
            raise ReleaseAlreadyExistsError(
                f"release {release.name} version {release.version} already exists"
            )

    @override
    async def update(self, release: Release) -> None:
        key = self._key(release.name)
        try:
            exists = await self._redis.hexists(key, str(release.version))
            if exists:
                await self._redis.hset(
                    key, str(release.version), release.model_dump_json()
                )
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis update failed: {e}") from e
        if not exists:
            raise ReleaseNotFoundError(
                f"release {release.name} version {release.version} not found"
            )

    @override
    async def delete(self, name: str) -> list[Release]:
        revisions = await self.history(name)
        try:
            await self._redis.delete(self._key(name))
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis delete failed: {e}") from e
        return revisions

    @override
    async def list(
        self,
        predicate: ReleasePredicate | None = None,
        sort_key: ReleaseSortKey | None = None,
    ) -> list[Release]:
        """List revisions of every release hash found with SCAN."""
        releases: list[Release] = []
        try:
            cursor = 0
            while True:
                cursor, batch = await self._redis.scan(
                    cursor, match=self._key("*"), count=100
                )
                for key in batch:
                    entries = await self._redis.hgetall(key)
                    releases.extend(self._decode(v) for v in entries.values())

                if cursor == 0:
                    break

            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis scan failed: {e}") from e
        return select(releases, predicate, sort_key)

    @override
    def is_available(self) -> bool:
        """Check if Redis connection is healthy."""
        return self._available

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            self._available = True
            return True
        except Exception:
            self._available = False
            return False

    async def close(self) -> None:
        await self._redis.aclose()
