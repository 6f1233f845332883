"""Tests for per-release leases and the operation coordinator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.app.core.errors import ReleaseBusyError
from src.app.core.services.coordinator import (
    InMemoryLeaseManager,
    OperationCoordinator,
    RedisLeaseManager,
    get_lease_manager,
)
from src.app.runtime.config.config_data import CoordinatorConfig


class TestInMemoryLeaseManager:
    """Test the process-local lease manager."""

    @pytest.mark.asyncio
    async def test_acquire_is_exclusive(self):
        leases = InMemoryLeaseManager()

        token = await leases.try_acquire("web")

        assert token is not None
        assert await leases.try_acquire("web") is None
        assert await leases.try_acquire("api") is not None

    @pytest.mark.asyncio
    async def test_release_requires_matching_token(self):
        leases = InMemoryLeaseManager()
        token = await leases.try_acquire("web")

        await leases.release("web", "someone-else")
        assert await leases.try_acquire("web") is None

        await leases.release("web", token)
        assert await leases.try_acquire("web") is not None

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await InMemoryLeaseManager().health_check() is True


class TestRedisLeaseManager:
    """Test the Redis lease manager with a mocked client."""

    def setup_method(self):
        self.mock_redis = AsyncMock()
        self.leases = RedisLeaseManager(self.mock_redis, key_prefix="test", ttl_ms=1000)

    @pytest.mark.asyncio
    async def test_acquire_sets_key_nx_with_ttl(self):
        self.mock_redis.set.return_value = True

        token = await self.leases.try_acquire("web")

        assert token
        self.mock_redis.set.assert_called_once_with(
            "test:lease:web", token, nx=True, px=1000
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_when_key_exists(self):
        self.mock_redis.set.return_value = None

        assert await self.leases.try_acquire("web") is None

    @pytest.mark.asyncio
    async def test_release_checks_token(self):
        await self.leases.release("web", "tok")

        args = self.mock_redis.eval.call_args[0]
        assert args[1:] == (1, "test:lease:web", "tok")
        assert "ARGV[1]" in args[0]

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        self.mock_redis.ping.side_effect = Exception("Connection failed")

        assert await self.leases.health_check() is False


class TestOperationCoordinator:
    """Test lease scoping of operations."""

    @pytest.mark.asyncio
    async def test_lease_is_released_after_block(self):
        leases = InMemoryLeaseManager()
        coordinator = OperationCoordinator(leases)

        async with coordinator.lease("web"):
            assert await leases.try_acquire("web") is None

        assert await leases.try_acquire("web") is not None

    @pytest.mark.asyncio
    async def test_lease_is_released_on_error(self):
        leases = InMemoryLeaseManager()
        coordinator = OperationCoordinator(leases)

        with pytest.raises(RuntimeError):
            async with coordinator.lease("web"):
                raise RuntimeError("boom")

        assert await leases.try_acquire("web") is not None

    @pytest.mark.asyncio
    async def test_second_holder_is_busy(self):
        coordinator = OperationCoordinator(InMemoryLeaseManager())

        async with coordinator.lease("web"):
            with pytest.raises(ReleaseBusyError):
                async with coordinator.lease("web"):
                    pass

            # Other names are independent
            async with coordinator.lease("api"):
                pass

    @pytest.mark.asyncio
    async def test_concurrent_holders(self):
        """Of many concurrent acquirers exactly one gets the lease."""
        coordinator = OperationCoordinator(InMemoryLeaseManager())

        async def hold() -> str:
            async with coordinator.lease("web"):
                await asyncio.sleep(0.05)
            return "ok"

        results = await asyncio.gather(*(hold() for _ in range(5)), return_exceptions=True)

        assert results.count("ok") == 1
        assert sum(isinstance(r, ReleaseBusyError) for r in results) == 4


class TestLeaseManagerFactory:
    def test_memory_backend(self):
        leases = get_lease_manager(CoordinatorConfig(backend="memory"), "redis://x", "p")

        assert isinstance(leases, InMemoryLeaseManager)

    def test_redis_backend(self):
        config = CoordinatorConfig(backend="redis", lease_ttl_ms=5000)

        with patch("redis.asyncio.Redis.from_url", return_value=MagicMock()) as from_url:
            leases = get_lease_manager(config, "redis://cache:6379/0", "rlsd")

        assert isinstance(leases, RedisLeaseManager)
        from_url.assert_called_once_with("redis://cache:6379/0")
