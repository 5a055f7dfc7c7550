"""
Tests for the effective set cache backends and their use by the facade.
"""
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from policygate.core.config import Settings
from policygate.core.exceptions import CacheUnavailableError
from policygate.domain.schemas import AttachmentLevel, AttachmentTarget, Decision, EffectiveStatement
from policygate.services.authorization import AuthorizationService
from policygate.services.authorization.cache import (
    MemoryEffectiveSetCache,
    NullEffectiveSetCache,
    RedisEffectiveSetCache,
    build_cache,
)
from tests.fixtures.store import allow


def _statements(policy_id: str = "P1"):
    return [
        EffectiveStatement(
            statement=allow("docs:*"),
            level=AttachmentLevel.ORGANIZATION,
            entity_id="org1",
            policy_id=policy_id,
            policy_version="1",
        )
    ]


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMemoryCache:
    """Test the in-process backend."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, memory_cache):
        """Test a stored set is returned for the same key."""
        # Arrange
        lookup = await memory_cache.lookup("u1", "org1")

        # Act
        await memory_cache.put("u1", "org1", lookup.token, _statements())
        second = await memory_cache.lookup("u1", "org1")

        # Assert
        assert lookup.hit is False
        assert second.hit is True
        assert second.statements == _statements()

    @pytest.mark.asyncio
    async def test_invalidate_user(self, memory_cache):
        """Test user invalidation evicts that user only."""
        for user in ("u1", "u2"):
            lookup = await memory_cache.lookup(user, "org1")
            await memory_cache.put(user, "org1", lookup.token, _statements())

        await memory_cache.invalidate_user("u1")

        assert (await memory_cache.lookup("u1", "org1")).hit is False
        assert (await memory_cache.lookup("u2", "org1")).hit is True

    @pytest.mark.asyncio
    async def test_invalidate_organization(self, memory_cache):
        """Test organization invalidation evicts every user of it."""
        for user, org in (("u1", "org1"), ("u2", "org1"), ("v1", "org2")):
            lookup = await memory_cache.lookup(user, org)
            await memory_cache.put(user, org, lookup.token, _statements())

        await memory_cache.invalidate_organization("org1")

        assert (await memory_cache.lookup("u1", "org1")).hit is False
        assert (await memory_cache.lookup("u2", "org1")).hit is False
        assert (await memory_cache.lookup("v1", "org2")).hit is True

    @pytest.mark.asyncio
    async def test_put_after_invalidation_is_dropped(self, memory_cache):
        """Test a set computed before an invalidation is never served."""
        lookup = await memory_cache.lookup("u1", "org1")

        # A write lands while the set is being aggregated
        await memory_cache.invalidate_user("u1")
        await memory_cache.put("u1", "org1", lookup.token, _statements("STALE"))

        assert (await memory_cache.lookup("u1", "org1")).hit is False
        assert len(memory_cache) == 0

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        """Test entries expire."""
        clock = FakeClock()
        cache = MemoryEffectiveSetCache(ttl_seconds=10, clock=clock)
        lookup = await cache.lookup("u1", "org1")
        await cache.put("u1", "org1", lookup.token, _statements())

        clock.now += 11

        assert (await cache.lookup("u1", "org1")).hit is False

    @pytest.mark.asyncio
    async def test_max_entries(self):
        """Test least recently used entries are evicted first."""
        cache = MemoryEffectiveSetCache(max_entries=2)
        for user in ("a", "b"):
            lookup = await cache.lookup(user, "org1")
            await cache.put(user, "org1", lookup.token, _statements())
        await cache.lookup("a", "org1")

        lookup = await cache.lookup("c", "org1")
        await cache.put("c", "org1", lookup.token, _statements())

        assert len(cache) == 2
        assert (await cache.lookup("b", "org1")).hit is False
        assert (await cache.lookup("a", "org1")).hit is True

    @pytest.mark.asyncio
    async def test_returns_a_copy(self, memory_cache):
        """Test callers cannot change a stored set through a hit."""
        lookup = await memory_cache.lookup("u1", "org1")
        await memory_cache.put("u1", "org1", lookup.token, _statements())

        (await memory_cache.lookup("u1", "org1")).statements.clear()

        assert (await memory_cache.lookup("u1", "org1")).statements == _statements()

    @pytest.mark.asyncio
    async def test_generation_bookkeeping_is_bounded(self):
        """Test invalidating many ids keeps at most max_entries counters."""
        cache = MemoryEffectiveSetCache(max_entries=2)
        stale = await cache.lookup("a", "org1")

        for user in ("a", "b", "c", "d"):
            await cache.invalidate_user(user)
        await cache.put("a", "org1", stale.token, _statements("STALE"))

        assert len(cache._user_generations) == 2
        assert len(cache) == 0
        assert (await cache.lookup("a", "org1")).hit is False

    @pytest.mark.asyncio
    async def test_entries_survive_counter_eviction(self):
        """Test a set stored after invalidation is still served once its counter is dropped."""
        cache = MemoryEffectiveSetCache(max_entries=3)
        await cache.invalidate_user("a")
        lookup = await cache.lookup("a", "org1")
        await cache.put("a", "org1", lookup.token, _statements())

        for user in ("b", "c", "d"):
            await cache.invalidate_user(user)

        # Floor moved to a's generation, so a's token is unchanged
        assert (await cache.lookup("a", "org1")).hit is True


class TestNullCache:
    """Test the disabled backend."""

    @pytest.mark.asyncio
    async def test_never_stores(self):
        cache = NullEffectiveSetCache()

        lookup = await cache.lookup("u1", "org1")
        await cache.invalidate_user("u1")
        await cache.invalidate_organization("org1")

        assert lookup.hit is False
        assert lookup.token is None


class TestRedisCache:
    """Test the redis backend against a mocked client."""

    @pytest.fixture
    def client(self):
        client = AsyncMock()
        client.mget.return_value = ["3", None]
        client.get.return_value = None
        return client

    @pytest.mark.asyncio
    async def test_lookup_uses_generation_key(self, client):
        """Test the entry key embeds both generations."""
        cache = RedisEffectiveSetCache(client, prefix="pg", ttl_seconds=30)

        lookup = await cache.lookup("u1", "org1")

        assert lookup.token == (3, 0)
        client.mget.assert_awaited_once_with("pg:gen:org:org1", "pg:gen:user:u1")
        client.get.assert_awaited_once_with("pg:effective:org1:3:u1:0")

    @pytest.mark.asyncio
    async def test_put_and_decode(self, client):
        """Test a stored document decodes back to statements."""
        cache = RedisEffectiveSetCache(client, prefix="pg", ttl_seconds=30)

        await cache.put("u1", "org1", (3, 0), _statements())
        key, ttl, payload = client.setex.await_args.args
        client.get.return_value = payload
        lookup = await cache.lookup("u1", "org1")

        assert key == "pg:effective:org1:3:u1:0"
        assert ttl == 30
        assert lookup.statements == _statements()

    @pytest.mark.asyncio
    async def test_invalidation_increments_generation(self, client):
        """Test invalidation is an INCR on the generation counter."""
        cache = RedisEffectiveSetCache(client, prefix="pg")

        await cache.invalidate_user("u1")
        await cache.invalidate_organization("org1")

        assert [c.args for c in client.incr.await_args_list] == [
            ("pg:gen:user:u1",),
            ("pg:gen:org:org1",),
        ]

    @pytest.mark.asyncio
    async def test_read_error_is_a_miss(self, client):
        """Test redis outages degrade to uncached reads."""
        client.mget.side_effect = RedisConnectionError("down")
        cache = RedisEffectiveSetCache(client)

        lookup = await cache.lookup("u1", "org1")

        assert lookup.hit is False
        assert lookup.token is None

    @pytest.mark.asyncio
    async def test_non_integer_generation_is_a_miss(self, client):
        """Test a garbled generation counter degrades to an uncached read."""
        client.mget.return_value = ["not-a-number", None]
        cache = RedisEffectiveSetCache(client)

        lookup = await cache.lookup("u1", "org1")

        assert lookup.hit is False
        assert lookup.token is None
        client.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, client):
        """Test undecodable documents are ignored."""
        client.get.return_value = "not json"
        cache = RedisEffectiveSetCache(client)

        lookup = await cache.lookup("u1", "org1")

        assert lookup.hit is False
        assert lookup.token == (3, 0)

    @pytest.mark.asyncio
    async def test_invalidation_error_raises(self, client):
        """Test a failed invalidation is reported to the writer."""
        client.incr.side_effect = RedisConnectionError("down")
        cache = RedisEffectiveSetCache(client)

        with pytest.raises(CacheUnavailableError):
            await cache.invalidate_user("u1")


class TestBuildCache:
    """Test backend selection from settings."""

    def test_backends(self):
        assert isinstance(build_cache(Settings(AUTHZ_CACHE_BACKEND="none")), NullEffectiveSetCache)
        assert isinstance(build_cache(Settings(AUTHZ_CACHE_BACKEND="memory")), MemoryEffectiveSetCache)
        assert isinstance(
            build_cache(Settings(AUTHZ_CACHE_BACKEND="redis"), AsyncMock()),
            RedisEffectiveSetCache,
        )

    def test_redis_requires_client(self):
        with pytest.raises(ValueError):
            build_cache(Settings(AUTHZ_CACHE_BACKEND="redis"))

    def test_memory_backend_warns_outside_development(self):
        """Test a process-local cache is flagged where several workers may run."""
        with patch("policygate.services.authorization.cache.logger") as logger:
            build_cache(Settings(AUTHZ_CACHE_BACKEND="memory", ENVIRONMENT="production"))
            build_cache(Settings(AUTHZ_CACHE_BACKEND="redis", ENVIRONMENT="production"), AsyncMock())

        logger.warning.assert_called_once()
        assert logger.warning.call_args.args[0] == "process_local_effective_set_cache"

    def test_memory_backend_quiet_in_development(self):
        with patch("policygate.services.authorization.cache.logger") as logger:
            build_cache(Settings(AUTHZ_CACHE_BACKEND="memory", ENVIRONMENT="development"))

        logger.warning.assert_not_called()


class TestCachedService:
    """Test the facade's use of the cache."""

    @pytest.mark.asyncio
    async def test_empty_cache_is_used(self, store):
        """Test a fresh, empty cache is kept and filled by the first request."""
        cache = MemoryEffectiveSetCache()
        service = AuthorizationService(store, cache)

        await service.authorize("u1", "org1", "docs:read", "f")
        reads = sum(store.calls.values())
        await AuthorizationService(store, cache).authorize("u1", "org1", "docs:read", "f")

        assert service.cache is cache
        assert len(cache) == 1
        assert sum(store.calls.values()) == reads

    @pytest.mark.asyncio
    async def test_mutating_result_does_not_change_cached_set(self, cached_service):
        """Test effective_statements hands out a copy of the cached set."""
        await cached_service.effective_statements("u1", "org1")

        (await cached_service.effective_statements("u1", "org1")).clear()

        assert await cached_service.authorize("u1", "org1", "docs:read", "f") is Decision.ALLOW

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, store, cached_service):
        """Test repeated checks do not hit the store."""
        await cached_service.authorize("u1", "org1", "docs:read", "f")
        reads = sum(store.calls.values())

        await cached_service.authorize("u1", "org1", "docs:delete", "f")
        await cached_service.list_granted_actions("u1", "org1", "f", ["docs:read"])

        assert sum(store.calls.values()) == reads

    @pytest.mark.asyncio
    async def test_invalidate_exposes_new_deny(self, store, cached_service):
        """Test a deny introduced by a write is visible right after invalidation."""
        assert await cached_service.authorize("u1", "org1", "docs:delete", "f") is Decision.ALLOW

        store.attach(AttachmentTarget.team("eng"), "P2")
        await cached_service.invalidate("u1")

        assert await cached_service.authorize("u1", "org1", "docs:delete", "f") is Decision.DENY

    @pytest.mark.asyncio
    async def test_invalidate_organization(self, store, cached_service):
        """Test organization-wide invalidation reaches every cached user."""
        await cached_service.authorize("u1", "org1", "docs:delete", "f")
        await cached_service.authorize("u3", "org1", "docs:delete", "f")

        store.attach(AttachmentTarget.team("eng"), "P2")
        await cached_service.invalidate_organization("org1")

        assert await cached_service.authorize("u1", "org1", "docs:delete", "f") is Decision.DENY
        assert await cached_service.authorize("u3", "org1", "docs:delete", "f") is Decision.DENY

    @pytest.mark.asyncio
    async def test_errors_are_not_cached(self, store, cached_service):
        """Test a failed aggregation leaves nothing behind."""
        store.unavailable = True
        result = await cached_service.check("u1", "org1", "docs:read", "f")
        store.unavailable = False

        assert result.allowed is False
        assert await cached_service.authorize("u1", "org1", "docs:read", "f") is Decision.ALLOW
