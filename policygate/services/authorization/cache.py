"""
Read-through cache of effective statement sets.

Entries are keyed by (organization_id, user_id) and stamped with a
generation token made of one counter per organization and one per user.
Invalidation bumps a counter instead of hunting for entries, which makes
every entry written under the old generation unreachable. A reader takes
the token before aggregating and writes under that token, so an
invalidation that lands mid-aggregation can never be overwritten by the
stale result.
"""
import itertools
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import redis.asyncio as redis
import structlog
from pydantic import TypeAdapter, ValidationError
from redis.exceptions import RedisError

from policygate.core.config import Settings
from policygate.core.exceptions import CacheUnavailableError
from policygate.domain.schemas import EffectiveStatement

logger = structlog.get_logger(__name__)

GenerationToken = Tuple[int, int]

_statement_list = TypeAdapter(List[EffectiveStatement])


@dataclass(frozen=True)
class CacheLookup:
    """Outcome of a cache read. ``token`` is None when nothing may be stored."""
    token: Optional[GenerationToken]
    statements: Optional[List[EffectiveStatement]] = None

    @property
    def hit(self) -> bool:
        return self.statements is not None


class EffectiveSetCache(ABC):
    """Interface for effective set cache backends."""

    @abstractmethod
    async def lookup(self, user_id: str, organization_id: str) -> CacheLookup:
        """Read the current entry and the generation token to write under."""
        pass

    @abstractmethod
    async def put(
        self,
        user_id: str,
        organization_id: str,
        token: GenerationToken,
        statements: List[EffectiveStatement],
    ) -> None:
        """Store a set computed after ``lookup`` returned ``token``."""
        pass

    @abstractmethod
    async def invalidate_user(self, user_id: str) -> None:
        """Drop every entry of a user, in all organizations."""
        pass

    @abstractmethod
    async def invalidate_organization(self, organization_id: str) -> None:
        """Drop every entry of an organization."""
        pass


class NullEffectiveSetCache(EffectiveSetCache):
    """Cache that never stores anything."""

    async def lookup(self, user_id: str, organization_id: str) -> CacheLookup:
        return CacheLookup(token=None)

    async def put(self, user_id, organization_id, token, statements) -> None:
        return None

    async def invalidate_user(self, user_id: str) -> None:
        return None

    async def invalidate_organization(self, organization_id: str) -> None:
        return None


@dataclass
class _MemoryEntry:
    token: GenerationToken
    expires_at: float
    statements: List[EffectiveStatement]


class _GenerationTable:
    """
    Bounded map of id -> generation.

    Ids without a recorded generation read ``floor``. Dropping the oldest
    id raises ``floor`` to that id's generation, so a token taken before
    the drop can never match again.
    """

    def __init__(self, limit: int):
        self.limit = limit
        self.floor = 0
        self._values: "OrderedDict[str, int]" = OrderedDict()

    def get(self, key: str) -> int:
        return self._values.get(key, self.floor)

    def set(self, key: str, generation: int) -> None:
        self._values[key] = generation
        self._values.move_to_end(key)
        while len(self._values) > self.limit:
            _, dropped = self._values.popitem(last=False)
            self.floor = max(self.floor, dropped)

    def __len__(self) -> int:
        return len(self._values)


class MemoryEffectiveSetCache(EffectiveSetCache):
    """Process-local LRU cache with a TTL, safe to share between threads."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[Tuple[str, str], _MemoryEntry]" = OrderedDict()
        # One counter feeds both tables so generations never repeat
        self._generation = itertools.count(1)
        self._user_generations = _GenerationTable(max_entries)
        self._org_generations = _GenerationTable(max_entries)

    def _token(self, user_id: str, organization_id: str) -> GenerationToken:
        return (
            self._org_generations.get(organization_id),
            self._user_generations.get(user_id),
        )

    async def lookup(self, user_id: str, organization_id: str) -> CacheLookup:
        key = (organization_id, user_id)
        with self._lock:
            token = self._token(user_id, organization_id)
            entry = self._entries.get(key)
            if entry is None:
                return CacheLookup(token=token)
            if entry.token != token or entry.expires_at <= self._clock():
                del self._entries[key]
                return CacheLookup(token=token)
            self._entries.move_to_end(key)
            return CacheLookup(token=token, statements=list(entry.statements))

    async def put(
        self,
        user_id: str,
        organization_id: str,
        token: GenerationToken,
        statements: List[EffectiveStatement],
    ) -> None:
        key = (organization_id, user_id)
        with self._lock:
            if token != self._token(user_id, organization_id):
                logger.debug(
                    "effective_set_cache_stale_put",
                    user_id=user_id,
                    organization_id=organization_id,
                )
                return
            self._entries[key] = _MemoryEntry(
                token=token,
                expires_at=self._clock() + self.ttl_seconds,
                statements=list(statements),
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    async def invalidate_user(self, user_id: str) -> None:
        with self._lock:
            self._user_generations.set(user_id, next(self._generation))

    async def invalidate_organization(self, organization_id: str) -> None:
        with self._lock:
            self._org_generations.set(organization_id, next(self._generation))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisEffectiveSetCache(EffectiveSetCache):
    """
    Redis backed cache shared by every worker.

    Generation counters are plain INCR keys without expiry; entries are
    JSON documents written with SETEX under a key that embeds the token.
    """

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "policygate",
        ttl_seconds: int = 300,
    ):
        self.client = client
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def _user_generation_key(self, user_id: str) -> str:
        return f"{self.prefix}:gen:user:{user_id}"

    def _org_generation_key(self, organization_id: str) -> str:
        return f"{self.prefix}:gen:org:{organization_id}"

    def _entry_key(self, user_id: str, organization_id: str, token: GenerationToken) -> str:
        org_generation, user_generation = token
        return (
            f"{self.prefix}:effective:{organization_id}:{org_generation}"
            f":{user_id}:{user_generation}"
        )

    async def lookup(self, user_id: str, organization_id: str) -> CacheLookup:
        try:
            org_generation, user_generation = await self.client.mget(
                self._org_generation_key(organization_id),
                self._user_generation_key(user_id),
            )
            token = (int(org_generation or 0), int(user_generation or 0))
        except (RedisError, ValueError) as e:
            # A counter that is not an integer makes every token unsafe to write under
            logger.warning("effective_set_cache_read_error", error=str(e))
            return CacheLookup(token=None)

        try:
            raw = await self.client.get(self._entry_key(user_id, organization_id, token))
            if raw is None:
                return CacheLookup(token=token)
            return CacheLookup(token=token, statements=_statement_list.validate_json(raw))
        except (RedisError, ValidationError) as e:
            logger.warning("effective_set_cache_read_error", error=str(e))
            return CacheLookup(token=token)

    async def put(
        self,
        user_id: str,
        organization_id: str,
        token: GenerationToken,
        statements: List[EffectiveStatement],
    ) -> None:
        try:
            await self.client.setex(
                self._entry_key(user_id, organization_id, token),
                self.ttl_seconds,
                _statement_list.dump_json(statements),
            )
        except RedisError as e:
            logger.warning("effective_set_cache_write_error", error=str(e))

    async def invalidate_user(self, user_id: str) -> None:
        try:
            await self.client.incr(self._user_generation_key(user_id))
        except RedisError as e:
            logger.error("effective_set_cache_invalidation_failed", user_id=user_id, error=str(e))
            raise CacheUnavailableError(f"could not invalidate user {user_id}") from e

    async def invalidate_organization(self, organization_id: str) -> None:
        try:
            await self.client.incr(self._org_generation_key(organization_id))
        except RedisError as e:
            logger.error(
                "effective_set_cache_invalidation_failed",
                organization_id=organization_id,
                error=str(e),
            )
            raise CacheUnavailableError(
                f"could not invalidate organization {organization_id}"
            ) from e


def build_cache(settings: Settings, client: Optional[redis.Redis] = None) -> EffectiveSetCache:
    """
    Create the cache backend selected by AUTHZ_CACHE_BACKEND.

    Args:
        settings: Application settings
        client: Redis client, required for the redis backend

    Returns:
        Cache backend
    """
    backend = settings.AUTHZ_CACHE_BACKEND
    if backend == "none":
        return NullEffectiveSetCache()
    if backend == "redis":
        if client is None:
            raise ValueError("redis cache backend requires a client")
        return RedisEffectiveSetCache(
            client,
            prefix=settings.AUTHZ_CACHE_PREFIX,
            ttl_seconds=settings.AUTHZ_CACHE_TTL_SECONDS,
        )
    if not settings.is_development:
        logger.warning(
            "process_local_effective_set_cache",
            environment=settings.ENVIRONMENT,
            ttl_seconds=settings.AUTHZ_CACHE_TTL_SECONDS,
            hint="invalidations reach only this process; use AUTHZ_CACHE_BACKEND=redis with several workers",
        )
    return MemoryEffectiveSetCache(
        ttl_seconds=settings.AUTHZ_CACHE_TTL_SECONDS,
        max_entries=settings.AUTHZ_CACHE_MAX_ENTRIES,
    )
