"""
Shared fixtures.

``store`` is the scenario used throughout the engine tests:

    org1
      org1-root            (no policies)
        eng                (P2: Deny docs:delete, when enabled)
          eng-backend
        sales
    u1 -> eng, u2 -> nothing, u3 -> eng-backend + sales
    org1 has P1 (Allow docs:* on *) attached at organization level
"""
from typing import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from policygate.core.dependencies import get_effective_set_cache
from policygate.domain.schemas import AttachmentTarget
from policygate.infrastructure.database import models  # noqa: F401 - registers tables
from policygate.infrastructure.database.base import Base, get_db
from policygate.main import app
from policygate.repositories.store import SQLAlchemyPolicyStore
from policygate.services.authorization import AuthorizationService, MemoryEffectiveSetCache
from tests.fixtures.database import seed_database
from tests.fixtures.store import InMemoryPolicyStore, allow, deny


@pytest.fixture
def store() -> InMemoryPolicyStore:
    """Organization with a three level team tree and one org-wide policy."""
    store = InMemoryPolicyStore()
    store.add_organization("org1")
    store.add_team("org1-root", "org1")
    store.add_team("eng", "org1", parent_id="org1-root")
    store.add_team("eng-backend", "org1", parent_id="eng")
    store.add_team("sales", "org1", parent_id="org1-root")

    store.add_user("u1", "org1", teams=["eng"])
    store.add_user("u2", "org1")
    store.add_user("u3", "org1", teams=["eng-backend", "sales"])

    store.add_policy("P1", "org1", [allow("docs:*")])
    store.attach(AttachmentTarget.organization("org1"), "P1")
    store.add_policy("P2", "org1", [deny("docs:delete")])

    store.add_organization("org2")
    store.add_user("v1", "org2")
    store.add_policy("Q1", "org2", [allow("*")])
    store.attach(AttachmentTarget.organization("org2"), "Q1")

    store.reference_actions = ["docs:read", "docs:write", "docs:delete", "billing:read"]
    return store


@pytest.fixture
def service(store: InMemoryPolicyStore) -> AuthorizationService:
    """Service without a cache."""
    return AuthorizationService(store)


@pytest.fixture
def memory_cache() -> MemoryEffectiveSetCache:
    return MemoryEffectiveSetCache(ttl_seconds=60, max_entries=100)


@pytest.fixture
def cached_service(store: InMemoryPolicyStore, memory_cache: MemoryEffectiveSetCache) -> AuthorizationService:
    """Service with an in-process cache."""
    return AuthorizationService(store, memory_cache)


@pytest_asyncio.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Session on a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(db_session: AsyncSession) -> SQLAlchemyPolicyStore:
    """SQL store over the seeded SQLite database."""
    await seed_database(db_session)
    return SQLAlchemyPolicyStore(db_session)


@pytest_asyncio.fixture
async def client(sql_store: SQLAlchemyPolicyStore, db_session: AsyncSession, memory_cache: MemoryEffectiveSetCache) -> AsyncIterator[AsyncClient]:
    """HTTP client against the app, bound to the seeded database and a fresh cache."""
    async def override_get_db():
        yield db_session

    async def override_get_cache():
        return memory_cache

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_effective_set_cache] = override_get_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
