"""
Test infrastructure for the CMS article API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres instance is needed.
- StaticPool makes every session share the one in-memory connection;
  SQLite in-memory databases are connection-scoped.
- The app's get_db dependency is overridden with the test session factory.
- Tables are created before each test and dropped after it.
- Redis is disabled by setting cache._redis = None; CacheManager treats
  that as a permanent miss, so every read exercises the database path.
"""
from dataclasses import dataclass

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from cms.cache import cache
from cms.database import Base, commit_session, get_db, rollback_session
from cms.main import app
from cms.middleware import install_query_counter
from cms.models import Admin, Category

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await rollback_session(session)
            raise


app.dependency_overrides[get_db] = override_get_db


@dataclass
class Refs:
    admin_id: int
    other_admin_id: int
    category_id: int
    other_category_id: int


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for service-level tests and direct ORM asserts."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def refs() -> Refs:
    """Two committed admins and two committed categories."""
    async with async_session_test() as session:
        admins = [
            Admin(username="editor", nickname="Editor", email="editor@example.com"),
            Admin(username="writer", nickname="Writer"),
        ]
        categories = [
            Category(name="News", sort_order=2),
            Category(name="Guides", description="How-to articles", sort_order=1),
        ]
        session.add_all(admins + categories)
        await session.commit()
        return Refs(
            admin_id=admins[0].id,
            other_admin_id=admins[1].id,
            category_id=categories[0].id,
            other_category_id=categories[1].id,
        )


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """An httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
