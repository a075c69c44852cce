from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from cms.cache import cache
from cms.config import settings
from cms.middleware import install_query_counter

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def commit_session(session: AsyncSession) -> None:
    """
    Commit *session*, then drop the detail cache entries its writes queued.

    Entries are only dropped once the new rows are visible to other
    sessions; otherwise a concurrent read could re-cache the old row.
    """
    await session.commit()
    await cache.apply_invalidations(session)


async def rollback_session(session: AsyncSession) -> None:
    cache.discard_invalidations(session)
    await session.rollback()


async def get_db():
    """Yield one session per request; commit on success, roll back on error."""
    async with async_session() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await rollback_session(session)
            raise
