"""Async engine and session dependency for the swap store."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from skillswap.config import settings


def _engine_options(url: str) -> dict:
    # asyncpg in production; aiosqlite is accepted for local runs
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": 30}}
    return {"pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    **_engine_options(settings.DATABASE_URL),
)

# expire_on_commit=False: handlers build responses from swaps after the store commits
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db():
    """One session per request; committed on success, rolled back on any error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
