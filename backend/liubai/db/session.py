"""Process-wide async engine and session maker; request sessions come from get_db."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from liubai.config import settings
from liubai.db.base import Base


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Check-in writes run in background tasks next to request sessions; wait for the file lock
        return {"connect_args": {"timeout": settings.sqlite_busy_timeout_seconds}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Create missing tables. Production schemas are managed by Alembic."""
    import liubai.models  # noqa: F401 - register all models on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
