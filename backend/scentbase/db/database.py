"""Database engine and session factory for async SQLAlchemy."""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from scentbase.db.base import Base


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the shared async engine for the configured database."""
    return create_async_engine(database_url, echo=echo, future=True)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create tables from model metadata."""
    # Register models on the metadata before create_all
    import scentbase.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
