"""Engine and session wiring for the admission tables.

The application engine is built on first use so importing the package never
opens a connection pool; tests build their own engine with make_engine().
"""
from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from upload_admission.core.config import get_settings
from upload_admission.db.models import Base


def make_engine(url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """Async engine for url (default DATABASE_URL). In-memory SQLite shares one connection."""
    settings = get_settings()
    url = url or settings.database_url
    kwargs = {"echo": settings.debug if echo is None else echo}
    if url.startswith("sqlite") and ":memory:" in url:
        # each new connection would otherwise see an empty database
        kwargs["poolclass"] = StaticPool
    return create_async_engine(url, **kwargs)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@lru_cache
def get_engine() -> AsyncEngine:
    return make_engine()


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return make_session_factory(get_engine())


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: committed on success, rolled back if the handler raises."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create the settings, folders and files tables if missing."""
    async with (bind or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
