"""
Database configuration and session management
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from stockflow.config import get_settings

settings = get_settings()


def _get_async_url(url: str) -> str:
    """Convert database URL to async variant"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def create_engine_for(url: str, echo: bool = False):
    """Build an async engine for the given (sync or async style) URL"""
    async_url = _get_async_url(url)
    engine_kwargs = {
        "echo": echo,
        "future": True,
    }

    # SQLite doesn't support pool_size
    if async_url.startswith("sqlite"):
        # Wait for the writer lock instead of failing with "database is locked"
        engine_kwargs["connect_args"] = {"timeout": 30}
    else:
        engine_kwargs["pool_size"] = 20
        engine_kwargs["max_overflow"] = 10

    return create_async_engine(async_url, **engine_kwargs)


def create_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False
    )


# Create async engine
engine = create_engine_for(settings.DATABASE_URL, echo=settings.DEBUG)

# Create async session factory
AsyncSessionLocal = create_session_factory(engine)

# Base class for models
Base = declarative_base()
