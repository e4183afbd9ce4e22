from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from school_ledger.core.config import settings

T = TypeVar("T")

# Create base class for models (can be defined before engine)
Base = declarative_base()

# Process-wide engine and session factory, created once by init_engine()
# (called from the app lifespan) and disposed by close_db()
_engine: Optional[AsyncEngine] = None
_async_session_local: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """Get properly formatted database URL"""
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://")
    return db_url


def create_engine_for_url(db_url: str) -> AsyncEngine:
    """
    Build the async engine for a URL.

    Connection pooling strategy:
    - SQLite: NullPool, each session opens its own connection to the file so
      concurrent writers serialize on the file lock (busy timeout applies)
    - PostgreSQL: QueuePool sized from DB_POOL_SIZE / DB_MAX_OVERFLOW
    """
    if "sqlite" in db_url:
        return create_async_engine(
            db_url,
            echo=settings.DB_ECHO,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT,
            },
            poolclass=NullPool,
        )

    return create_async_engine(
        db_url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,  # Verify connections before use
    )


def init_engine(db_url: Optional[str] = None) -> AsyncEngine:
    """Open the process-wide engine and session factory (idempotent)"""
    global _engine, _async_session_local
    if _engine is None:
        _engine = create_engine_for_url(db_url or get_database_url())
        _async_session_local = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _engine


def get_engine() -> AsyncEngine:
    """Get the database engine, opening it on first use"""
    return init_engine()


def get_session_local() -> async_sessionmaker[AsyncSession]:
    """Get the session factory"""
    init_engine()
    return _async_session_local


# Dependency to get DB session
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session - only commits if there are pending changes"""
    session_factory = get_session_local()
    async with session_factory() as session:
        try:
            yield session
            # Only commit if there are pending changes (new, dirty, or deleted objects)
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """
    Execute ``work`` atomically on ``db``.

    The session autobegins on its first statement; ``work`` runs every read
    and write of the operation on that one transaction, which is committed
    when it returns and rolled back if it raises. Errors propagate unchanged.
    """
    try:
        result = await work(db)
        await db.commit()
        return result
    except Exception:
        await db.rollback()
        raise


# Database initialization
async def init_db():
    """Create all tables"""
    import school_ledger.models  # noqa: F401  register models on the metadata

    eng = get_engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connection"""
    global _engine, _async_session_local
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_local = None
