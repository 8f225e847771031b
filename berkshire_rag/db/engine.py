# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Two engines point at the same PostgreSQL database:
#   - async engine (asyncpg)    → FastAPI request handlers (retrieval reads)
#   - sync engine (psycopg2)    → Celery workers / ingestion (chunk writes)
#
# Each engine owns one bounded connection pool for the whole process.
# Every operation checks out a session through a context manager so the
# connection goes back to the pool on success, on an empty result and on
# an exception alike.
#
# COMMIT POLICY:
#   - get_sync_session(): commits on clean exit, rolls back on exception.
#     Ingestion additionally commits after every chunk (append-only writes).
#   - async_session_factory(): read-only usage, nothing to commit.
# =============================================================================

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from berkshire_rag.config import settings

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - pool_size / max_overflow: hard upper bound on concurrent connections
# - pool_timeout: how long a checkout may wait for a free connection
# - pool_pre_ping: drop connections the server has closed underneath us
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=settings.db_pool_timeout_seconds,
    pool_pre_ping=True,
)

# expire_on_commit=False: loaded rows stay readable after the session closes
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Sync Engine — For Ingestion (Lazy Initialization)
# ---------------------------------------------------------------------------
# psycopg2 is only needed by the write path, so the sync engine is created
# on first use rather than at import time.
# ---------------------------------------------------------------------------

_sync_engine = None
_sync_session_factory = None


def _get_sync_engine():
    """Lazily create and cache the sync SQLAlchemy engine."""
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = create_engine(
            settings.database_url_sync,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout_seconds,
            pool_pre_ping=True,
        )
    return _sync_engine


def _get_sync_session_factory():
    """Lazily create and cache the sync session factory."""
    global _sync_session_factory
    if _sync_session_factory is None:
        _sync_session_factory = sessionmaker(
            bind=_get_sync_engine(),
            class_=Session,
            expire_on_commit=False,
        )
    return _sync_session_factory


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """
    Context manager that provides a sync database session.

    Usage:
        with get_sync_session() as session:
            session.add(DocumentChunk(content="..."))
            # Auto-commits on exit, auto-rollbacks on exception
    """
    factory = _get_sync_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def init_db() -> None:
    """
    Create the pgvector extension and all tables (development helper).

    Production deployments are expected to manage the schema themselves;
    main.py only calls this when DB_AUTO_CREATE is set.
    """
    from berkshire_rag.db.models import Base

    async with async_engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engines() -> None:
    """Close every pooled connection (application shutdown)."""
    global _sync_engine, _sync_session_factory
    await async_engine.dispose()
    if _sync_engine is not None:
        _sync_engine.dispose()
        _sync_engine = None
        _sync_session_factory = None
