# =============================================================================
# Content Store — Chunk Persistence Behind a Protocol
# =============================================================================
#
# The store is the only component that talks to PostgreSQL. Callers never
# hold a raw session; they open a scope and work through it:
#
#   with store.writer() as writer:          # ingestion (sync)
#       writer.insert_chunk(content, embedding)
#
#   async with store.reader() as reader:    # retrieval (async)
#       await reader.query_lexical(query, limit)
#       await reader.query_nearest(reference_embedding, limit)
#
# Each scope checks out one pooled session and returns it on every exit
# path. Writes commit per chunk, so an aborted run leaves the chunks it
# already stored and nothing half-written.
#
# ARCHITECTURE:
#   ContentStore (Protocol)      — writer() / reader() scopes
#   ChunkWriter / ChunkReader    — operations available inside a scope
#   PgContentStore               — pgvector implementation
#     ├── PgChunkWriter          — sync session (psycopg2)
#     └── PgChunkReader          — async session (asyncpg), per-query timeout
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import (
    AbstractAsyncContextManager,
    AbstractContextManager,
    asynccontextmanager,
    contextmanager,
)
from typing import Protocol

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

from berkshire_rag.config import Settings
from berkshire_rag.db.models import DocumentChunk
from berkshire_rag.errors import StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definitions
# ---------------------------------------------------------------------------


class ChunkWriter(Protocol):
    def insert_chunk(
        self,
        content: str,
        embedding: list[float] | None = None,
        source: str | None = None,
        chunk_index: int = 0,
        token_count: int = 0,
    ) -> None:
        """
        Append one chunk.

        Raises:
            ValueError: Blank content, or an embedding of the wrong width.
            StoreError: Connection or constraint failure.
        """
        ...


class ChunkReader(Protocol):
    async def query_lexical(self, pattern: str, limit: int) -> list[str]:
        """Chunks containing `pattern` (case-insensitive), in store order."""
        ...

    async def query_nearest(
        self, reference_embedding: list[float], limit: int,
    ) -> list[str]:
        """Embedded chunks by ascending distance to the reference vector."""
        ...

    async def has_embeddings(self) -> bool:
        ...


class ContentStore(Protocol):
    def writer(self) -> AbstractContextManager[ChunkWriter]:
        ...

    def reader(self) -> AbstractAsyncContextManager[ChunkReader]:
        ...


# ---------------------------------------------------------------------------
# pgvector Implementation — Writer
# ---------------------------------------------------------------------------


class PgChunkWriter:
    """Inserts chunks through one sync session, committing each row."""

    def __init__(self, session: Session, dimensions: int) -> None:
        self._session = session
        self._dimensions = dimensions

    def insert_chunk(
        self,
        content: str,
        embedding: list[float] | None = None,
        source: str | None = None,
        chunk_index: int = 0,
        token_count: int = 0,
    ) -> None:
        if not content.strip():
            raise ValueError("Refusing to store a blank chunk")
        if embedding is not None:
            _check_dimensions(embedding, self._dimensions)

        self._session.add(DocumentChunk(
            content=content,
            embedding=embedding,
            source=source,
            chunk_index=chunk_index,
            token_count=token_count,
        ))
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StoreError(f"Failed to insert chunk: {exc}") from exc


# ---------------------------------------------------------------------------
# pgvector Implementation — Reader
# ---------------------------------------------------------------------------


class PgChunkReader:
    """
    Read queries over one async session.

    Every query is bounded by `timeout` seconds; a slow query surfaces as
    StoreTimeoutError rather than hanging the request.
    """

    def __init__(self, session: AsyncSession, dimensions: int, timeout: float) -> None:
        self._session = session
        self._dimensions = dimensions
        self._timeout = timeout

    async def query_lexical(self, pattern: str, limit: int) -> list[str]:
        stmt = (
            select(DocumentChunk.content)
            .where(
                DocumentChunk.content.ilike(
                    f"%{escape_like(pattern)}%", escape="\\",
                )
            )
            .order_by(DocumentChunk.id)
            .limit(limit)
        )
        rows = await self._scalars(stmt)
        logger.debug("Lexical query returned %d rows (limit=%d)", len(rows), limit)
        return rows

    async def query_nearest(
        self, reference_embedding: list[float], limit: int,
    ) -> list[str]:
        _check_dimensions(reference_embedding, self._dimensions)

        # L2 distance (pgvector `<->`), ascending. Rows without an
        # embedding are excluded, so an unembedded store yields [].
        stmt = (
            select(DocumentChunk.content)
            .where(DocumentChunk.embedding.is_not(None))
            .order_by(DocumentChunk.embedding.l2_distance(reference_embedding))
            .limit(limit)
        )
        rows = await self._scalars(stmt)
        logger.debug("Vector query returned %d rows (limit=%d)", len(rows), limit)
        return rows

    async def has_embeddings(self) -> bool:
        stmt = select(exists().where(DocumentChunk.embedding.is_not(None)))
        result = await self._execute(stmt)
        return bool(result.scalar())

    async def _scalars(self, stmt) -> list[str]:
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def _execute(self, stmt):
        try:
            return await asyncio.wait_for(
                self._session.execute(stmt), timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise StoreTimeoutError(
                f"Store query exceeded {self._timeout:.1f}s"
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Store query failed: {exc}") from exc


# ---------------------------------------------------------------------------
# pgvector Implementation — Store
# ---------------------------------------------------------------------------


class PgContentStore:
    """
    PostgreSQL + pgvector content store.

    Args:
        async_session_factory: Produces async sessions from the shared pool.
        sync_session_scope: Context-manager factory for sync sessions
            (e.g. db.engine.get_sync_session).
        dimensions: Width of the embedding column.
        timeout: Per-query timeout for reads, in seconds.
    """

    def __init__(
        self,
        async_session_factory: async_sessionmaker[AsyncSession],
        sync_session_scope: Callable[[], AbstractContextManager[Session]],
        dimensions: int,
        timeout: float = 10.0,
    ) -> None:
        self._async_session_factory = async_session_factory
        self._sync_session_scope = sync_session_scope
        self._dimensions = dimensions
        self._timeout = timeout

    @contextmanager
    def writer(self) -> Iterator[PgChunkWriter]:
        try:
            with self._sync_session_scope() as session:
                yield PgChunkWriter(session, self._dimensions)
        except SQLAlchemyError as exc:
            raise StoreError(f"Store session failed: {exc}") from exc

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[PgChunkReader]:
        async with self._async_session_factory() as session:
            yield PgChunkReader(session, self._dimensions, self._timeout)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def build_content_store(config: Settings) -> PgContentStore:
    """
    Content store on the process-wide engines from db/engine.py.

    The engine module is imported here, not at module level, so the
    protocols above can be used without database drivers configured.
    """
    from berkshire_rag.db.engine import async_session_factory, get_sync_session

    logger.info(
        "Using pgvector content store (dimensions=%d, timeout=%.1fs)",
        config.embedding_dimensions, config.store_timeout_seconds,
    )
    return PgContentStore(
        async_session_factory=async_session_factory,
        sync_session_scope=get_sync_session,
        dimensions=config.embedding_dimensions,
        timeout=config.store_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def escape_like(pattern: str) -> str:
    """Escape LIKE wildcards so `pattern` matches as a literal substring."""
    return (
        pattern.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def _check_dimensions(vector: list[float], dimensions: int) -> None:
    if len(vector) == 0:
        raise ValueError("Embedding must not be empty")
    if len(vector) != dimensions:
        raise ValueError(
            f"Embedding has {len(vector)} dimensions, expected {dimensions}"
        )
