# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA:
#
# ┌──────────────────────────────────────────┐
# │  document_chunks                         │
# ├──────────────────────────────────────────┤
# │ id (PK, serial)      — insertion order   │
# │ content (text)       — never blank       │
# │ embedding (vector)   — NULL or full-width│
# │ source (varchar)     — document filename │
# │ chunk_index (int)    — window index      │
# │ token_count (int)    — cl100k_base count │
# │ created_at                               │
# └──────────────────────────────────────────┘
#
# Rows are append-only: created once during ingestion, never updated.
# Re-ingesting the same letters appends new rows (no deduplication key).
# =============================================================================

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from berkshire_rag.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class DocumentChunk(Base):
    """
    A window of text from one shareholder letter, with an optional
    embedding for nearest-neighbour search.

    When no embedding credential is configured during ingestion the
    `embedding` column stays NULL and the row is only reachable through
    the lexical tier.
    """

    __tablename__ = "document_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    # ---------------------------------------------------------------------------
    # Vector Embedding
    # ---------------------------------------------------------------------------
    # Fixed width for the whole table. Stored as a PostgreSQL
    # `vector(EMBEDDING_DIMENSIONS)` column via the pgvector integration.
    # ---------------------------------------------------------------------------
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=True,
    )

    # Name of the PDF this chunk came from (e.g., "2023ltr.pdf")
    source: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # 0-indexed window position within its document
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<DocumentChunk(id={self.id}, source='{self.source}', "
            f"index={self.chunk_index}, tokens={self.token_count})>"
        )


# B-tree index for per-letter lookups
chunk_source_idx = Index(
    "idx_document_chunks_source",
    DocumentChunk.source,
)
