# =============================================================================
# Ingestor — Letters → Chunks → Content Store
# =============================================================================
#
# INGESTION PIPELINE:
#   1. Read pages of every document, in sorted order (page order preserved)
#   2. Join all pages, each followed by "\n", into one corpus buffer
#   3. Slide an 800/200 character window over the whole buffer (chunker.py);
#      windows cross page and document boundaries
#   4. Embed each non-blank chunk (optional, bounded thread pool)
#   5. Insert chunks one at a time, in chunk order, through one writer
#
# CONCURRENCY:
#   Embedding calls are independent per chunk and dominate latency, so
#   they run on a ThreadPoolExecutor with `max_workers` threads. The
#   calling thread is the only writer: it consumes results in submission
#   order, so insertion order always equals chunk order.
#
# FAILURE POLICY:
#   - missing source directory → result message, nothing stored
#   - DocumentReadError        → document skipped and reported, run continues
#   - StoreError / ModelError  → run aborted, error propagates
#   - cancel_event set         → stop before the next read or write,
#                                partial count
#
# Writes are not transactional across chunks: an aborted run keeps every
# chunk it already committed.
# =============================================================================

from __future__ import annotations

import logging
import threading
from bisect import bisect_right
from collections.abc import Generator
from contextlib import closing
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from berkshire_rag.errors import DocumentReadError
from berkshire_rag.services.chunker import ChunkResult, chunk_text
from berkshire_rag.services.embedder import Embedder
from berkshire_rag.services.parser import DocumentSource
from berkshire_rag.services.store import ChunkWriter, ContentStore

logger = logging.getLogger(__name__)

PAGE_DELIMITER = "\n"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class IngestionResult:
    """Summary of one ingestion run."""

    message: str
    stored_count: int = 0
    documents_processed: int = 0
    failed_documents: list[str] = field(default_factory=list)
    source_found: bool = True
    cancelled: bool = False
    embedded: bool = False

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "stored_count": self.stored_count,
            "documents_processed": self.documents_processed,
            "failed_documents": list(self.failed_documents),
            "source_found": self.source_found,
            "cancelled": self.cancelled,
            "embedded": self.embedded,
        }


@dataclass
class Corpus:
    """
    Every readable document's text in one buffer, in document order.

    `starts[i]` is the offset where `documents[i]` begins; a chunk's
    source is the document its window starts in.
    """

    text: str = ""
    documents: list[str] = field(default_factory=list)
    starts: list[int] = field(default_factory=list)

    def append(self, document: str, text: str) -> None:
        self.documents.append(document)
        self.starts.append(len(self.text))
        self.text += text

    def source_at(self, offset: int) -> str | None:
        index = bisect_right(self.starts, offset) - 1
        return self.documents[index] if index >= 0 else None


class _Cancelled(Exception):
    """Internal signal: the caller asked the run to stop."""


# ---------------------------------------------------------------------------
# Ingestor
# ---------------------------------------------------------------------------


class Ingestor:
    """
    Batch write path of the assistant.

    Args:
        source: Where documents come from.
        store: Destination for chunks.
        embedder: Embedding client, or None to store chunks without vectors.
        chunk_size: Window width in characters.
        chunk_overlap: Characters shared by consecutive windows.
        max_workers: Upper bound on concurrent embedding calls.
    """

    def __init__(
        self,
        source: DocumentSource,
        store: ContentStore,
        embedder: Embedder | None = None,
        chunk_size: int = 800,
        chunk_overlap: int = 200,
        max_workers: int = 4,
    ) -> None:
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(
                f"chunk_overlap must satisfy 0 <= overlap < chunk_size "
                f"(got overlap={chunk_overlap}, chunk_size={chunk_size})"
            )
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self._source = source
        self._store = store
        self._embedder = embedder
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._max_workers = max_workers

    def run(self, cancel_event: threading.Event | None = None) -> IngestionResult:
        """
        Ingest every document in the source.

        Args:
            cancel_event: When set, the run stops before its next write
                and returns what was stored so far.

        Returns:
            IngestionResult; `stored_count` counts committed chunks.

        Raises:
            StoreError: Store connection or write failure.
            ModelError: Embedding failure.
        """
        if not self._source.exists():
            logger.warning("Document source not found: %s", self._source.location)
            return IngestionResult(
                message=f"Directory not found at {self._source.location}",
                source_found=False,
            )

        documents = self._source.list_documents()
        result = IngestionResult(message="", embedded=self._embedder is not None)

        logger.info(
            "Starting ingestion: %d documents from %s, chunk_size=%d, "
            "overlap=%d, embeddings=%s",
            len(documents), self._source.location, self._chunk_size,
            self._chunk_overlap, "on" if self._embedder else "off",
        )

        corpus = self._read_corpus(documents, result, cancel_event)
        if not result.cancelled:
            chunks = chunk_text(
                corpus.text,
                chunk_size=self._chunk_size,
                chunk_overlap=self._chunk_overlap,
                source=self._source.location,
            )
            with self._store.writer() as writer:
                try:
                    result.stored_count = self._store_chunks(
                        writer, corpus, chunks, cancel_event,
                    )
                except _Cancelled as stop:
                    result.stored_count = stop.args[0]
                    result.cancelled = True

        result.message = _summary_message(result)
        logger.info(
            "Ingestion finished: %s (documents=%d, failed=%d, cancelled=%s)",
            result.message, result.documents_processed,
            len(result.failed_documents), result.cancelled,
        )
        return result

    # -----------------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------------

    def _read_corpus(
        self,
        documents: list[str],
        result: IngestionResult,
        cancel_event: threading.Event | None,
    ) -> Corpus:
        """Read every readable document, in order, into one corpus buffer."""
        corpus = Corpus()
        for document in documents:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "Ingestion cancelled while reading, after %d documents",
                    result.documents_processed,
                )
                result.cancelled = True
                break

            try:
                pages = self._source.read_pages(document)
            except DocumentReadError as exc:
                logger.warning("Skipping unreadable document: %s", exc)
                result.failed_documents.append(document)
                continue

            corpus.append(document, build_document_text(pages))
            result.documents_processed += 1
        return corpus

    def _store_chunks(
        self,
        writer: ChunkWriter,
        corpus: Corpus,
        chunks: list[ChunkResult],
        cancel_event: threading.Event | None,
    ) -> int:
        """Write the corpus chunks in order; returns the number stored."""
        stored = 0
        with closing(self._with_embeddings(chunks)) as pairs:
            for chunk, embedding in pairs:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Ingestion cancelled after %d chunks", stored)
                    raise _Cancelled(stored)

                writer.insert_chunk(
                    chunk.content,
                    embedding,
                    source=corpus.source_at(chunk.start),
                    chunk_index=chunk.chunk_index,
                    token_count=chunk.token_count,
                )
                stored += 1

        logger.info("Stored %d chunks from %d characters", stored, len(corpus.text))
        return stored

    def _with_embeddings(
        self, chunks: list[ChunkResult],
    ) -> Generator[tuple[ChunkResult, list[float] | None], None, None]:
        """
        Yield (chunk, embedding) pairs in chunk order.

        With an embedder, embeddings are computed concurrently and yielded
        in submission order. Leaving the generator early (cancellation or
        an error) cancels embedding calls that have not started yet.
        """
        if self._embedder is None or not chunks:
            for chunk in chunks:
                yield chunk, None
            return

        executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="embed",
        )
        try:
            futures: list[Future[list[float]]] = [
                executor.submit(self._embedder.embed, chunk.content)
                for chunk in chunks
            ]
            for chunk, future in zip(chunks, futures, strict=True):
                yield chunk, future.result()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_document_text(pages: list[str]) -> str:
    """Join page texts, each terminated by the page delimiter."""
    return "".join(page + PAGE_DELIMITER for page in pages)


def _summary_message(result: IngestionResult) -> str:
    message = f"Stored {result.stored_count} chunks"
    if not result.embedded:
        message += " (embeddings pending)"
    if result.failed_documents:
        message += f"; skipped {len(result.failed_documents)} unreadable document(s)"
    if result.cancelled:
        message += "; cancelled before completion"
    return message
