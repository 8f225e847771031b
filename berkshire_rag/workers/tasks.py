# =============================================================================
# Celery Task Definitions — Corpus Ingestion
# =============================================================================
#
# `ingest_corpus` runs the Ingestor over every PDF in DOCS_DIR and returns
# the IngestionResult as a JSON-safe dict, which GET /ingest/{task_id}
# reads back from the result backend.
#
# Celery workers are SYNCHRONOUS: the task uses the sync engine through
# the content store's writer(), never the async engine, and never calls
# FastAPI dependencies.
#
# No automatic retries. Ingestion is append-only, so re-running a failed
# task would store the already-committed chunks a second time; a failed
# run is reported as FAILURE and re-triggered by the operator.
# =============================================================================

import logging

from berkshire_rag.config import settings
from berkshire_rag.pipeline.ingestor import Ingestor
from berkshire_rag.services.embedder import build_embedder
from berkshire_rag.services.parser import PdfDirectorySource
from berkshire_rag.services.store import build_content_store
from berkshire_rag.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="ingest_corpus")
def ingest_corpus(
    self,
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> dict:
    """
    Ingest the shareholder letters into the content store.

    Args:
        self: Celery task instance (bound task, provides self.request.id).
        chunk_size: Override CHUNK_SIZE for this run.
        chunk_overlap: Override CHUNK_OVERLAP for this run.

    Returns:
        IngestionResult.to_dict() plus chunk_size/chunk_overlap used.
    """
    task_id = self.request.id
    _chunk_size = chunk_size if chunk_size is not None else settings.chunk_size
    _chunk_overlap = (
        chunk_overlap if chunk_overlap is not None else settings.chunk_overlap
    )

    logger.info(
        "[%s] Starting corpus ingestion: docs_dir=%s, chunk_size=%d, "
        "chunk_overlap=%d",
        task_id, settings.docs_dir, _chunk_size, _chunk_overlap,
    )

    try:
        ingestor = Ingestor(
            source=PdfDirectorySource(settings.docs_dir),
            store=build_content_store(settings),
            embedder=build_embedder(settings),
            chunk_size=_chunk_size,
            chunk_overlap=_chunk_overlap,
            max_workers=settings.embedding_max_workers,
        )
        result = ingestor.run()
    except Exception:
        logger.exception("[%s] Corpus ingestion failed", task_id)
        raise

    summary = result.to_dict()
    summary["chunk_size"] = _chunk_size
    summary["chunk_overlap"] = _chunk_overlap
    logger.info("[%s] Ingestion complete: %s", task_id, result.message)
    return summary
