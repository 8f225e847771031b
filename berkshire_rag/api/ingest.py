# =============================================================================
# Ingestion API — Trigger and Track Corpus Ingestion
# =============================================================================
#
#   POST /ingest            → 202 {task_id}   (dispatch Celery task)
#   GET  /ingest/{task_id}  → task state + ingestion summary
#
# 202 Accepted: the request is queued, not finished. The corpus comes
# from DOCS_DIR on the worker's filesystem; nothing is uploaded.
# =============================================================================

import logging

from celery.result import AsyncResult
from fastapi import APIRouter, HTTPException

from berkshire_rag.config import settings
from berkshire_rag.models.requests import IngestRequest
from berkshire_rag.models.responses import IngestResponse, IngestStatusResponse
from berkshire_rag.workers.tasks import ingest_corpus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])


# ---------------------------------------------------------------------------
# POST /ingest
# ---------------------------------------------------------------------------


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=202,
    summary="Ingest the shareholder letters",
    description=(
        "Queues a background run that parses every PDF in DOCS_DIR, chunks "
        "and (when configured) embeds the text, and stores the chunks. "
        "The response only confirms the run was queued; the summary of "
        "chunks stored (\"Stored N chunks ...\") is the `message` of "
        "GET /ingest/{task_id} once the task succeeds."
    ),
)
async def ingest_endpoint(request: IngestRequest | None = None) -> IngestResponse:
    request = request or IngestRequest()
    chunk_size = request.chunk_size or settings.chunk_size
    chunk_overlap = (
        request.chunk_overlap
        if request.chunk_overlap is not None
        else settings.chunk_overlap
    )
    if chunk_overlap >= chunk_size:
        # One side came from the environment defaults
        raise HTTPException(
            status_code=422,
            detail=(
                f"chunk_overlap ({chunk_overlap}) must be smaller than "
                f"chunk_size ({chunk_size})"
            ),
        )

    task = ingest_corpus.delay(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    logger.info("Dispatched corpus ingestion task: task_id=%s", task.id)

    return IngestResponse(
        task_id=task.id,
        status="PENDING",
        message="Ingestion queued. Poll GET /ingest/{task_id} for the chunks-stored summary.",
    )


# ---------------------------------------------------------------------------
# GET /ingest/{task_id}
# ---------------------------------------------------------------------------


@router.get(
    "/ingest/{task_id}",
    response_model=IngestStatusResponse,
    summary="Check ingestion status",
)
async def get_ingest_status(task_id: str) -> IngestStatusResponse:
    """
    Celery task states:
    - PENDING: not yet picked up by a worker (or unknown id)
    - STARTED: worker is running the ingestion
    - SUCCESS: finished; message and counts are filled in
    - FAILURE: aborted; `error` holds the exception type only
    """
    result = AsyncResult(task_id, app=ingest_corpus.app)
    status = result.status
    response = IngestStatusResponse(task_id=task_id, status=status)

    if status == "SUCCESS":
        summary = result.result or {}
        response.message = summary.get("message")
        response.stored_count = summary.get("stored_count")
        response.failed_documents = summary.get("failed_documents", [])

    elif status == "FAILURE":
        # The exception text may carry connection strings; log it, return
        # only the type.
        logger.error("Ingestion task %s failed: %r", task_id, result.result)
        response.error = (
            type(result.result).__name__ if result.result else "Unknown error"
        )

    return response
