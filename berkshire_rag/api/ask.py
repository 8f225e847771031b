# =============================================================================
# Ask API — Retrieval and Grounded Question Answering
# =============================================================================
#
#   POST /retrieve  {query}     → {chunks}
#   POST /ask       {question}  → {answer, context, modelUsed}
#
# Handlers are thin: validate, call the pipeline, map errors.
#
# ERROR MAPPING (details are logged, never returned):
#   StoreTimeoutError / ModelTimeoutError → 504 Gateway Timeout
#   StoreError                            → 503 Service Unavailable
#   ModelError                            → 502 Bad Gateway
#
# No model credential is not an error: /ask answers 200 with
# modelUsed=false and the retrieved context.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from berkshire_rag.api.deps import get_composer, get_retriever
from berkshire_rag.errors import (
    ModelError,
    ModelTimeoutError,
    RagError,
    StoreError,
    StoreTimeoutError,
)
from berkshire_rag.models.requests import AskRequest, RetrieveRequest
from berkshire_rag.models.responses import AskResponse, RetrieveResponse
from berkshire_rag.pipeline.composer import AnswerComposer
from berkshire_rag.pipeline.retriever import Retriever

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])


# ---------------------------------------------------------------------------
# POST /retrieve
# ---------------------------------------------------------------------------


@router.post(
    "/retrieve",
    response_model=RetrieveResponse,
    summary="Look up letter passages",
    description=(
        "Returns up to RETRIEVAL_LIMIT chunks containing the query text "
        "(case-insensitive). If none match, falls back to the chunks whose "
        "embeddings are nearest to the query's embedding."
    ),
)
async def retrieve_endpoint(
    request: RetrieveRequest,
    retriever: Retriever = Depends(get_retriever),
) -> RetrieveResponse:
    logger.info("Retrieve request: query='%s'", request.query[:80])
    try:
        chunks = await retriever.retrieve(request.query)
    except RagError as exc:
        raise http_error_for(exc, "Retrieval") from exc
    return RetrieveResponse(chunks=chunks)


# ---------------------------------------------------------------------------
# POST /ask
# ---------------------------------------------------------------------------


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Ask a question about the shareholder letters",
    description=(
        "Retrieves context from the letters and, when a language model is "
        "configured, answers from that context only. Without a model the "
        "response carries the context and modelUsed=false."
    ),
)
async def ask_endpoint(
    request: AskRequest,
    composer: AnswerComposer = Depends(get_composer),
) -> AskResponse:
    logger.info("Ask request: question='%s'", request.question[:80])
    try:
        result = await composer.compose(request.question)
    except RagError as exc:
        raise http_error_for(exc, "Answer composition") from exc

    return AskResponse(
        answer=result.answer,
        context=result.context,
        model_used=result.model_used,
    )


# ---------------------------------------------------------------------------
# Error Mapping
# ---------------------------------------------------------------------------


def http_error_for(exc: RagError, operation: str) -> HTTPException:
    """
    Translate a pipeline failure into an HTTPException.

    The full error is logged here; the response detail is always generic.
    """
    logger.exception("%s failed: %s", operation, exc)

    if isinstance(exc, (StoreTimeoutError, ModelTimeoutError)):
        status_code, detail = 504, "Upstream service timed out. Please retry."
    elif isinstance(exc, StoreError):
        status_code, detail = 503, "Document store is unavailable."
    elif isinstance(exc, ModelError):
        status_code, detail = 502, "Language model service error."
    else:
        status_code, detail = 500, "Internal error."

    return HTTPException(status_code=status_code, detail=detail)
