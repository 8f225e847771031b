# =============================================================================
# API Dependencies — Component Assembly for Request Handlers
# =============================================================================
#
# Every collaborator a route needs is built here, once per process, and
# injected with Depends(). The pipeline classes never read settings; this
# module is where configuration meets code.
#
#   get_content_store ─┐
#   get_embedder ──────┼──▶ get_retriever ──┐
#                      │                    ├──▶ get_composer
#   get_llm ───────────┘────────────────────┘
#
# Tests replace any of these through app.dependency_overrides, e.g.:
#   app.dependency_overrides[get_composer] = lambda: fake_composer
# =============================================================================

from __future__ import annotations

import logging
from functools import lru_cache

from berkshire_rag.config import settings
from berkshire_rag.pipeline.composer import AnswerComposer
from berkshire_rag.pipeline.retriever import Retriever
from berkshire_rag.services.embedder import OpenAIEmbedder, build_embedder
from berkshire_rag.services.llm import LLMProvider, build_llm_provider
from berkshire_rag.services.store import PgContentStore, build_content_store

logger = logging.getLogger(__name__)


@lru_cache
def get_content_store() -> PgContentStore:
    return build_content_store(settings)


@lru_cache
def get_embedder() -> OpenAIEmbedder | None:
    return build_embedder(settings)


@lru_cache
def get_llm() -> LLMProvider | None:
    """Completion client, or None when no credential is configured."""
    return build_llm_provider(settings)


@lru_cache
def get_retriever() -> Retriever:
    return Retriever(
        store=get_content_store(),
        embedder=get_embedder(),
        limit=settings.retrieval_limit,
    )


@lru_cache
def get_composer() -> AnswerComposer:
    composer = AnswerComposer(
        retriever=get_retriever(),
        llm=get_llm(),
        limit=settings.retrieval_limit,
    )
    logger.info(
        "Answer composer ready (model %s)",
        "enabled" if composer.model_enabled else "disabled, degraded mode",
    )
    return composer
