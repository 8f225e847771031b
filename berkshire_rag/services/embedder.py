# =============================================================================
# Embedding Service — OpenAI-Compatible Embeddings
# =============================================================================
#
# Turns text into fixed-width vectors for the vector tier. Used twice:
#   - ingestion: one embed() call per chunk (fanned out over a bounded
#     thread pool by the Ingestor)
#   - retrieval: one embed() call for the query itself, which is the
#     reference point for nearest-neighbour search
#
# Any OpenAI-compatible endpoint works; set EMBEDDING_BASE_URL to point
# elsewhere. The OpenAI client is thread-safe and keeps its own HTTP
# connection pool, so one instance is shared by all worker threads.
#
# Errors are translated into the project taxonomy:
#   openai.APITimeoutError → ModelTimeoutError
#   openai.APIError        → ModelError
# No retries here; the SDK's own retries are disabled (max_retries=0).
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import openai
from openai import OpenAI

from berkshire_rag.config import Settings
from berkshire_rag.errors import ModelError, ModelTimeoutError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class Embedder(Protocol):
    """Anything that maps text to a fixed-dimension vector."""

    @property
    def dimensions(self) -> int:
        ...

    def embed(self, text: str) -> list[float]:
        """
        Raises:
            ModelError: On quota, network or malformed-response failures.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation
# ---------------------------------------------------------------------------


class OpenAIEmbedder:
    """Embeddings via the OpenAI SDK (sync)."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {
            "api_key": api_key,
            "timeout": timeout,
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model
        self._dimensions = dimensions

        logger.info(
            "Initialized embedding client (model=%s, dimensions=%d, base_url=%s)",
            model, dimensions, base_url or "https://api.openai.com/v1",
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed several texts in one request.

        Returns embeddings in the SAME ORDER as the input texts.
        """
        if not texts:
            return []

        try:
            response = self._client.embeddings.create(
                model=self._model,
                input=list(texts),
                dimensions=self._dimensions,
            )
        except openai.APITimeoutError as exc:
            raise ModelTimeoutError(f"Embedding request timed out: {exc}") from exc
        except openai.APIError as exc:
            raise ModelError(f"Embedding request failed: {exc}") from exc

        # Items carry their input index; sort so output order matches input.
        embeddings = [item.embedding for item in sorted(response.data, key=lambda x: x.index)]

        if len(embeddings) != len(texts):
            raise ModelError(
                f"Embedding response has {len(embeddings)} vectors "
                f"for {len(texts)} inputs"
            )
        for vector in embeddings:
            if len(vector) != self._dimensions:
                raise ModelError(
                    f"Embedding has {len(vector)} dimensions, "
                    f"expected {self._dimensions}"
                )

        logger.debug(
            "Embedded %d texts, %d prompt tokens",
            len(texts),
            response.usage.prompt_tokens if response.usage else 0,
        )
        return embeddings


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def build_embedder(config: Settings) -> OpenAIEmbedder | None:
    """
    Return an embedder, or None when no embedding credential is configured.

    None is a supported mode: ingestion stores chunks without embeddings
    and retrieval never reaches a usable vector tier.
    """
    if not config.embeddings_enabled:
        logger.info("No embedding credential configured; embeddings disabled")
        return None

    return OpenAIEmbedder(
        api_key=config.embedding_api_key,
        model=config.embedding_model,
        dimensions=config.embedding_dimensions,
        base_url=config.embedding_base_url,
        timeout=config.llm_timeout_seconds,
    )
