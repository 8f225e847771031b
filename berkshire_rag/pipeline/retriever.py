# =============================================================================
# Retriever — Two-Tier Lexical → Vector Lookup
# =============================================================================
#
# Turns a free-text query into at most `limit` chunk texts. The tiers run
# as a LangGraph StateGraph so the fallback is an explicit edge rather
# than nested ifs:
#
#   START ──▶ lexical ──[hit]──▶ END
#                │
#              [miss]
#                ▼
#              vector ──▶ END
#
#   lexical: case-insensitive substring match on chunk content, store order
#   vector:  nearest neighbours to the query's own embedding (L2 distance)
#
# The vector tier runs at most once per call and only after a lexical
# miss. It returns [] without touching the model when no embedder is
# configured or the store holds no embedded chunks.
#
# One reader scope (one pooled session) serves the whole call and is
# released on every exit path, including cancellation.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from berkshire_rag.services.embedder import Embedder
from berkshire_rag.services.store import ChunkReader, ContentStore

logger = logging.getLogger(__name__)


class RetrievalTier(str, Enum):
    """Which tier produced a retrieval result."""

    LEXICAL = "lexical"
    VECTOR = "vector"


@dataclass
class RetrievalOutcome:
    chunks: list[str] = field(default_factory=list)
    tier: RetrievalTier = RetrievalTier.LEXICAL


# ---------------------------------------------------------------------------
# Graph State
# ---------------------------------------------------------------------------


class RetrievalState(TypedDict, total=False):
    # --- Input ---
    query: str
    limit: int
    # Open reader for this call. Not serialisable; the graph runs
    # without a checkpointer.
    reader: ChunkReader

    # --- Output ---
    chunks: list[str]
    tier: RetrievalTier


# ---------------------------------------------------------------------------
# Retriever
# ---------------------------------------------------------------------------


class Retriever:
    """
    Read path: query → chunk texts.

    Args:
        store: Content store to read from.
        embedder: Embeds the query for the vector tier; None disables it.
        limit: Default maximum number of chunks per call.
    """

    def __init__(
        self,
        store: ContentStore,
        embedder: Embedder | None = None,
        limit: int = 5,
    ) -> None:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self._store = store
        self._embedder = embedder
        self._limit = limit
        self._graph = self._build_graph()

    async def retrieve(self, query: str, limit: int | None = None) -> list[str]:
        """Chunk texts for `query`; [] when neither tier finds anything."""
        outcome = await self.retrieve_with_outcome(query, limit)
        return outcome.chunks

    async def retrieve_with_outcome(
        self, query: str, limit: int | None = None,
    ) -> RetrievalOutcome:
        """
        Run the tiers and report which one answered.

        Raises:
            ValueError: Empty query or non-positive limit.
            StoreError: Store unreachable or query failed.
            ModelError: Query embedding failed.
        """
        if not query:
            raise ValueError("query must not be empty")
        limit = self._limit if limit is None else limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        async with self._store.reader() as reader:
            state = await self._graph.ainvoke(
                {"query": query, "limit": limit, "reader": reader}
            )

        outcome = RetrievalOutcome(
            chunks=state.get("chunks", []),
            tier=state.get("tier", RetrievalTier.LEXICAL),
        )
        logger.info(
            "Retrieved %d chunks via %s tier (query='%s')",
            len(outcome.chunks), outcome.tier.value, query[:80],
        )
        return outcome

    # -----------------------------------------------------------------------
    # Graph Nodes
    # -----------------------------------------------------------------------

    async def _lexical_node(self, state: RetrievalState) -> dict:
        chunks = await state["reader"].query_lexical(state["query"], state["limit"])
        return {"chunks": chunks, "tier": RetrievalTier.LEXICAL}

    async def _vector_node(self, state: RetrievalState) -> dict:
        reader = state["reader"]
        update = {"chunks": [], "tier": RetrievalTier.VECTOR}

        if self._embedder is None:
            logger.debug("Lexical miss and no embedder configured")
            return update
        if not await reader.has_embeddings():
            logger.debug("Lexical miss and no embedded chunks in store")
            return update

        # The embedding client is synchronous; keep it off the event loop.
        reference = await asyncio.to_thread(self._embedder.embed, state["query"])
        update["chunks"] = await reader.query_nearest(reference, state["limit"])
        return update

    @staticmethod
    def _route_after_lexical(state: RetrievalState) -> str:
        return END if state.get("chunks") else "vector"

    def _build_graph(self):
        builder = StateGraph(RetrievalState)
        builder.add_node("lexical", self._lexical_node)
        builder.add_node("vector", self._vector_node)

        builder.add_edge(START, "lexical")
        builder.add_conditional_edges(
            "lexical", self._route_after_lexical, ["vector", END],
        )
        builder.add_edge("vector", END)
        return builder.compile()
