# =============================================================================
# Answer Composer — Retrieve, Then (Maybe) Synthesize
# =============================================================================
#
# GRAPH TOPOLOGY:
#   START ──▶ retrieve ──[no model]──▶ degraded ──▶ END
#                 │
#              [model]
#                 ▼
#             synthesize ──▶ END
#
# Degraded mode is not an error: without a model credential the caller
# gets the retrieved chunks plus a static message that says so, with
# model_used=False.
#
# With a model, the chunks and the question go into one grounding prompt
# and a single-turn completion. Model failures propagate unchanged; they
# are never reported as degraded mode.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from berkshire_rag.pipeline.retriever import Retriever
from berkshire_rag.services.llm import LLMProvider

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = (
    "LLM is disabled. Showing retrieved context only. "
    "Add API key to enable answers."
)

GROUNDING_PROMPT = """\
You are a financial assistant answering questions about Berkshire Hathaway \
shareholder letters using only the provided context.

Context:
{context}

Question:
{question}

Answer clearly and concisely using only the context above. \
If the answer is not in the context, say so."""


@dataclass
class AnswerResult:
    answer: str
    context: list[str] = field(default_factory=list)
    model_used: bool = False


class ComposerState(TypedDict, total=False):
    question: str
    context: list[str]
    answer: str
    model_used: bool


def build_prompt(question: str, context: list[str]) -> str:
    """Grounding prompt: every context chunk, then the question verbatim."""
    return GROUNDING_PROMPT.format(
        context="\n\n".join(context),
        question=question,
    )


class AnswerComposer:
    """
    Question → grounded answer.

    Args:
        retriever: Supplies the context chunks.
        llm: Completion client, or None for degraded mode.
        limit: Number of chunks retrieved per question.
    """

    def __init__(
        self,
        retriever: Retriever,
        llm: LLMProvider | None = None,
        limit: int = 5,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self._limit = limit
        self._graph = self._build_graph()

    @property
    def model_enabled(self) -> bool:
        return self._llm is not None

    async def compose(self, question: str) -> AnswerResult:
        """
        Answer `question` from the letters.

        Raises:
            ValueError: Empty question.
            StoreError: Retrieval failed.
            ModelError: The completion (or query embedding) failed.
        """
        if not question:
            raise ValueError("question must not be empty")

        state = await self._graph.ainvoke({"question": question})
        return AnswerResult(
            answer=state["answer"],
            context=state.get("context", []),
            model_used=state.get("model_used", False),
        )

    # -----------------------------------------------------------------------
    # Graph Nodes
    # -----------------------------------------------------------------------

    async def _retrieve_node(self, state: ComposerState) -> dict:
        context = await self._retriever.retrieve(state["question"], self._limit)
        return {"context": context}

    async def _degraded_node(self, state: ComposerState) -> dict:
        logger.info("No LLM configured; returning %d context chunks only",
                    len(state.get("context", [])))
        return {"answer": DISABLED_MESSAGE, "model_used": False}

    async def _synthesize_node(self, state: ComposerState) -> dict:
        prompt = build_prompt(state["question"], state.get("context", []))
        response = await self._llm.complete(
            messages=[{"role": "user", "content": prompt}],
        )
        logger.info(
            "Answer generated: model=%s, tokens=%d/%d",
            response.model, response.input_tokens, response.output_tokens,
        )
        return {"answer": response.content or "", "model_used": True}

    def _route_after_retrieve(self, state: ComposerState) -> str:
        return "synthesize" if self._llm is not None else "degraded"

    def _build_graph(self):
        builder = StateGraph(ComposerState)
        builder.add_node("retrieve", self._retrieve_node)
        builder.add_node("degraded", self._degraded_node)
        builder.add_node("synthesize", self._synthesize_node)

        builder.add_edge(START, "retrieve")
        builder.add_conditional_edges(
            "retrieve", self._route_after_retrieve, ["degraded", "synthesize"],
        )
        builder.add_edge("degraded", END)
        builder.add_edge("synthesize", END)
        return builder.compile()
