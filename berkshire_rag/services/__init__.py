# =============================================================================
# Services Package — Adapters Around External Systems
# =============================================================================
#   - parser.py: PDF letters → page texts (Docling)
#   - chunker.py: character sliding window, tiktoken token counts
#   - embedder.py: OpenAI-compatible embeddings
#   - llm.py: completion providers (OpenAI-compatible, Anthropic)
#   - store.py: Content Store protocol + pgvector implementation
# =============================================================================
