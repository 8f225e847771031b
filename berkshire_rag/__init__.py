# =============================================================================
# Berkshire Letters RAG Assistant
# =============================================================================
# Question answering over Berkshire Hathaway shareholder letters. Letters
# are chunked into overlapping character windows and stored in Postgres
# (pgvector); questions are answered from a lexical-then-vector lookup,
# optionally synthesized by an LLM.
#
# Package structure:
#   berkshire_rag/
#   ├── api/          → FastAPI routers (/retrieve, /ask, /ingest)
#   ├── db/           → Database engines, sessions and the chunk table
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── pipeline/     → Ingestor, Retriever, Answer Composer
#   ├── services/     → Parsing, chunking, embeddings, LLM clients, store
#   └── workers/      → Celery app and the ingestion task
# =============================================================================
