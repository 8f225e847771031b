# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP surface. These are separate from
# the ORM table in berkshire_rag/db/models.py: embeddings, sources and
# chunk indexes never leave the server.
# =============================================================================
