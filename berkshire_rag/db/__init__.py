# =============================================================================
# Database Package
# =============================================================================
#   - engine.py: async + sync engines (bounded pools), session scopes, init_db
#   - models.py: DocumentChunk ORM model (document_chunks table)
# =============================================================================
