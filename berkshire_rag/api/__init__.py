# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - ask.py: POST /retrieve and POST /ask
#   - ingest.py: POST /ingest and GET /ingest/{task_id}
#   - deps.py: cached component providers for Depends()
# =============================================================================
