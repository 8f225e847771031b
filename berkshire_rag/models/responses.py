# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# The /ask response keeps the wire name `modelUsed`; Python code uses
# `model_used`. Both names are accepted on input (populate_by_name).
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
    llm_enabled: bool
    embeddings_enabled: bool


class RetrieveResponse(BaseModel):
    """Chunk texts in retrieval order."""

    chunks: list[str] = Field(default_factory=list)


class AskResponse(BaseModel):
    """
    Response for POST /ask.

    When `modelUsed` is false the answer is a fixed message explaining that
    no language model is configured, and `context` holds the retrieved
    chunks for the caller to read directly.
    """

    answer: str
    context: list[str] = Field(default_factory=list)
    model_used: bool = Field(alias="modelUsed")

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class IngestResponse(BaseModel):
    """
    Response for POST /ingest.

    Ingestion runs in a Celery worker; poll GET /ingest/{task_id}.
    """

    task_id: str = Field(description="Celery task ID for tracking ingestion progress")
    status: str = Field(default="PENDING", description="Celery task state")
    message: str = "Ingestion queued"


class IngestStatusResponse(BaseModel):
    """Response for GET /ingest/{task_id}."""

    task_id: str
    status: str = Field(description="PENDING, STARTED, SUCCESS or FAILURE")
    message: str | None = None
    stored_count: int | None = None
    failed_documents: list[str] = Field(default_factory=list)
    error: str | None = None
