# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# FastAPI validates request bodies against these models; an empty query
# or question is rejected with 422 before any store or model call.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetrieveRequest(BaseModel):
    """Request body for POST /retrieve."""

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Text to look up in the letters",
        examples=["moat"],
    )


class AskRequest(BaseModel):
    """
    Request body for POST /ask.

    Example:
        {"question": "What does Buffett say about float?"}
    """

    question: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Question about the Berkshire Hathaway shareholder letters",
        examples=["What is moat investing?"],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"question": "What is moat investing?"},
                {"question": "How does Berkshire think about insurance float?"},
            ]
        }
    )


class IngestRequest(BaseModel):
    """
    Request body for POST /ingest.

    Both fields are optional; omitted values fall back to CHUNK_SIZE and
    CHUNK_OVERLAP from the environment. When both are given, the overlap
    must be smaller than the window; a partial override is checked against
    the configured default by the route.
    """

    chunk_size: int | None = Field(
        default=None,
        gt=0,
        le=8000,
        description="Window width in characters",
    )
    chunk_overlap: int | None = Field(
        default=None,
        ge=0,
        description="Characters shared by consecutive windows (must be < chunk_size)",
    )

    @model_validator(mode="after")
    def check_overlap_below_size(self) -> "IngestRequest":
        if (
            self.chunk_size is not None
            and self.chunk_overlap is not None
            and self.chunk_overlap >= self.chunk_size
        ):
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self
