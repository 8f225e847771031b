# =============================================================================
# Error Taxonomy
# =============================================================================
#
#   RagError
#   ├── StoreError            — store connection / query / constraint failure
#   │   └── StoreTimeoutError — a store read exceeded STORE_TIMEOUT_SECONDS
#   ├── ModelError            — embedding or completion call failed
#   │   └── ModelTimeoutError — the SDK request timed out
#   └── DocumentReadError     — one source document could not be read
#
# Not errors:
#   - No model credential → degraded mode (modelUsed=false)
#   - Missing document directory → descriptive ingestion result
#
# None of these are retried internally. The HTTP layer never echoes an
# error message: it logs the full error and returns a generic detail.
# =============================================================================


class RagError(Exception):
    """Base class for every failure raised by the pipeline."""


class StoreError(RagError):
    """The content store rejected or failed an operation."""


class StoreTimeoutError(StoreError):
    """A content store query did not finish within its timeout."""


class ModelError(RagError):
    """An embedding or completion request to the language model failed."""


class ModelTimeoutError(ModelError):
    """A language model request did not finish within its timeout."""


class DocumentReadError(RagError):
    """A single source document is unreadable or corrupt."""

    def __init__(self, document: str, reason: str) -> None:
        super().__init__(f"Could not read '{document}': {reason}")
        self.document = document
        self.reason = reason
