# =============================================================================
# FastAPI Application — Entry Point
# =============================================================================
#
# Run locally with:
#   uvicorn berkshire_rag.main:app --reload
#
# Startup:  configure logging, optionally create the schema (DB_AUTO_CREATE)
# Shutdown: dispose both connection pools
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from berkshire_rag.api import ask, ingest
from berkshire_rag.config import settings
from berkshire_rag.db.engine import dispose_engines, init_db
from berkshire_rag.models.responses import HealthResponse

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", db_echo: bool = False) -> None:
    """Root logger setup; third-party HTTP and SQL loggers stay at WARNING."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    for name in ("httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.WARNING)
    if not db_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.db_auto_create:
        logger.info("DB_AUTO_CREATE set; creating vector extension and tables")
        await init_db()

    logger.info(
        "%s v%s started (llm=%s, embeddings=%s)",
        settings.app_name, settings.app_version,
        "on" if settings.llm_enabled else "off",
        "on" if settings.embeddings_enabled else "off",
    )
    yield

    await dispose_engines()
    logger.info("Connection pools disposed")


def create_app() -> FastAPI:
    configure_logging(settings.log_level, settings.db_echo)

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Question answering over Berkshire Hathaway shareholder letters: "
            "lexical-then-vector retrieval with optional grounded LLM answers."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(ask.router)
    app.include_router(ingest.router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            version=settings.app_version,
            service=settings.app_name,
            llm_enabled=settings.llm_enabled,
            embeddings_enabled=settings.embeddings_enabled,
        )

    return app


app = create_app()
