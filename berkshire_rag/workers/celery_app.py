# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Corpus ingestion (parse every letter, chunk, embed, store) takes
# minutes, so it runs in a Celery worker instead of the API process. The
# API dispatches the task and returns its id; clients poll for the result.
#
# ┌──────────┐     ┌───────┐     ┌──────────────┐     ┌───────┐
# │ FastAPI  │────▶│ Redis │────▶│ Celery Worker│────▶│ Redis │
# │(producer)│     │(broker)│    │  (consumer)  │     │(result)│
# └──────────┘     └───────┘     └──────────────┘     └───────┘
#    db 0 ──────────┘                                    └── db 1
#
# Start a worker with:
#   celery -A berkshire_rag.workers.celery_app worker --loglevel=info
# =============================================================================

from celery import Celery

from berkshire_rag.config import settings

celery_app = Celery(
    "berkshire_rag.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # --- Serialization ---
    # JSON only: pickle payloads can execute code on deserialization.
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # --- Reliability ---
    # Ack after completion so a crashed worker's task is redelivered.
    # Ingestion failures themselves are not retried.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Report STARTED so GET /ingest/{task_id} can tell queued from running.
    task_track_started=True,

    # --- Timeouts ---
    # The soft limit raises SoftTimeLimitExceeded inside the task; chunks
    # committed before it fired stay in the store.
    task_soft_time_limit=1800,
    task_time_limit=2100,

    # --- Results ---
    result_expires=3600,

    include=["berkshire_rag.workers.tasks"],
)
