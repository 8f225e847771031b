# =============================================================================
# Unit Tests — Celery Ingestion Task
# =============================================================================
#
# The task is executed eagerly with apply(); no broker or worker needed.
# =============================================================================

from __future__ import annotations

from unittest.mock import patch

from fakes import FakeSource, FakeStore

from berkshire_rag.config import settings
from berkshire_rag.workers import tasks


def _apply(source, store, **kwargs):
    with (
        patch.object(tasks, "PdfDirectorySource", return_value=source),
        patch.object(tasks, "build_content_store", return_value=store),
        patch.object(tasks, "build_embedder", return_value=None),
    ):
        return tasks.ingest_corpus.apply(kwargs=kwargs)


class TestIngestCorpus:
    def test_returns_json_summary(self):
        store = FakeStore()
        result = _apply(FakeSource({"1984.pdf": ["Berkshire " * 200]}), store)

        summary = result.get()
        assert summary["stored_count"] == len(store.inserted) > 0
        assert summary["message"].startswith(f"Stored {summary['stored_count']} chunks")
        assert summary["chunk_size"] == settings.chunk_size
        assert summary["chunk_overlap"] == settings.chunk_overlap

    def test_overrides_chunking(self):
        store = FakeStore()
        summary = _apply(
            FakeSource({"1984.pdf": ["x" * 1000]}), store, chunk_size=500, chunk_overlap=0,
        ).get()
        assert summary["chunk_size"] == 500
        assert summary["stored_count"] == 3  # 1001 characters incl. page delimiter

    def test_missing_directory_is_successful_result(self):
        summary = _apply(FakeSource({}, found=False), FakeStore()).get()
        assert summary["source_found"] is False
        assert summary["message"] == "Directory not found at /fake/letters"

    def test_store_failure_marks_task_failed(self):
        from berkshire_rag.errors import StoreError

        store = FakeStore()
        store.fail_on_insert = StoreError("db down")
        result = _apply(FakeSource({"1984.pdf": ["text"]}), store)
        assert result.failed()
        assert isinstance(result.result, StoreError)
