# =============================================================================
# API Tests — FastAPI TestClient with Dependency Overrides
# =============================================================================
#
# Routes run against in-memory components; Celery dispatch and result
# lookup are patched.
# =============================================================================

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fakes import FakeEmbedder, FakeStore
from fastapi import FastAPI
from fastapi.testclient import TestClient

from berkshire_rag.api import ask, ingest
from berkshire_rag.api.ask import http_error_for
from berkshire_rag.api.deps import get_composer, get_retriever
from berkshire_rag.config import settings
from berkshire_rag.errors import (
    DocumentReadError,
    ModelError,
    ModelTimeoutError,
    StoreError,
    StoreTimeoutError,
)
from berkshire_rag.pipeline.composer import DISABLED_MESSAGE, AnswerComposer
from berkshire_rag.pipeline.retriever import Retriever

ROWS = [
    ("Our moat is wide and deep.", [1.0, 1.0, 0.0]),
    ("Float is money we hold.", [0.0, 2.0, 1.0]),
]


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    app.include_router(ask.router)
    app.include_router(ingest.router)
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def _use(app, retriever=None, composer=None):
    if retriever is not None:
        app.dependency_overrides[get_retriever] = lambda: retriever
    if composer is not None:
        app.dependency_overrides[get_composer] = lambda: composer


class TestRetrieveEndpoint:
    def test_returns_chunks(self, app, client):
        _use(app, retriever=Retriever(FakeStore(ROWS), FakeEmbedder()))
        response = client.post("/retrieve", json={"query": "MOAT"})
        assert response.status_code == 200
        assert response.json() == {"chunks": ["Our moat is wide and deep."]}

    def test_empty_query_is_422(self, app, client):
        _use(app, retriever=Retriever(FakeStore(ROWS)))
        assert client.post("/retrieve", json={"query": ""}).status_code == 422

    def test_store_failure_is_503_without_details(self, app, client):
        store = FakeStore(ROWS)
        store.fail_on_read = StoreError("password authentication failed for user admin")
        _use(app, retriever=Retriever(store))

        response = client.post("/retrieve", json={"query": "moat"})
        assert response.status_code == 503
        assert "password" not in response.text

    def test_store_timeout_is_504(self, app, client):
        store = FakeStore(ROWS)
        store.fail_on_read = StoreTimeoutError("query exceeded 10.0s")
        _use(app, retriever=Retriever(store))
        assert client.post("/retrieve", json={"query": "moat"}).status_code == 504


class TestAskEndpoint:
    def test_degraded_mode(self, app, client):
        retriever = Retriever(FakeStore(ROWS), FakeEmbedder())
        _use(app, composer=AnswerComposer(retriever, llm=None))

        response = client.post("/ask", json={"question": "moat"})
        assert response.status_code == 200
        body = response.json()
        assert body["modelUsed"] is False
        assert body["answer"] == DISABLED_MESSAGE
        assert body["context"] == ["Our moat is wide and deep."]

    def test_model_answer(self, app, client):
        llm = AsyncMock()
        llm.complete.return_value = MagicMock(
            content="A moat is a durable advantage.", model="m",
            input_tokens=1, output_tokens=1,
        )
        retriever = Retriever(FakeStore(ROWS), FakeEmbedder())
        _use(app, composer=AnswerComposer(retriever, llm=llm))

        body = client.post("/ask", json={"question": "moat"}).json()
        assert body == {
            "answer": "A moat is a durable advantage.",
            "context": ["Our moat is wide and deep."],
            "modelUsed": True,
        }

    @pytest.mark.parametrize(
        "error,status",
        [
            (ModelError("insufficient_quota: sk-live-123"), 502),
            (ModelTimeoutError("timed out"), 504),
        ],
    )
    def test_model_failures_mapped(self, app, client, error, status):
        llm = AsyncMock()
        llm.complete.side_effect = error
        retriever = Retriever(FakeStore(ROWS), FakeEmbedder())
        _use(app, composer=AnswerComposer(retriever, llm=llm))

        response = client.post("/ask", json={"question": "moat"})
        assert response.status_code == status
        assert "sk-live" not in response.text

    def test_missing_question_is_422(self, app, client):
        _use(app, composer=AnswerComposer(Retriever(FakeStore(ROWS))))
        assert client.post("/ask", json={}).status_code == 422


class TestIngestEndpoints:
    def test_post_dispatches_task(self, client):
        task = MagicMock(id="task-123")
        with patch.object(ingest.ingest_corpus, "delay", return_value=task) as delay:
            response = client.post("/ingest", json={"chunk_size": 1000, "chunk_overlap": 100})

        assert response.status_code == 202
        assert response.json()["task_id"] == "task-123"
        delay.assert_called_once_with(chunk_size=1000, chunk_overlap=100)

    def test_post_without_body_uses_defaults(self, client):
        with patch.object(ingest.ingest_corpus, "delay", return_value=MagicMock(id="t")) as delay:
            response = client.post("/ingest")
        assert response.status_code == 202
        delay.assert_called_once_with(
            chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap,
        )
        assert "summary" in response.json()["message"]

    def test_overlap_not_below_size_is_422(self, client):
        with patch.object(ingest.ingest_corpus, "delay") as delay:
            response = client.post("/ingest", json={"chunk_size": 100, "chunk_overlap": 100})
        assert response.status_code == 422
        delay.assert_not_called()

    def test_size_below_default_overlap_is_422(self, client):
        with patch.object(ingest.ingest_corpus, "delay") as delay:
            response = client.post("/ingest", json={"chunk_size": settings.chunk_overlap})
        assert response.status_code == 422
        delay.assert_not_called()

    def test_overlap_only_override_uses_default_size(self, client):
        with patch.object(ingest.ingest_corpus, "delay", return_value=MagicMock(id="t")) as delay:
            response = client.post("/ingest", json={"chunk_overlap": 0})
        assert response.status_code == 202
        delay.assert_called_once_with(chunk_size=settings.chunk_size, chunk_overlap=0)

    def test_status_success(self, client):
        result = MagicMock(status="SUCCESS")
        result.result = {
            "message": "Stored 42 chunks (embeddings pending)",
            "stored_count": 42,
            "failed_documents": ["2008.pdf"],
        }
        with patch.object(ingest, "AsyncResult", return_value=result):
            body = client.get("/ingest/task-123").json()

        assert body["status"] == "SUCCESS"
        assert body["stored_count"] == 42
        assert body["failed_documents"] == ["2008.pdf"]
        assert body["message"].startswith("Stored 42 chunks")

    def test_status_failure_hides_details(self, client):
        result = MagicMock(status="FAILURE")
        result.result = StoreError("could not connect to postgres://user:secret@db")
        with patch.object(ingest, "AsyncResult", return_value=result):
            body = client.get("/ingest/task-123").json()

        assert body["status"] == "FAILURE"
        assert body["error"] == "StoreError"
        assert "secret" not in str(body)

    def test_status_pending(self, client):
        with patch.object(ingest, "AsyncResult", return_value=MagicMock(status="PENDING")):
            body = client.get("/ingest/unknown").json()
        assert body["status"] == "PENDING"
        assert body["stored_count"] is None


class TestHealth:
    def test_health_reports_configuration(self):
        from berkshire_rag.main import app as real_app

        body = TestClient(real_app).get("/health").json()
        assert body["status"] == "ok"
        assert body["service"] == "Berkshire Letters RAG Assistant"
        assert isinstance(body["llm_enabled"], bool)

    def test_routes_mounted(self):
        from berkshire_rag.main import app as real_app

        paths = {route.path for route in real_app.routes}
        assert {"/retrieve", "/ask", "/ingest", "/ingest/{task_id}", "/health"} <= paths


class TestErrorMapping:
    def test_document_errors_are_not_echoed(self):
        error = http_error_for(DocumentReadError("1999.pdf", "/srv/private/1999.pdf"), "Ask")
        assert error.status_code == 500
        assert "private" not in error.detail
