# =============================================================================
# Unit Tests — pgvector Content Store
# =============================================================================
#
# Sessions are mocks; SQL is checked by compiling the statements against
# the PostgreSQL dialect. No database needed.
# =============================================================================

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import run
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from berkshire_rag.db.models import DocumentChunk
from berkshire_rag.errors import StoreError, StoreTimeoutError
from berkshire_rag.services.store import (
    PgChunkReader,
    PgChunkWriter,
    PgContentStore,
    escape_like,
)


def _compile(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def _async_session(rows=None):
    session = AsyncMock()
    result = MagicMock()
    result.scalars.return_value.all.return_value = list(rows or [])
    result.scalar.return_value = bool(rows)
    session.execute.return_value = result
    return session


def _db_error():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


class TestEscapeLike:
    def test_plain_text_unchanged(self):
        assert escape_like("moat") == "moat"

    def test_wildcards_escaped(self):
        assert escape_like("50% off_now") == "50\\% off\\_now"

    def test_backslash_escaped_first(self):
        assert escape_like("a\\%") == "a\\\\\\%"


class TestPgChunkWriter:
    def test_insert_adds_row_and_commits(self):
        session = MagicMock()
        PgChunkWriter(session, dimensions=3).insert_chunk(
            "Float grew.", [0.1, 0.2, 0.3], source="1995.pdf", chunk_index=4, token_count=2,
        )

        row = session.add.call_args.args[0]
        assert isinstance(row, DocumentChunk)
        assert row.content == "Float grew."
        assert row.source == "1995.pdf"
        assert row.chunk_index == 4
        session.commit.assert_called_once()

    def test_insert_without_embedding(self):
        session = MagicMock()
        PgChunkWriter(session, dimensions=3).insert_chunk("No vector yet.")
        assert session.add.call_args.args[0].embedding is None

    @pytest.mark.parametrize("content", ["", "   \n\t"])
    def test_blank_content_rejected(self, content):
        session = MagicMock()
        with pytest.raises(ValueError):
            PgChunkWriter(session, dimensions=3).insert_chunk(content)
        session.add.assert_not_called()

    @pytest.mark.parametrize("embedding", [[], [0.1, 0.2], [0.1, 0.2, 0.3, 0.4]])
    def test_wrong_dimension_rejected_before_write(self, embedding):
        session = MagicMock()
        with pytest.raises(ValueError):
            PgChunkWriter(session, dimensions=3).insert_chunk("text", embedding)
        session.add.assert_not_called()

    def test_commit_failure_rolls_back_and_raises_store_error(self):
        session = MagicMock()
        session.commit.side_effect = _db_error()
        with pytest.raises(StoreError):
            PgChunkWriter(session, dimensions=3).insert_chunk("text")
        session.rollback.assert_called_once()


class TestPgChunkReader:
    def test_lexical_query_uses_escaped_ilike_in_id_order(self):
        session = _async_session(["Our moat is wide."])
        reader = PgChunkReader(session, dimensions=3, timeout=1.0)

        assert run(reader.query_lexical("50%", 5)) == ["Our moat is wide."]

        stmt = session.execute.call_args.args[0]
        sql = _compile(stmt)
        assert "ILIKE" in sql
        assert "ESCAPE" in sql
        assert "ORDER BY document_chunks.id" in sql
        assert "%50\\%%" in stmt.compile(dialect=postgresql.dialect()).params.values()

    def test_nearest_query_orders_by_l2_distance(self):
        session = _async_session(["a", "b"])
        reader = PgChunkReader(session, dimensions=3, timeout=1.0)

        assert run(reader.query_nearest([0.0, 1.0, 0.0], 2)) == ["a", "b"]

        sql = _compile(session.execute.call_args.args[0])
        assert "<->" in sql
        assert "embedding IS NOT NULL" in sql

    def test_nearest_rejects_wrong_dimensions(self):
        session = _async_session()
        reader = PgChunkReader(session, dimensions=3, timeout=1.0)
        with pytest.raises(ValueError):
            run(reader.query_nearest([1.0], 5))
        session.execute.assert_not_called()

    def test_has_embeddings(self):
        assert run(PgChunkReader(_async_session(["x"]), 3, 1.0).has_embeddings()) is True
        assert run(PgChunkReader(_async_session([]), 3, 1.0).has_embeddings()) is False

    def test_driver_error_becomes_store_error(self):
        session = AsyncMock()
        session.execute.side_effect = _db_error()
        with pytest.raises(StoreError):
            run(PgChunkReader(session, 3, 1.0).query_lexical("moat", 5))

    def test_slow_query_times_out(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)

        session = AsyncMock()
        session.execute.side_effect = slow
        with pytest.raises(StoreTimeoutError):
            run(PgChunkReader(session, 3, timeout=0.01).query_lexical("moat", 5))


class TestPgContentStore:
    def _store(self, sync_session=None, async_session=None):
        released = {"sync": 0}

        @contextmanager
        def sync_scope():
            try:
                yield sync_session or MagicMock()
            finally:
                released["sync"] += 1

        factory = MagicMock()
        factory.return_value.__aenter__.return_value = async_session or _async_session()
        store = PgContentStore(factory, sync_scope, dimensions=3, timeout=1.0)
        return store, factory, released

    def test_writer_scope_released_on_error(self):
        store, _, released = self._store()
        with pytest.raises(RuntimeError):
            with store.writer():
                raise RuntimeError("boom")
        assert released["sync"] == 1

    def test_writer_wraps_session_errors(self):
        session = MagicMock()
        session.commit.side_effect = _db_error()
        store, _, released = self._store(sync_session=session)
        with pytest.raises(StoreError):
            with store.writer() as writer:
                writer.insert_chunk("text")
        assert released["sync"] == 1

    def test_reader_scope_released(self):
        session = _async_session(["chunk"])
        store, factory, _ = self._store(async_session=session)

        async def scenario():
            async with store.reader() as reader:
                return await reader.query_lexical("chunk", 5)

        assert run(scenario()) == ["chunk"]
        factory.return_value.__aexit__.assert_awaited_once()
