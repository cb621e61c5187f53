"""
Integration tests for rag_memory/memory/chroma_store.py

Runs the memory store and search against a real ChromaDB persisted to a
temporary directory.
"""

import pytest
import pytest_asyncio

from rag_memory.memory.base import MEMORY_TABLE
from rag_memory.memory.chroma_store import ChromaBackend
from rag_memory.memory.embeddings import FallbackEmbeddingService
from rag_memory.memory.memory_manager import MemoryManager
from rag_memory.memory.memory_store import MemoryStore
from tests.fixtures import make_embedding, make_record

pytest.importorskip("chromadb")

TABLE = MEMORY_TABLE.name


@pytest_asyncio.fixture
async def chroma_backend(tmp_path):
    backend = ChromaBackend([MEMORY_TABLE], persist_directory=str(tmp_path / "chroma"))
    await backend.initialize()
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def chroma_manager(tmp_path):
    backend = ChromaBackend([MEMORY_TABLE], persist_directory=str(tmp_path / "manager"))
    manager = MemoryManager(MemoryStore(backend), FallbackEmbeddingService())
    await manager.initialize()
    yield manager
    await manager.close()


class TestChromaBackend:
    """Storage contract against ChromaDB."""

    @pytest.mark.asyncio
    async def test_requires_initialize(self, tmp_path):
        backend = ChromaBackend([MEMORY_TABLE], persist_directory=str(tmp_path))

        with pytest.raises(RuntimeError, match="not initialized"):
            await backend.get(TABLE, "x")

    @pytest.mark.asyncio
    async def test_document_round_trip(self, chroma_backend):
        """Test lists, None values and float64 vectors survive storage."""
        document = make_record(session_id=None, tags=["a", "a"]).to_document()

        id = await chroma_backend.insert(TABLE, document)

        assert await chroma_backend.get(TABLE, id) == document

    @pytest.mark.asyncio
    async def test_get_and_delete_missing(self, chroma_backend):
        assert await chroma_backend.get(TABLE, "missing") is None
        await chroma_backend.delete(TABLE, "missing")

    @pytest.mark.asyncio
    async def test_query_by_index(self, chroma_backend):
        first = await chroma_backend.insert(TABLE, make_record(type="decision").to_document())
        await chroma_backend.insert(TABLE, make_record(type="blocker").to_document())
        third = await chroma_backend.insert(TABLE, make_record(type="decision").to_document())

        rows = await chroma_backend.query_by_index(
            TABLE, "by_type", {"project_id": "proj1", "type": "decision"}
        )

        assert [id for id, _ in rows] == [third, first]

    @pytest.mark.asyncio
    async def test_vector_search(self, chroma_backend):
        near = await chroma_backend.insert(TABLE, make_record(embedding=make_embedding(1)).to_document())
        await chroma_backend.insert(TABLE, make_record(embedding=make_embedding(2)).to_document())
        await chroma_backend.insert(
            TABLE, make_record(project_id="other", embedding=make_embedding(1)).to_document()
        )

        hits = await chroma_backend.vector_search(
            TABLE, "by_embedding", make_embedding(1), 5, {"project_id": "proj1"}
        )

        assert len(hits) == 2
        assert hits[0].id == near
        assert hits[0].score == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.asyncio
    async def test_order_survives_reopen(self, tmp_path):
        """Test insertion order continues after reopening the directory."""
        path = str(tmp_path / "chroma")
        backend = ChromaBackend([MEMORY_TABLE], persist_directory=path)
        await backend.initialize()
        old = await backend.insert(TABLE, make_record().to_document())
        await backend.close()

        reopened = ChromaBackend([MEMORY_TABLE], persist_directory=path)
        await reopened.initialize()
        new = await reopened.insert(TABLE, make_record().to_document())

        rows = await reopened.query_by_index(TABLE, "by_project", {"project_id": "proj1"})
        assert [id for id, _ in rows] == [new, old]

    @pytest.mark.asyncio
    async def test_colliding_sequences_order_by_created_at(self, chroma_backend):
        """Test two writers handing out the same sequence still list newest first."""
        older = make_record().to_document()
        older["created_at"] = 100
        newer = make_record().to_document()
        newer["created_at"] = 200

        old_id = await chroma_backend.insert(TABLE, older)
        # A second writer on the same directory started from the same counter
        chroma_backend._sequence = 0
        new_id = await chroma_backend.insert(TABLE, newer)

        rows = await chroma_backend.query_by_index(TABLE, "by_project", {"project_id": "proj1"})
        assert [id for id, _ in rows] == [new_id, old_id]


class TestChromaMemoryFlow:
    """End-to-end manager flow on ChromaDB."""

    @pytest.mark.asyncio
    async def test_store_search_clear(self, chroma_manager):
        memory_id = await chroma_manager.store_memory(
            "proj1", "decision", "Use retries", "Exponential backoff on 5xx"
        )
        await chroma_manager.store_memory("proj1", "blocker", "CI is red", "Timeouts")

        results = await chroma_manager.search("proj1", "Use retries\n\nExponential backoff on 5xx", limit=1)
        assert results[0].record.id == memory_id

        assert await chroma_manager.clear_project("proj1") == 2
        assert await chroma_manager.list_by_project("proj1") == []
