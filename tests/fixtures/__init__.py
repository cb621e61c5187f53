"""
Test fixtures and sample data for RAG Memory tests.
"""

from rag_memory.memory.base import EMBEDDING_DIMENSION, MemoryMetadata, MemoryRecord
from rag_memory.memory.embeddings import fallback_embedding


def make_embedding(slot: int = 0, dimension: int = EMBEDDING_DIMENSION) -> list[float]:
    """Unit vector along one axis."""
    vector = [0.0] * dimension
    vector[slot % dimension] = 1.0
    return vector


def make_record(
    project_id: str = "proj1",
    type: str = "decision",
    title: str = "Use retries",
    content: str = "Exponential backoff on 5xx",
    tags: list[str] = None,
    embedding: list[float] = None,
    session_id: str = None,
    metadata: MemoryMetadata = None,
) -> MemoryRecord:
    """Create an unpersisted MemoryRecord for testing."""
    return MemoryRecord(
        project_id=project_id,
        type=type,
        title=title,
        content=content,
        tags=tags if tags is not None else ["reliability", "http"],
        embedding=embedding if embedding is not None else fallback_embedding(f"{title}\n\n{content}"),
        session_id=session_id,
        metadata=metadata,
    )


def make_project_records(project_id: str = "proj1") -> list[MemoryRecord]:
    """A small mixed set of records for one project."""
    samples = [
        ("decision", "Use Postgres", "pgvector gives us SQL and vectors in one place"),
        ("blocker", "CI is red", "Integration tests time out on the runner"),
        ("decision", "Use retries", "Exponential backoff on 5xx"),
        ("progress", "Search endpoint done", "Returns top-K memories with scores"),
    ]
    return [
        make_record(project_id=project_id, type=type, title=title, content=content)
        for type, title, content in samples
    ]
