"""
Unit tests for rag_memory/memory/base.py

Tests record validation, document conversion, and the logical schema.
"""

import pytest

from rag_memory.memory.base import (
    EMBEDDING_DIMENSION,
    MEMORY_TABLE,
    MEMORY_TYPES,
    MemoryMetadata,
    MemoryRecord,
    PartialDeleteError,
    memory_table,
    validate_memory_type,
)
from tests.fixtures import make_embedding, make_record


class TestValidateMemoryType:
    """Tests for validate_memory_type()."""

    @pytest.mark.parametrize("value", MEMORY_TYPES)
    def test_accepts_known_types(self, value):
        assert validate_memory_type(value) == value

    def test_rejects_unknown_type(self):
        with pytest.raises(ValueError, match="Invalid memory type"):
            validate_memory_type("todo")

    def test_types_match_enumeration(self):
        assert set(MEMORY_TYPES) == {
            "decision",
            "code_pattern",
            "progress",
            "blocker",
            "context",
            "file_summary",
            "conversation",
        }


class TestMemoryRecord:
    """Tests for MemoryRecord dataclass."""

    def test_record_creation(self):
        """Test creating an unpersisted record."""
        record = make_record(tags=["b", "a", "b"])

        assert record.id is None
        assert record.created_at is None
        # Order and duplicates preserved
        assert record.tags == ["b", "a", "b"]
        assert len(record.embedding) == EMBEDDING_DIMENSION

    def test_rejects_empty_project(self):
        with pytest.raises(ValueError, match="project_id"):
            make_record(project_id="")

    def test_rejects_invalid_type(self):
        with pytest.raises(ValueError, match="Invalid memory type"):
            make_record(type="note")

    def test_rejects_wrong_dimension(self):
        with pytest.raises(ValueError, match="1536"):
            make_record(embedding=[0.1] * 384)

    def test_rejects_non_string_tags(self):
        with pytest.raises(ValueError, match="tags"):
            make_record(tags=["ok", 3])

    def test_metadata_dict_is_converted(self):
        record = make_record(metadata={"files": ["src/app.py"], "importance": 0.8})

        assert isinstance(record.metadata, MemoryMetadata)
        assert record.metadata.files == ["src/app.py"]
        assert record.metadata.importance == 0.8
        assert record.metadata.expires_at is None

    def test_embedding_text(self):
        record = make_record(title="Use retries", content="Exponential backoff on 5xx")
        assert record.embedding_text() == "Use retries\n\nExponential backoff on 5xx"

    def test_document_round_trip(self):
        """Test to_document/from_document keep every field."""
        record = make_record(
            session_id="sess-1",
            metadata=MemoryMetadata(files=["a.py", "b.py"], importance=3, expires_at=1700000000000),
            embedding=make_embedding(5),
        )
        document = record.to_document()
        document["created_at"] = 1234

        restored = MemoryRecord.from_document("abc", document)

        assert restored.id == "abc"
        assert restored.created_at == 1234
        assert restored.session_id == "sess-1"
        assert restored.metadata == record.metadata
        assert restored.tags == record.tags
        assert restored.embedding == record.embedding

    def test_document_without_optional_fields(self):
        document = make_record().to_document()
        del document["session_id"]
        document["metadata"] = None

        restored = MemoryRecord.from_document("abc", document)

        assert restored.session_id is None
        assert restored.metadata is None


class TestSchema:
    """Tests for the logical memory table schema."""

    def test_indexes(self):
        assert MEMORY_TABLE.name == "rag_memories"
        assert MEMORY_TABLE.index_fields("by_project") == ("project_id",)
        assert MEMORY_TABLE.index_fields("by_type") == ("project_id", "type")
        assert MEMORY_TABLE.index_fields("by_session") == ("session_id",)

    def test_unknown_index(self):
        with pytest.raises(ValueError, match="Unknown index"):
            MEMORY_TABLE.index_fields("by_title")

    def test_vector_index(self):
        vector_index = MEMORY_TABLE.check_vector_index("by_embedding", {"project_id": "p"})

        assert vector_index.field == "embedding"
        assert vector_index.dimensions == EMBEDDING_DIMENSION
        assert vector_index.filter_fields == ("project_id", "type")

    def test_vector_index_rejects_other_filters(self):
        with pytest.raises(ValueError, match="not filterable"):
            MEMORY_TABLE.check_vector_index("by_embedding", {"session_id": "s"})

    def test_renamed_table(self):
        assert memory_table("other").name == "other"


class TestPartialDeleteError:
    def test_carries_count(self):
        cause = ConnectionError("gone")
        error = PartialDeleteError("proj1", 2, cause)

        assert isinstance(error, RuntimeError)
        assert error.deleted == 2
        assert error.project_id == "proj1"
        assert "after deleting 2" in str(error)
