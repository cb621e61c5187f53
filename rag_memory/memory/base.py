"""
Base interfaces and data structures for project memory.

Defines the memory record, the logical table schema, and the abstract
storage contract that every backend (in-memory, ChromaDB, pgvector)
must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

EMBEDDING_DIMENSION = 1536

MemoryType = Literal[
    "decision",      # Architectural/design choice
    "code_pattern",  # Reusable approach found in the codebase
    "progress",      # What got done
    "blocker",       # Something stopping progress
    "context",       # Background the next session needs
    "file_summary",  # What a file is for
    "conversation",  # Excerpt worth keeping
]

MEMORY_TYPES = (
    "decision",
    "code_pattern",
    "progress",
    "blocker",
    "context",
    "file_summary",
    "conversation",
)


def validate_memory_type(value: str) -> str:
    """Return value if it is a known memory type, else raise ValueError."""
    if value not in MEMORY_TYPES:
        raise ValueError(
            f"Invalid memory type: {value!r}. Expected one of: {', '.join(MEMORY_TYPES)}"
        )
    return value


@dataclass
class MemoryMetadata:
    """Optional extra data attached to a memory."""
    files: Optional[list[str]] = None
    importance: Optional[float] = None
    expires_at: Optional[int] = None  # Epoch ms, advisory only

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": list(self.files) if self.files is not None else None,
            "importance": self.importance,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryMetadata":
        files = data.get("files")
        return cls(
            files=list(files) if files is not None else None,
            importance=data.get("importance"),
            expires_at=data.get("expires_at"),
        )


@dataclass
class MemoryRecord:
    """
    A single stored note tied to a project.

    Records are never updated in place: they are created with their
    embedding already computed and are only ever deleted afterwards.
    `id` and `created_at` stay None until the store persists the record.
    """
    project_id: str
    type: str
    title: str
    content: str
    tags: list[str]
    embedding: list[float]
    session_id: Optional[str] = None
    metadata: Optional[MemoryMetadata] = None

    # Assigned by the store
    id: Optional[str] = None
    created_at: Optional[int] = None  # Epoch ms

    def __post_init__(self) -> None:
        if not isinstance(self.project_id, str) or not self.project_id:
            raise ValueError("project_id must be a non-empty string")
        validate_memory_type(self.type)
        if not isinstance(self.tags, list) or not all(isinstance(t, str) for t in self.tags):
            raise ValueError("tags must be a list of strings")
        if len(self.embedding) != EMBEDDING_DIMENSION:
            raise ValueError(
                f"embedding must have {EMBEDDING_DIMENSION} components, got {len(self.embedding)}"
            )
        if isinstance(self.metadata, dict):
            self.metadata = MemoryMetadata.from_dict(self.metadata)

    def embedding_text(self) -> str:
        """The text that gets embedded when a memory is stored."""
        return embedding_text(self.title, self.content)

    def to_document(self) -> dict[str, Any]:
        """Convert to the storage document (without id)."""
        return {
            "project_id": self.project_id,
            "session_id": self.session_id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "embedding": list(self.embedding),
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "created_at": self.created_at,
        }

    @classmethod
    def from_document(cls, id: str, document: dict[str, Any]) -> "MemoryRecord":
        """Build a record from a storage document."""
        metadata = document.get("metadata")
        return cls(
            id=id,
            project_id=document["project_id"],
            session_id=document.get("session_id"),
            type=document["type"],
            title=document["title"],
            content=document["content"],
            tags=list(document.get("tags") or []),
            embedding=list(document["embedding"]),
            metadata=MemoryMetadata.from_dict(metadata) if metadata else None,
            created_at=document.get("created_at"),
        )


def embedding_text(title: str, content: str) -> str:
    return f"{title}\n\n{content}"


@dataclass
class SearchResult:
    """A hydrated search hit."""
    record: MemoryRecord
    score: float  # Higher is more similar


@dataclass
class VectorHit:
    """A raw hit from a vector index: just the id and its score."""
    id: str
    score: float


@dataclass(frozen=True)
class VectorIndex:
    """A vector index over one field, filterable by equality on others."""
    name: str
    field: str
    dimensions: int
    filter_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class TableSchema:
    """Logical table definition that backends materialize."""
    name: str
    indexes: dict[str, tuple[str, ...]] = field(default_factory=dict)
    vector_index: Optional[VectorIndex] = None

    def index_fields(self, index_name: str) -> tuple[str, ...]:
        if index_name not in self.indexes:
            raise ValueError(f"Unknown index {index_name!r} on table {self.name!r}")
        return self.indexes[index_name]

    def check_vector_index(self, index_name: str, filters: dict[str, Any]) -> VectorIndex:
        vector_index = self.vector_index
        if vector_index is None or vector_index.name != index_name:
            raise ValueError(f"Unknown vector index {index_name!r} on table {self.name!r}")
        unknown = set(filters) - set(vector_index.filter_fields)
        if unknown:
            raise ValueError(
                f"Fields {sorted(unknown)} are not filterable on vector index {index_name!r}"
            )
        return vector_index


def memory_table(name: str = "rag_memories") -> TableSchema:
    """Schema for the memory table, optionally under another table name."""
    return TableSchema(
        name=name,
        indexes={
            "by_project": ("project_id",),
            "by_type": ("project_id", "type"),
            "by_session": ("session_id",),
        },
        vector_index=VectorIndex(
            name="by_embedding",
            field="embedding",
            dimensions=EMBEDDING_DIMENSION,
            filter_fields=("project_id", "type"),
        ),
    )


MEMORY_TABLE = memory_table()


class PartialDeleteError(RuntimeError):
    """A bulk delete stopped partway; `deleted` records were already removed."""

    def __init__(self, project_id: str, deleted: int, cause: BaseException):
        super().__init__(
            f"Clearing project {project_id!r} failed after deleting {deleted} memories: {cause}"
        )
        self.project_id = project_id
        self.deleted = deleted


class StorageBackend(ABC):
    """
    Abstract interface for storage and vector index backends.

    Implementations: in-memory (tests/dev), ChromaDB (local), pgvector (production)
    """

    def __init__(self, schemas: list[TableSchema]):
        self.schemas = {schema.name: schema for schema in schemas}

    def _schema(self, table: str) -> TableSchema:
        if table not in self.schemas:
            raise ValueError(f"Unknown table: {table!r}")
        return self.schemas[table]

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the backend (create tables, collections, indexes)."""
        pass

    @abstractmethod
    async def insert(self, table: str, fields: dict[str, Any]) -> str:
        """
        Insert a document.

        Args:
            table: Table name
            fields: Document fields

        Returns:
            The new document's id
        """
        pass

    @abstractmethod
    async def get(self, table: str, id: str) -> Optional[dict[str, Any]]:
        """Get a document by id, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def delete(self, table: str, id: str) -> None:
        """Delete a document. Unknown ids are ignored."""
        pass

    @abstractmethod
    async def query_by_index(
        self,
        table: str,
        index_name: str,
        equality: dict[str, Any],
        order: Literal["asc", "desc"] = "desc",
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """
        Query documents through a declared index.

        Args:
            table: Table name
            index_name: One of the table's declared indexes
            equality: Field values to match exactly
            order: Insertion order, "desc" for newest first
            limit: Maximum number of documents (None for all)

        Returns:
            List of (id, document) pairs
        """
        pass

    @abstractmethod
    async def vector_search(
        self,
        table: str,
        index_name: str,
        vector: list[float],
        limit: int,
        filters: dict[str, Any],
    ) -> list[VectorHit]:
        """
        Find the nearest stored vectors.

        Args:
            table: Table name
            index_name: The table's vector index
            vector: Query vector
            limit: Maximum number of hits
            filters: Equality filters on the index's filter fields

        Returns:
            Hits ordered best first
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass
