"""
Project memory with semantic search.

Stores decisions, code patterns, progress notes and other records per
project, each with a 1536-dimension embedding, and finds the ones most
similar to a free-text query.
"""

from .base import (
    EMBEDDING_DIMENSION,
    MEMORY_TABLE,
    MEMORY_TYPES,
    MemoryMetadata,
    MemoryRecord,
    PartialDeleteError,
    SearchResult,
    StorageBackend,
    TableSchema,
    VectorHit,
    VectorIndex,
    memory_table,
    validate_memory_type,
)
from .embeddings import (
    EmbeddingService,
    FallbackEmbeddingService,
    OpenAIEmbeddingService,
    create_embedding_service,
    fallback_embedding,
)
from .in_memory_store import InMemoryBackend
from .chroma_store import ChromaBackend
from .memory_store import MemoryStore
from .search import SimilaritySearch
from .memory_manager import MemoryManager, create_backend, create_memory_manager

__all__ = [
    "EMBEDDING_DIMENSION",
    "MEMORY_TABLE",
    "MEMORY_TYPES",
    "MemoryMetadata",
    "MemoryRecord",
    "PartialDeleteError",
    "SearchResult",
    "StorageBackend",
    "TableSchema",
    "VectorHit",
    "VectorIndex",
    "memory_table",
    "validate_memory_type",
    "EmbeddingService",
    "FallbackEmbeddingService",
    "OpenAIEmbeddingService",
    "create_embedding_service",
    "fallback_embedding",
    "InMemoryBackend",
    "ChromaBackend",
    "MemoryStore",
    "SimilaritySearch",
    "MemoryManager",
    "create_backend",
    "create_memory_manager",
]
