"""
Memory Manager - the public entry point for project memory.

This is the high-level interface a hosting application calls.
It handles:
- Embedding and storing new memories
- Semantic search within a project
- Listing, fetching and deleting memories
"""

import logging
from typing import Any, Optional

from ..config import Config, project_scope
from .base import (
    MemoryMetadata,
    MemoryRecord,
    SearchResult,
    StorageBackend,
    embedding_text,
    memory_table,
    validate_memory_type,
)
from .chroma_store import ChromaBackend
from .embeddings import EmbeddingService, create_embedding_service
from .in_memory_store import InMemoryBackend
from .memory_store import DEFAULT_LIST_LIMIT, DEFAULT_RECENT_LIMIT, MemoryStore
from .search import DEFAULT_SEARCH_LIMIT, SimilaritySearch

logger = logging.getLogger("rag_memory.memory.manager")


class MemoryManager:
    """
    High-level memory management for coding projects.

    Wraps a MemoryStore and a SimilaritySearch that share one
    embedding service.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedding_service: EmbeddingService,
        search: Optional[SimilaritySearch] = None,
    ):
        self.store = store
        self.embedding_service = embedding_service
        self.similarity = search or SimilaritySearch(store, embedding_service)
        self._initialized = False
        logger.info("MemoryManager created")

    async def initialize(self) -> None:
        """Initialize the storage backend(s)."""
        await self.store.backend.initialize()
        if self.similarity.index is not self.store.backend:
            await self.similarity.index.initialize()
        self._initialized = True
        logger.info(f"MemoryManager initialized on table {self.store.table}")

    def _ensure_initialized(self) -> None:
        """Ensure the system is initialized."""
        if not self._initialized:
            raise RuntimeError("MemoryManager not initialized. Call initialize() first.")

    async def store_memory(
        self,
        project_id: str,
        type: str,
        title: str,
        content: str,
        tags: Optional[list[str]] = None,
        session_id: Optional[str] = None,
        metadata: MemoryMetadata | dict[str, Any] | None = None,
    ) -> str:
        """
        Embed and store a new memory.

        The embedding is computed from the title and content together.

        Args:
            project_id: Project the memory belongs to
            type: One of MEMORY_TYPES
            title: Short human-readable title
            content: Body text
            tags: Optional tags, order preserved
            session_id: Working session that produced the memory
            metadata: Optional files/importance/expires_at

        Returns:
            The new memory id
        """
        self._ensure_initialized()

        with project_scope(project_id):
            # Reject bad input before spending an embedding call
            if not project_id:
                raise ValueError("project_id must be a non-empty string")
            validate_memory_type(type)

            embedding = await self.embedding_service.embed(embedding_text(title, content))

            record = MemoryRecord(
                project_id=project_id,
                session_id=session_id,
                type=type,
                title=title,
                content=content,
                tags=list(tags or []),
                embedding=embedding,
                metadata=metadata,
            )
            memory_id = await self.store.insert(record)

        logger.info(f"Stored memory {memory_id} with {len(embedding)}-dim embedding")
        return memory_id

    async def search(
        self,
        project_id: str,
        query: str,
        type: Optional[str] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchResult]:
        """Semantic search within a project, best match first."""
        self._ensure_initialized()
        with project_scope(project_id):
            return await self.similarity.search(project_id, query, type=type, limit=limit)

    async def get_by_id(self, memory_id: str) -> Optional[MemoryRecord]:
        self._ensure_initialized()
        return await self.store.get_by_id(memory_id)

    async def delete_memory(self, memory_id: str) -> bool:
        self._ensure_initialized()
        return await self.store.delete_by_id(memory_id)

    async def clear_project(self, project_id: str) -> int:
        """Delete all of a project's memories (best effort, not atomic)."""
        self._ensure_initialized()
        with project_scope(project_id):
            return await self.store.delete_all_for_project(project_id)

    async def list_by_project(
        self,
        project_id: str,
        type: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[MemoryRecord]:
        self._ensure_initialized()
        with project_scope(project_id):
            return await self.store.list_by_project(project_id, type=type, limit=limit)

    async def get_recent(
        self,
        project_id: str,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> list[MemoryRecord]:
        self._ensure_initialized()
        with project_scope(project_id):
            return await self.store.get_recent(project_id, limit=limit)

    async def list_by_session(
        self,
        session_id: str,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[MemoryRecord]:
        self._ensure_initialized()
        return await self.store.list_by_session(session_id, limit=limit)

    async def close(self) -> None:
        """Clean up resources."""
        await self.store.backend.close()
        if self.similarity.index is not self.store.backend:
            await self.similarity.index.close()
        await self.embedding_service.close()
        self._initialized = False
        logger.info("MemoryManager closed")


def create_backend(config: Config) -> StorageBackend:
    """Build the storage backend named in the config."""
    schemas = [memory_table(config.storage.table_name)]
    backend = config.storage.backend

    if backend == "memory":
        return InMemoryBackend(schemas)
    elif backend == "chroma":
        return ChromaBackend(schemas, persist_directory=config.storage.chroma_path)
    elif backend == "pgvector":
        if not config.storage.postgres_url:
            raise ValueError("postgres_url required for pgvector backend")
        from .pgvector_store import PgVectorBackend
        return PgVectorBackend(schemas, connection_string=config.storage.postgres_url)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")


async def create_memory_manager(
    config: Optional[Config] = None,
    backend: Optional[StorageBackend] = None,
    embedding_service: Optional[EmbeddingService] = None,
) -> MemoryManager:
    """
    Factory function to create a configured MemoryManager.

    Args:
        config: Settings; a fresh Config() when omitted
        backend: Use this backend instead of the configured one
        embedding_service: Use this embedding service instead of the configured one

    Returns:
        Initialized MemoryManager
    """
    config = config or Config()

    if embedding_service is None:
        embedding_service = create_embedding_service(
            provider=config.embedding.provider,
            api_key=config.embedding.api_key,
            model=config.embedding.model,
            timeout=config.embedding.timeout_seconds,
            max_input_chars=config.embedding.max_input_chars,
            base_url=config.embedding.base_url,
        )

    if backend is None:
        backend = create_backend(config)

    schema = memory_table(config.storage.table_name)
    if schema.name not in backend.schemas:
        raise ValueError(f"Backend does not serve table {schema.name!r}")

    manager = MemoryManager(
        store=MemoryStore(backend, schema=backend.schemas[schema.name]),
        embedding_service=embedding_service,
    )

    await manager.initialize()
    return manager
