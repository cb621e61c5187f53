"""
Similarity search over stored memories.

The vector index only returns ids and scores; records are hydrated
through the MemoryStore. The index and the record store may be separate
subsystems, so either can be swapped without touching the other.
"""

import asyncio
import logging
from typing import Optional

from .base import SearchResult, StorageBackend, validate_memory_type
from .embeddings import EmbeddingService
from .memory_store import MemoryStore, check_limit

logger = logging.getLogger("rag_memory.memory.search")

DEFAULT_SEARCH_LIMIT = 5


class SimilaritySearch:
    """Embed a query, rank stored vectors against it, and hydrate the hits."""

    def __init__(
        self,
        store: MemoryStore,
        embedding_service: EmbeddingService,
        index: Optional[StorageBackend] = None,
    ):
        self.store = store
        self.embedding_service = embedding_service
        self.index = index or store.backend

    async def search(
        self,
        project_id: str,
        query: str,
        type: Optional[str] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchResult]:
        """
        Find the memories most similar to a query.

        Args:
            project_id: Project to search in
            query: Free-text query
            type: Restrict to one memory type
            limit: Maximum number of results

        Returns:
            Results ordered best match first. Hits whose record has been
            deleted in the meantime are dropped.
        """
        check_limit(limit)
        filters = {"project_id": project_id}
        if type is not None:
            filters["type"] = validate_memory_type(type)

        if limit == 0:
            return []

        query_embedding = await self.embedding_service.embed(query)

        vector_index = self.store.schema.vector_index
        hits = await self.index.vector_search(
            self.store.table,
            vector_index.name,
            query_embedding,
            limit,
            filters,
        )

        records = await asyncio.gather(*(self.store.get_by_id(hit.id) for hit in hits))

        results = []
        for hit, record in zip(hits, records):
            if record is None:
                logger.debug(f"Dropping search hit {hit.id}: memory no longer exists")
                continue
            results.append(SearchResult(record=record, score=hit.score))

        logger.info(f"Search in project {project_id} returned {len(results)} memories")
        for r in results:
            logger.debug(f"  - {r.record.id} ({r.record.type}): score={r.score:.3f}")

        return results[:limit]
