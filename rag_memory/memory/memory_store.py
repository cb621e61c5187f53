"""
Memory Store - record lifecycle over a storage backend.

Assigns ids and creation timestamps, converts between records and
storage documents, and implements the per-project listing and cleanup
operations. Backend failures are not retried here; they propagate.
"""

import logging
import time
from typing import Optional

from .base import (
    MEMORY_TABLE,
    MemoryRecord,
    PartialDeleteError,
    StorageBackend,
    TableSchema,
    validate_memory_type,
)

logger = logging.getLogger("rag_memory.memory.store")

DEFAULT_LIST_LIMIT = 50
DEFAULT_RECENT_LIMIT = 10


def _now_ms() -> int:
    return int(time.time() * 1000)


def check_limit(limit: int) -> int:
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
        raise ValueError(f"limit must be a non-negative integer, got {limit!r}")
    return limit


class MemoryStore:
    """
    CRUD-style operations over memory records, partitioned by project.

    Records are immutable once inserted; there is no update operation.
    """

    def __init__(self, backend: StorageBackend, schema: TableSchema = MEMORY_TABLE):
        self.backend = backend
        self.schema = schema
        self._last_created_at = 0

    @property
    def table(self) -> str:
        return self.schema.name

    def _next_created_at(self) -> int:
        # Wall clock can step backwards; never hand out an earlier timestamp
        created_at = max(_now_ms(), self._last_created_at)
        self._last_created_at = created_at
        return created_at

    def _to_record(self, id: str, document: dict) -> MemoryRecord:
        return MemoryRecord.from_document(id, document)

    async def insert(self, record: MemoryRecord) -> str:
        """
        Persist a new record.

        Args:
            record: An unpersisted record (id and created_at unset)

        Returns:
            The new memory id
        """
        if record.id is not None:
            raise ValueError(f"Memory {record.id} is already stored; records are immutable")

        document = record.to_document()
        document["created_at"] = self._next_created_at()

        memory_id = await self.backend.insert(self.table, document)
        logger.info(f"Stored {record.type} memory {memory_id} for project {record.project_id}")
        return memory_id

    async def get_by_id(self, memory_id: str) -> Optional[MemoryRecord]:
        """Get a memory by id, or None if it doesn't exist."""
        document = await self.backend.get(self.table, memory_id)
        if document is None:
            return None
        return self._to_record(memory_id, document)

    async def delete_by_id(self, memory_id: str) -> bool:
        """Delete one memory. Deleting an unknown id still reports success."""
        await self.backend.delete(self.table, memory_id)
        logger.info(f"Deleted memory {memory_id}")
        return True

    async def delete_all_for_project(self, project_id: str) -> int:
        """
        Delete every memory of a project.

        Not atomic: records are read first, then deleted one by one.
        Concurrent inserts may or may not be included, and a failure
        partway leaves the earlier deletions in place.

        Returns:
            Number of memories deleted

        Raises:
            PartialDeleteError: If the backend fails after the read
        """
        rows = await self.backend.query_by_index(
            self.table, "by_project", {"project_id": project_id}
        )

        deleted = 0
        for memory_id, _ in rows:
            try:
                await self.backend.delete(self.table, memory_id)
            except Exception as e:
                logger.error(
                    f"Clearing project {project_id} stopped after {deleted}/{len(rows)} deletions: {e}"
                )
                raise PartialDeleteError(project_id, deleted, e) from e
            deleted += 1

        logger.info(f"Cleared {deleted} memories for project {project_id}")
        return deleted

    async def list_by_project(
        self,
        project_id: str,
        type: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[MemoryRecord]:
        """
        List a project's memories, most recent first.

        Args:
            project_id: Project to list
            type: Restrict to one memory type
            limit: Maximum number of memories

        Returns:
            Memories ordered by creation time, newest first
        """
        check_limit(limit)
        if type is not None:
            validate_memory_type(type)
            index_name, equality = "by_type", {"project_id": project_id, "type": type}
        else:
            index_name, equality = "by_project", {"project_id": project_id}

        if limit == 0:
            return []

        rows = await self.backend.query_by_index(
            self.table, index_name, equality, order="desc", limit=limit
        )
        return [self._to_record(id, document) for id, document in rows]

    async def get_recent(
        self,
        project_id: str,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> list[MemoryRecord]:
        """Get a project's most recent memories."""
        return await self.list_by_project(project_id, limit=limit)

    async def list_by_session(
        self,
        session_id: str,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[MemoryRecord]:
        """List the memories recorded during one working session, newest first."""
        check_limit(limit)
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        if limit == 0:
            return []

        rows = await self.backend.query_by_index(
            self.table, "by_session", {"session_id": session_id}, order="desc", limit=limit
        )
        return [self._to_record(id, document) for id, document in rows]
