"""
In-memory storage backend.

Keeps documents in plain dicts and ranks vectors by brute-force cosine
similarity. Used by the unit tests and handy for local experiments; nothing
survives the process.
"""

import copy
import logging
import math
import uuid
from typing import Any, Literal, Optional

from .base import StorageBackend, TableSchema, VectorHit

logger = logging.getLogger("rag_memory.memory.in_memory")


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity, 0.0 when either vector has no magnitude."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryBackend(StorageBackend):
    """Dict-backed implementation of the storage backend."""

    def __init__(self, schemas: list[TableSchema]):
        super().__init__(schemas)
        # table -> id -> (sequence, document); dicts keep insertion order
        self._tables: dict[str, dict[str, tuple[int, dict[str, Any]]]] | None = None
        self._sequence = 0

    async def initialize(self) -> None:
        if self._tables is None:
            self._tables = {name: {} for name in self.schemas}
        logger.info(f"InMemoryBackend initialized with tables: {', '.join(self.schemas)}")

    def _rows(self, table: str) -> dict[str, tuple[int, dict[str, Any]]]:
        if self._tables is None:
            raise RuntimeError("InMemoryBackend not initialized. Call initialize() first.")
        self._schema(table)
        return self._tables[table]

    async def insert(self, table: str, fields: dict[str, Any]) -> str:
        rows = self._rows(table)
        id = uuid.uuid4().hex
        self._sequence += 1
        rows[id] = (self._sequence, copy.deepcopy(fields))
        return id

    async def get(self, table: str, id: str) -> Optional[dict[str, Any]]:
        row = self._rows(table).get(id)
        if row is None:
            return None
        return copy.deepcopy(row[1])

    async def delete(self, table: str, id: str) -> None:
        self._rows(table).pop(id, None)

    async def query_by_index(
        self,
        table: str,
        index_name: str,
        equality: dict[str, Any],
        order: Literal["asc", "desc"] = "desc",
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        rows = self._rows(table)
        fields = self._schema(table).index_fields(index_name)
        unknown = set(equality) - set(fields)
        if unknown:
            raise ValueError(f"Fields {sorted(unknown)} are not part of index {index_name!r}")

        matches = [
            (seq, id, document)
            for id, (seq, document) in rows.items()
            if all(document.get(key) == value for key, value in equality.items())
        ]
        matches.sort(key=lambda m: m[0], reverse=(order == "desc"))
        if limit is not None:
            matches = matches[:limit]
        return [(id, copy.deepcopy(document)) for _, id, document in matches]

    async def vector_search(
        self,
        table: str,
        index_name: str,
        vector: list[float],
        limit: int,
        filters: dict[str, Any],
    ) -> list[VectorHit]:
        rows = self._rows(table)
        vector_index = self._schema(table).check_vector_index(index_name, filters)

        hits = [
            VectorHit(id=id, score=cosine_similarity(vector, document[vector_index.field]))
            for id, (_, document) in rows.items()
            if all(document.get(key) == value for key, value in filters.items())
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    async def close(self) -> None:
        self._tables = None
        logger.info("InMemoryBackend closed")
