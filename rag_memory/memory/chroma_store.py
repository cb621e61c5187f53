"""
ChromaDB Storage Backend.

ChromaDB is perfect for local/development use:
- No server required
- Stores everything in a local directory
- Built-in persistence
- Cosine-space HNSW index for similarity search

Each table is one collection. The full document is kept as JSON in the
collection's documents so values Chroma metadata can't hold (lists, None,
float64 vectors) survive a round trip; index fields are mirrored into
metadata for filtering.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Literal, Optional

from .base import StorageBackend, TableSchema, VectorHit

logger = logging.getLogger("rag_memory.memory.chroma")

SEQUENCE_KEY = "_seq"

# Sequences are per client, so writers sharing a directory can collide
TIMESTAMP_FIELD = "created_at"


class ChromaBackend(StorageBackend):
    """
    ChromaDB implementation of the storage backend.

    Stores memories locally with full persistence.
    """

    def __init__(
        self,
        schemas: list[TableSchema],
        persist_directory: str = "./memory_store",
    ):
        super().__init__(schemas)
        self.persist_directory = Path(persist_directory)
        self._client = None
        self._collections: dict[str, Any] = {}
        self._sequence = 0
        logger.info(f"ChromaBackend configured with directory: {persist_directory}")

    async def initialize(self) -> None:
        """Initialize ChromaDB client and collections."""
        try:
            import chromadb
            from chromadb.config import Settings
        except ImportError:
            raise RuntimeError(
                "chromadb not installed. Install with: pip install chromadb"
            )

        # Create persist directory if needed
        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self._client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )

        for name in self.schemas:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )
            self._collections[name] = collection
            self._sequence = max(self._sequence, self._max_sequence(collection))
            logger.info(f"ChromaDB collection {name} has {collection.count()} existing documents")

    def _max_sequence(self, collection) -> int:
        """Resume the insertion counter from what's already persisted."""
        if collection.count() == 0:
            return 0
        results = collection.get(include=["metadatas"])
        return max((m.get(SEQUENCE_KEY, 0) for m in results["metadatas"]), default=0)

    def _collection(self, table: str):
        if self._client is None:
            raise RuntimeError("ChromaBackend not initialized. Call initialize() first.")
        self._schema(table)
        return self._collections[table]

    def _metadata(self, schema: TableSchema, fields: dict[str, Any], sequence: int) -> dict:
        """Mirror scalar index/filter fields into Chroma metadata."""
        keys = {key for index in schema.indexes.values() for key in index}
        if schema.vector_index:
            keys.update(schema.vector_index.filter_fields)

        metadata: dict[str, Any] = {SEQUENCE_KEY: sequence}
        for key in keys:
            value = fields.get(key)
            if isinstance(value, (str, int, float, bool)):
                metadata[key] = value
        return metadata

    @staticmethod
    def _where(equality: dict[str, Any]) -> Optional[dict]:
        """Build a Chroma where clause from equality filters."""
        if not equality:
            return None
        clauses = [{key: value} for key, value in equality.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    async def insert(self, table: str, fields: dict[str, Any]) -> str:
        collection = self._collection(table)
        schema = self._schema(table)
        id = uuid.uuid4().hex
        self._sequence += 1

        kwargs: dict[str, Any] = {
            "ids": [id],
            "documents": [json.dumps(fields)],
            "metadatas": [self._metadata(schema, fields, self._sequence)],
        }
        if schema.vector_index:
            kwargs["embeddings"] = [fields[schema.vector_index.field]]

        collection.add(**kwargs)
        logger.debug(f"Stored document {id} in {table}")
        return id

    async def get(self, table: str, id: str) -> Optional[dict[str, Any]]:
        results = self._collection(table).get(ids=[id], include=["documents"])
        if results["ids"]:
            return json.loads(results["documents"][0])
        return None

    async def delete(self, table: str, id: str) -> None:
        self._collection(table).delete(ids=[id])

    async def query_by_index(
        self,
        table: str,
        index_name: str,
        equality: dict[str, Any],
        order: Literal["asc", "desc"] = "desc",
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        collection = self._collection(table)
        fields = self._schema(table).index_fields(index_name)
        unknown = set(equality) - set(fields)
        if unknown:
            raise ValueError(f"Fields {sorted(unknown)} are not part of index {index_name!r}")

        if collection.count() == 0:
            return []

        # Chroma has no ordered scans, so fetch matches and sort here
        results = collection.get(
            where=self._where(equality),
            include=["documents", "metadatas"],
        )

        rows = []
        for i, id in enumerate(results["ids"]):
            document = json.loads(results["documents"][i])
            sort_key = (
                document.get(TIMESTAMP_FIELD) or 0,
                results["metadatas"][i].get(SEQUENCE_KEY, 0),
            )
            rows.append((sort_key, id, document))
        rows.sort(key=lambda r: r[0], reverse=(order == "desc"))
        if limit is not None:
            rows = rows[:limit]
        return [(id, document) for _, id, document in rows]

    async def vector_search(
        self,
        table: str,
        index_name: str,
        vector: list[float],
        limit: int,
        filters: dict[str, Any],
    ) -> list[VectorHit]:
        collection = self._collection(table)
        self._schema(table).check_vector_index(index_name, filters)

        count = collection.count()
        if count == 0 or limit <= 0:
            return []

        results = collection.query(
            query_embeddings=[vector],
            n_results=min(limit, count),
            where=self._where(filters),
            include=["distances"],
        )

        hits = []
        if results["ids"] and results["ids"][0]:
            for i, id in enumerate(results["ids"][0]):
                # Cosine distance -> similarity
                hits.append(VectorHit(id=id, score=1 - results["distances"][0][i]))

        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    async def close(self) -> None:
        """Clean up resources."""
        # ChromaDB PersistentClient handles cleanup automatically
        self._client = None
        self._collections = {}
        logger.info("ChromaDB connection closed")
