"""
Index maintenance for MemSync.

The vector index is derived from the relational store. These operations
rebuild it from the rows and clear points whose row is gone, repairing the
degraded states the coordinators may leave behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from memsync.core.errors import DependencyError
from memsync.infrastructure.embeddings.base import Embedder
from memsync.infrastructure.persistence import DuckDBStore
from memsync.infrastructure.vector.base import VectorIndex
from memsync.utils.logging import log_error, log_operation

logger = logging.getLogger(__name__)


@dataclass
class ReindexResult:
    """Outcome of a reindex run."""
    indexed: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class IndexMaintenance:
    """Rebuild and clean the vector index from the relational store."""

    def __init__(
        self,
        store: DuckDBStore,
        embedder: Embedder,
        vector_index: VectorIndex,
        memory_collection: str = "memories",
        event_collection: str = "calendar_events",
        distance: str = "cosine",
    ):
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.memory_collection = memory_collection
        self.event_collection = event_collection
        self.distance = distance

    async def _ensure_collections(self) -> None:
        for name in (self.memory_collection, self.event_collection):
            await self.vector_index.ensure_collection(name, self.embedder.dimension, self.distance)

    async def reindex_memories(self, only_missing: bool = True) -> ReindexResult:
        """Embed and upsert memories, then record their ``vector_id``.

        Args:
            only_missing: Only rows with no ``vector_id`` (default); False rebuilds every row
        """
        await self._ensure_collections()
        if only_missing:
            records = await self.store.list_unindexed_memories()
        else:
            records = await self.store.list_memories()

        result = ReindexResult()
        for record in records:
            try:
                vector = await self.embedder.embed(record.content)
                await self.vector_index.upsert(self.memory_collection, record.id, vector, record.to_payload())
                if record.vector_id != record.id:
                    await self.store.set_memory_vector_id(record.id, record.id)
                result.indexed += 1
            except DependencyError as e:
                log_error(logger, "reindex memory", e, {"record_id": record.id}, level=logging.WARNING)
                result.failed.append(record.id)

        log_operation(
            logger, "Reindexed memories",
            {"indexed": result.indexed, "failed": len(result.failed), "only_missing": only_missing},
        )
        return result

    async def reindex_events(self, user_id: str | None = None) -> ReindexResult:
        """Embed and upsert every event row (optionally for one user)."""
        await self._ensure_collections()
        result = ReindexResult()
        for event in await self.store.list_events(user_id):
            try:
                vector = await self.embedder.embed(event.embedding_text())
                await self.vector_index.upsert(self.event_collection, event.id, vector, event.to_payload())
                result.indexed += 1
            except DependencyError as e:
                log_error(logger, "reindex event", e, {"event_id": event.id}, level=logging.WARNING)
                result.failed.append(event.id)

        log_operation(logger, "Reindexed events", {"indexed": result.indexed, "failed": len(result.failed)})
        return result

    async def purge_orphans(self) -> dict[str, int]:
        """Delete vector points whose relational row no longer exists.

        Returns:
            Number of points removed per collection
        """
        await self._ensure_collections()
        sources = {
            self.memory_collection: self.store.list_memory_ids,
            self.event_collection: self.store.list_event_ids,
        }

        removed: dict[str, int] = {}
        for collection, list_row_ids in sources.items():
            # Points before rows: rows are written before their points, so a
            # point listed here whose row is missing below was really deleted
            point_ids = await self.vector_index.list_ids(collection)
            row_ids = set(await list_row_ids())
            orphans = [point_id for point_id in point_ids if point_id not in row_ids]
            await self.vector_index.delete(collection, orphans)
            removed[collection] = len(orphans)
            if orphans:
                logger.warning(f"Purged {len(orphans)} orphan point(s) from '{collection}'")

        return removed
