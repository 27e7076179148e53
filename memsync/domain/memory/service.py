"""
MemoryStore for MemSync.

Keeps memory rows in the relational store and their vectors in the vector
index in agreement. The relational row is always written first and is the
ground truth; the vector point shares the row's id and can be rebuilt from it
(see ``memsync.domain.maintenance``).

Degraded states left behind on partial failure, all logged with the record id:

- row without vector (``vector_id`` is None): embedding or upsert failed;
  ``IndexMaintenance.reindex_memories`` repairs it.
- vector without ``vector_id`` patch: harmless, the point id is the row id.
- vector without row: delete succeeded relationally but not in the index;
  search drops it and ``IndexMaintenance.purge_orphans`` removes it.
"""

from __future__ import annotations

import logging

from memsync.core.errors import DependencyError, ValidationError
from memsync.core.models import DEFAULT_MEMORY_TYPE, MemoryRecord
from memsync.domain.ranking import merge_in_rank_order
from memsync.infrastructure.embeddings.base import Embedder
from memsync.infrastructure.persistence import DuckDBStore
from memsync.infrastructure.vector.base import VectorIndex
from memsync.utils.logging import log_error, log_operation

logger = logging.getLogger(__name__)


class MemoryStore:
    """Coordinator for semantic memories across relational store and vector index."""

    def __init__(
        self,
        store: DuckDBStore,
        embedder: Embedder,
        vector_index: VectorIndex,
        collection: str = "memories",
        distance: str = "cosine",
    ):
        """Initialize the coordinator.

        Args:
            store: Relational store (ground truth)
            embedder: Embedding adapter
            vector_index: Vector index adapter
            collection: Vector collection holding memory points
            distance: Distance metric for the collection
        """
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.collection = collection
        self.distance = distance

    async def ensure_ready(self) -> None:
        """Open the relational store and create the vector collection. Idempotent."""
        await self.store.connect()
        await self._ensure_collection()

    async def _ensure_collection(self) -> None:
        await self.vector_index.ensure_collection(self.collection, self.embedder.dimension, self.distance)

    async def _index(self, record: MemoryRecord, vector: list[float]) -> None:
        await self._ensure_collection()
        await self.vector_index.upsert(self.collection, record.id, vector, record.to_payload())

    # ========== Write paths ==========

    async def add_memory(
        self,
        content: str,
        memory_type: str = DEFAULT_MEMORY_TYPE,
        user_id: str | None = None,
    ) -> MemoryRecord:
        """Store a memory and index it.

        The row is inserted first. If embedding or indexing fails the row is
        returned unindexed (``vector_id`` None) instead of raising.

        Raises:
            ValidationError: content is empty
            RelationalStoreError: the row could not be inserted
        """
        if not content or not content.strip():
            raise ValidationError("Memory content must not be empty", field="content")

        record = await self.store.insert_memory(content, memory_type or DEFAULT_MEMORY_TYPE, user_id)

        try:
            vector = await self.embedder.embed(content)
            await self._index(record, vector)
        except DependencyError as e:
            log_error(logger, "index memory", e, {"record_id": record.id}, level=logging.WARNING)
            return record

        try:
            patched = await self.store.set_memory_vector_id(record.id, record.id)
        except DependencyError as e:
            # The point is keyed by the row id, so the index is still usable
            log_error(logger, "patch vector_id", e, {"record_id": record.id}, level=logging.WARNING)
            return record

        log_operation(logger, "Added memory", {"id": record.id, "type": record.type})
        return patched or record

    async def update_memory(
        self,
        memory_id: str,
        content: str,
        memory_type: str | None = None,
    ) -> MemoryRecord | None:
        """Replace a memory's content (and type, if given) and refresh its vector.

        The new embedding is computed before any store is touched, so an
        embedding failure leaves both stores unchanged.

        Returns:
            The updated record, or None when no memory has this id

        Raises:
            ValidationError: content is empty
            EmbeddingError: the embedding could not be computed (nothing mutated)
        """
        if not content or not content.strip():
            raise ValidationError("Memory content must not be empty", field="content")

        if await self.store.get_memory(memory_id) is None:
            return None

        vector = await self.embedder.embed(content)

        updated = await self.store.update_memory(memory_id, content, memory_type)
        if updated is None:
            # Deleted concurrently between the lookup and the update
            return None

        try:
            await self._index(updated, vector)
        except DependencyError as e:
            # The old point now carries stale content; mark the row for reindex
            log_error(logger, "refresh memory vector", e, {"record_id": memory_id}, level=logging.WARNING)
            try:
                return await self.store.set_memory_vector_id(memory_id, None) or updated
            except DependencyError as patch_error:
                log_error(logger, "mark memory unindexed", patch_error, {"record_id": memory_id})
                return updated

        if updated.vector_id is None:
            updated = await self.store.set_memory_vector_id(memory_id, memory_id) or updated

        log_operation(logger, "Updated memory", {"id": memory_id})
        return updated

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory row, then its vector point.

        Returns:
            True when the row was deleted and the point is gone. False when
            no row had this id, the row delete failed, or the point could not
            be removed (an orphan left for ``purge_orphans``).
        """
        try:
            deleted = await self.store.delete_memory(memory_id)
        except DependencyError as e:
            log_error(logger, "delete memory row", e, {"record_id": memory_id})
            return False

        if not deleted:
            return False

        try:
            await self.vector_index.delete(self.collection, [memory_id])
        except DependencyError as e:
            log_error(logger, "delete memory vector", e, {"record_id": memory_id, "orphan": True})
            return False

        log_operation(logger, "Deleted memory", {"id": memory_id})
        return True

    # ========== Read paths ==========

    async def similarity_search(
        self,
        query: str,
        limit: int = 5,
        user_id: str | None = None,
    ) -> list[MemoryRecord]:
        """Memories closest to ``query``, best match first.

        Ids whose row no longer exists are dropped. Dependency failures are
        logged and yield an empty list.

        Args:
            query: Free-text query
            limit: Maximum number of results
            user_id: Restrict results to this user's memories
        """
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")

        try:
            vector = await self.embedder.embed(query)
            await self._ensure_collection()
            hits = await self.vector_index.search(
                self.collection,
                vector,
                limit,
                filters={"user_id": user_id} if user_id is not None else None,
            )
            ranked = [hit.id for hit in hits]
            rows = await self.store.get_memories(ranked)
        except DependencyError as e:
            log_error(logger, "similarity search", e, {"limit": limit}, level=logging.WARNING)
            return []

        results = merge_in_rank_order(ranked, rows, key=lambda record: record.id, limit=limit)
        if len(results) < len(set(ranked)):
            logger.debug(f"Dropped {len(set(ranked)) - len(results)} hit(s) without a matching row")
        return results

    async def get_memory(self, memory_id: str) -> MemoryRecord | None:
        return await self.store.get_memory(memory_id)

    async def list_memories(self, user_id: str | None = None, limit: int | None = None) -> list[MemoryRecord]:
        """All memories, most recently updated first."""
        return await self.store.list_memories(user_id=user_id, limit=limit)
