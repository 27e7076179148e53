"""Index Maintenance Tests.

Tests for rebuilding the vector index from the relational store and purging
orphan points.
"""

import unittest
from datetime import UTC, datetime
from unittest import mock

from memsync.core.models import CalendarEventCreate
from memsync.domain.maintenance import IndexMaintenance
from memsync.domain.memory import MemoryStore
from memsync.infrastructure.persistence import DuckDBStore
from memsync.infrastructure.vector import QdrantVectorIndex
from memsync.utils.ids import generate_id

from tests.fakes import FlakyVectorIndex, HashingEmbedder


class IndexMaintenanceTest(unittest.IsolatedAsyncioTestCase):
    """Test reindex and orphan purge."""

    async def asyncSetUp(self) -> None:
        self.store = DuckDBStore(":memory:")
        self.embedder = HashingEmbedder()
        self.index = FlakyVectorIndex(QdrantVectorIndex(":memory:"))
        self.memories = MemoryStore(self.store, self.embedder, self.index, collection="memories")
        self.maintenance = IndexMaintenance(
            self.store, self.embedder, self.index,
            memory_collection="memories",
            event_collection="calendar_events",
        )
        await self.memories.ensure_ready()

    async def asyncTearDown(self) -> None:
        await self.index.close()
        await self.store.close()

    async def test_reindex_repairs_unindexed_memories(self) -> None:
        """Test that records left unindexed become searchable again."""
        self.embedder.fail = True
        record = await self.memories.add_memory("Favorite color is blue")
        self.embedder.fail = False
        self.assertEqual(await self.memories.similarity_search("Favorite color is blue", 5), [])

        result = await self.maintenance.reindex_memories()

        self.assertEqual(result.indexed, 1)
        self.assertTrue(result.ok)
        self.assertEqual((await self.store.get_memory(record.id)).vector_id, record.id)
        results = await self.memories.similarity_search("Favorite color is blue", 5)
        self.assertEqual([r.id for r in results], [record.id])

    async def test_reindex_only_missing_skips_indexed(self) -> None:
        await self.memories.add_memory("already indexed")
        self.embedder.calls.clear()

        result = await self.maintenance.reindex_memories()
        self.assertEqual(result.indexed, 0)
        self.assertEqual(self.embedder.calls, [])

        full = await self.maintenance.reindex_memories(only_missing=False)
        self.assertEqual(full.indexed, 1)

    async def test_reindex_reports_failures(self) -> None:
        self.embedder.fail = True
        record = await self.memories.add_memory("still failing")

        result = await self.maintenance.reindex_memories()
        self.assertFalse(result.ok)
        self.assertEqual(result.failed, [record.id])

    async def test_reindex_events(self) -> None:
        event = await self.store.insert_event(
            CalendarEventCreate(
                title="Standup",
                start=datetime(2024, 1, 1, 9, tzinfo=UTC),
                end=datetime(2024, 1, 1, 9, 15, tzinfo=UTC),
            ),
            "u1",
        )

        result = await self.maintenance.reindex_events()
        self.assertEqual(result.indexed, 1)
        self.assertEqual(await self.index.list_ids("calendar_events"), [event.id])

        self.assertEqual((await self.maintenance.reindex_events(user_id="u2")).indexed, 0)

    async def test_purge_orphans(self) -> None:
        """Test that only points without a row are removed."""
        kept = await self.memories.add_memory("kept")
        orphan_id = generate_id()
        vector = await self.embedder.embed("orphan")
        await self.index.upsert("memories", orphan_id, vector, {"content": "orphan"})

        removed = await self.maintenance.purge_orphans()

        self.assertEqual(removed, {"memories": 1, "calendar_events": 0})
        self.assertEqual(await self.index.list_ids("memories"), [kept.id])

    async def test_purge_keeps_memory_added_during_the_scan(self) -> None:
        """Test that a memory added while orphans are being listed stays searchable."""
        list_memory_ids = self.store.list_memory_ids
        added = []

        async def list_ids_then_add() -> list[str]:
            ids = await list_memory_ids()
            if not added:
                added.append(await self.memories.add_memory("Favorite color is blue"))
            return ids

        with mock.patch.object(self.store, "list_memory_ids", list_ids_then_add):
            removed = await self.maintenance.purge_orphans()

        record = added[0]
        self.assertEqual(removed["memories"], 0)
        self.assertIn(record.id, await self.index.list_ids("memories"))
        results = await self.memories.similarity_search("Favorite color is blue", 5)
        self.assertEqual([r.id for r in results], [record.id])

    async def test_purge_after_failed_vector_delete(self) -> None:
        record = await self.memories.add_memory("temporary")
        self.index.fail_delete = True
        self.assertFalse(await self.memories.delete_memory(record.id))
        self.index.fail_delete = False

        removed = await self.maintenance.purge_orphans()
        self.assertEqual(removed["memories"], 1)
        self.assertEqual(await self.index.list_ids("memories"), [])


if __name__ == "__main__":
    unittest.main()
