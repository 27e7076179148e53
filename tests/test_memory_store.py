"""MemoryStore Tests.

Exercises the memory coordinator against real DuckDB and Qdrant local mode,
with a deterministic hashing embedder.
"""

import asyncio
import unittest

from memsync.core.errors import EmbeddingError, ValidationError
from memsync.domain.memory import MemoryStore
from memsync.infrastructure.persistence import DuckDBStore
from memsync.infrastructure.vector import QdrantVectorIndex

from tests.fakes import FlakyVectorIndex, HashingEmbedder


class MemoryStoreTest(unittest.IsolatedAsyncioTestCase):
    """Test add/search/update/delete across both stores."""

    async def asyncSetUp(self) -> None:
        self.store = DuckDBStore(":memory:")
        self.embedder = HashingEmbedder()
        self.index = FlakyVectorIndex(QdrantVectorIndex(":memory:"))
        self.memories = MemoryStore(self.store, self.embedder, self.index, collection="memories")
        await self.memories.ensure_ready()

    async def asyncTearDown(self) -> None:
        await self.index.close()
        await self.store.close()

    async def test_add_memory_indexes_record(self) -> None:
        """Test the three-phase write ends with vector_id equal to id."""
        record = await self.memories.add_memory("Favorite color is blue", "preference", "u1")

        self.assertEqual(record.vector_id, record.id)
        self.assertEqual(await self.index.list_ids("memories"), [record.id])
        stored = await self.store.get_memory(record.id)
        self.assertEqual(stored.vector_id, record.id)

    async def test_favorite_color_scenario(self) -> None:
        """Test that a related question finds the stored preference."""
        record = await self.memories.add_memory("Favorite color is blue", "preference", "u1")
        await self.memories.add_memory("Dentist appointment on Friday", "general", "u1")

        results = await self.memories.similarity_search("what color do I like", 5)
        self.assertIn(record.id, [r.id for r in results])

    async def test_exact_content_is_top_match(self) -> None:
        """Test that searching a memory's own content ranks it first."""
        contents = [
            "The quarterly budget review is on Monday",
            "My cat is called Pixel",
            "Passport expires in March",
        ]
        records = [await self.memories.add_memory(content) for content in contents]

        for record in records:
            results = await self.memories.similarity_search(record.content, 1)
            self.assertEqual([r.id for r in results], [record.id])

    async def test_search_respects_limit_and_has_no_duplicates(self) -> None:
        for i in range(6):
            await self.memories.add_memory(f"note number {i} about gardening")

        results = await self.memories.similarity_search("gardening", 4)
        ids = [r.id for r in results]
        self.assertLessEqual(len(ids), 4)
        self.assertEqual(len(ids), len(set(ids)))

    async def test_search_filters_by_user(self) -> None:
        mine = await self.memories.add_memory("likes green tea", "preference", "u1")
        await self.memories.add_memory("likes green tea", "preference", "u2")

        results = await self.memories.similarity_search("green tea", 5, user_id="u1")
        self.assertEqual([r.id for r in results], [mine.id])

    async def test_search_drops_rows_deleted_behind_the_index(self) -> None:
        """Test that hits whose row is gone are silently skipped."""
        kept = await self.memories.add_memory("alpha beta")
        gone = await self.memories.add_memory("alpha gamma")
        await self.store.delete_memory(gone.id)

        results = await self.memories.similarity_search("alpha", 5)
        self.assertEqual([r.id for r in results], [kept.id])

    async def test_embedding_failure_leaves_unindexed_record(self) -> None:
        """Test that add degrades to a stored but unindexed record."""
        self.embedder.fail = True
        record = await self.memories.add_memory("remember the milk")

        self.assertIsNone(record.vector_id)
        self.assertIsNotNone(await self.store.get_memory(record.id))
        self.assertEqual(await self.index.list_ids("memories"), [])

    async def test_upsert_failure_leaves_unindexed_record(self) -> None:
        self.index.fail_upsert = True
        record = await self.memories.add_memory("remember the milk")

        self.assertFalse(record.is_indexed)
        unindexed = await self.store.list_unindexed_memories()
        self.assertEqual([r.id for r in unindexed], [record.id])

    async def test_empty_content_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            await self.memories.add_memory("   ")
        self.assertEqual(await self.memories.list_memories(), [])

    async def test_delete_removes_from_search(self) -> None:
        """Test that a deleted memory is never returned again."""
        record = await self.memories.add_memory("Favorite color is blue")

        self.assertTrue(await self.memories.delete_memory(record.id))
        self.assertIsNone(await self.memories.get_memory(record.id))
        results = await self.memories.similarity_search("Favorite color is blue", 5)
        self.assertNotIn(record.id, [r.id for r in results])

    async def test_delete_missing_returns_false(self) -> None:
        self.assertFalse(await self.memories.delete_memory("no-such-id"))

    async def test_delete_with_vector_failure_reports_false(self) -> None:
        """Test that a failed point delete is reported and the row stays deleted."""
        record = await self.memories.add_memory("temporary note")
        self.index.fail_delete = True

        self.assertFalse(await self.memories.delete_memory(record.id))
        self.assertIsNone(await self.store.get_memory(record.id))
        # The orphan point is never surfaced by search
        self.index.fail_delete = False
        self.assertEqual(await self.memories.similarity_search("temporary note", 5), [])

    async def test_delete_of_unindexed_record_succeeds(self) -> None:
        """Test that a missing point counts as already deleted."""
        self.embedder.fail = True
        record = await self.memories.add_memory("never indexed")
        self.embedder.fail = False

        self.assertTrue(await self.memories.delete_memory(record.id))

    async def test_delete_after_collection_dropped_succeeds(self) -> None:
        """Test that a dropped collection counts as the point being gone."""
        record = await self.memories.add_memory("rebuild pending")
        self.index.inner.client.delete_collection("memories")

        self.assertTrue(await self.memories.delete_memory(record.id))
        self.assertIsNone(await self.store.get_memory(record.id))

    async def test_update_shifts_search_results(self) -> None:
        """Test that queries follow the new content after an update."""
        record = await self.memories.add_memory("cats are wonderful pets")
        other = await self.memories.add_memory("budget spreadsheet draft")

        updated = await self.memories.update_memory(record.id, "quarterly budget review meeting", "work")
        self.assertEqual(updated.type, "work")
        self.assertEqual(updated.vector_id, record.id)

        results = await self.memories.similarity_search("quarterly budget review meeting", 2)
        self.assertEqual(results[0].id, record.id)
        self.assertEqual(results[0].content, "quarterly budget review meeting")

        stale = await self.memories.similarity_search("cats are wonderful pets", 2)
        self.assertNotIn("cats are wonderful pets", [r.content for r in stale])
        self.assertIn(other.id, [r.id for r in stale])

    async def test_update_missing_returns_none(self) -> None:
        self.assertIsNone(await self.memories.update_memory("no-such-id", "content"))
        self.assertEqual(self.embedder.calls, [])

    async def test_update_embedding_failure_mutates_nothing(self) -> None:
        """Test that the embedding is computed before either store changes."""
        record = await self.memories.add_memory("original content")
        self.embedder.fail = True

        with self.assertRaises(EmbeddingError):
            await self.memories.update_memory(record.id, "replacement content")

        stored = await self.store.get_memory(record.id)
        self.assertEqual(stored.content, "original content")
        self.assertEqual(stored.vector_id, record.id)

    async def test_update_upsert_failure_marks_record_for_reindex(self) -> None:
        record = await self.memories.add_memory("original content")
        self.index.fail_upsert = True

        updated = await self.memories.update_memory(record.id, "replacement content")
        self.assertEqual(updated.content, "replacement content")
        self.assertIsNone(updated.vector_id)

    async def test_search_degrades_to_empty_on_index_failure(self) -> None:
        await self.memories.add_memory("some content")
        self.index.fail_search = True
        self.assertEqual(await self.memories.similarity_search("some content", 5), [])

    async def test_concurrent_adds(self) -> None:
        """Test that concurrent writes each produce an indexed record."""
        records = await asyncio.gather(*(self.memories.add_memory(f"memory {i}") for i in range(10)))

        self.assertTrue(all(r.is_indexed for r in records))
        self.assertEqual(set(await self.index.list_ids("memories")), {r.id for r in records})

    async def test_list_memories_most_recent_first(self) -> None:
        first = await self.memories.add_memory("first")
        second = await self.memories.add_memory("second")
        await self.memories.update_memory(first.id, "first, edited")

        listed = await self.memories.list_memories()
        self.assertEqual([r.id for r in listed], [first.id, second.id])


if __name__ == "__main__":
    unittest.main()
