"""
QdrantVectorIndex for MemSync.

Implements the VectorIndex protocol on top of Qdrant. The synchronous client
runs in the default executor. ``url=':memory:'`` selects Qdrant's local mode,
which needs no server and is what the test-suite uses.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Sequence, TypeVar

from memsync.core.errors import ConfigurationError, VectorIndexError
from memsync.infrastructure.vector.base import VectorHit
from memsync.utils.ids import is_valid_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Payload fields that get a keyword index for filtered search
INDEXED_PAYLOAD_FIELDS = ("user_id", "type")


class QdrantVectorIndex:
    """Qdrant-backed vector index."""

    def __init__(
        self,
        url: str = ":memory:",
        api_key: str | None = None,
    ):
        """Initialize the index adapter.

        Args:
            url: Qdrant URL (':memory:' for in-process local mode, or 'http://localhost:6333')
            api_key: Optional API key for authentication
        """
        self.url = url
        self.api_key = api_key

        # Client is lazy-loaded
        self._client = None
        self._ready_collections: set[str] = set()
        # Local mode keeps its state in plain Python objects; serialize access to it
        self._local_lock = threading.Lock() if self.is_local else None
        # Lazy initialization to avoid event loop binding issues
        self._collection_lock: asyncio.Lock | None = None
        self._loop_id: int | None = None

    @property
    def is_local(self) -> bool:
        return self.url == ":memory:"

    @property
    def client(self):
        """Lazy-load Qdrant client."""
        if self._client is None:
            try:
                from qdrant_client import QdrantClient
                logger.info(f"Connecting to Qdrant at {self.url}")
                if self.is_local:
                    self._client = QdrantClient(location=":memory:")
                else:
                    self._client = QdrantClient(url=self.url, api_key=self.api_key)
                logger.info("Connected to Qdrant successfully")
            except ImportError:
                logger.error("qdrant-client not installed. Run: pip install qdrant-client")
                raise
            except Exception as e:
                raise VectorIndexError(f"Failed to connect to Qdrant: {e}") from e
        return self._client

    def _ensure_collection_lock(self) -> asyncio.Lock:
        """Get or create the collection lock for the current event loop."""
        loop_id = id(asyncio.get_running_loop())
        if self._loop_id != loop_id:
            self._collection_lock = None
        if self._collection_lock is None:
            self._collection_lock = asyncio.Lock()
            self._loop_id = loop_id
        return self._collection_lock

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        """Run a blocking client call in the executor, translating failures."""

        def call() -> T:
            if self._local_lock is None:
                return fn()
            with self._local_lock:
                return fn()

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, call)
        except VectorIndexError:
            raise
        except Exception as e:
            raise VectorIndexError(f"Qdrant {operation} failed: {e}") from e

    # ========== Collections ==========

    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> None:
        if name in self._ready_collections:
            return

        from qdrant_client.models import Distance, PayloadSchemaType, VectorParams

        distances = {"cosine": Distance.COSINE}
        if distance not in distances:
            raise ConfigurationError(f"Unsupported distance metric: {distance}")

        async with self._ensure_collection_lock():
            if name in self._ready_collections:
                return

            exists = await self._run("collection_exists", lambda: self.client.collection_exists(name))
            if not exists:
                try:
                    await self._run(
                        "create_collection",
                        lambda: self.client.create_collection(
                            collection_name=name,
                            vectors_config=VectorParams(size=dimension, distance=distances[distance]),
                        ),
                    )
                    logger.info(f"Created '{name}' collection (dim={dimension}, {distance})")
                except VectorIndexError as e:
                    # Another process may have created it between the check and the create
                    if "already exists" not in str(e).lower():
                        raise
                    logger.info(f"'{name}' collection already exists")

                if not self.is_local:
                    for field_name in INDEXED_PAYLOAD_FIELDS:
                        await self._run(
                            "create_payload_index",
                            lambda field_name=field_name: self.client.create_payload_index(
                                collection_name=name,
                                field_name=field_name,
                                field_schema=PayloadSchemaType.KEYWORD,
                            ),
                        )
            else:
                logger.debug(f"'{name}' collection already exists")

            self._ready_collections.add(name)

    # ========== Points ==========

    async def upsert(
        self,
        collection: str,
        point_id: str,
        vector: Sequence[float],
        payload: dict[str, Any],
    ) -> None:
        from qdrant_client.models import PointStruct

        if not is_valid_id(point_id):
            raise VectorIndexError(f"Point id must be a UUID string, got {point_id!r}")

        point = PointStruct(id=point_id, vector=list(vector), payload=payload)
        await self._run(
            "upsert",
            lambda: self.client.upsert(collection_name=collection, points=[point], wait=True),
        )
        logger.debug(f"Upserted point {point_id} into '{collection}'")

    async def search(
        self,
        collection: str,
        vector: Sequence[float],
        limit: int,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        from qdrant_client.models import FieldCondition, Filter, MatchValue

        query_filter = None
        if filters:
            query_filter = Filter(
                must=[
                    FieldCondition(key=key, match=MatchValue(value=value))
                    for key, value in filters.items()
                ]
            )

        results = await self._run(
            "query_points",
            lambda: self.client.query_points(
                collection_name=collection,
                query=list(vector),
                limit=limit,
                query_filter=query_filter,
                with_payload=True,
            ).points,
        )

        return [
            VectorHit(id=str(result.id), score=float(result.score), payload=dict(result.payload or {}))
            for result in results
        ]

    async def delete(self, collection: str, ids: Sequence[str]) -> None:
        if not ids:
            return

        from qdrant_client.models import PointIdsList

        # A dropped collection holds no points, so there is nothing to delete
        if not await self._run("collection_exists", lambda: self.client.collection_exists(collection)):
            self._ready_collections.discard(collection)
            logger.debug(f"'{collection}' does not exist; {len(ids)} point(s) already absent")
            return

        await self._run(
            "delete",
            lambda: self.client.delete(
                collection_name=collection,
                points_selector=PointIdsList(points=list(ids)),
                wait=True,
            ),
        )
        logger.debug(f"Deleted {len(ids)} point(s) from '{collection}'")

    async def list_ids(self, collection: str) -> list[str]:
        ids: list[str] = []
        offset = None
        while True:
            points, offset = await self._run(
                "scroll",
                lambda offset=offset: self.client.scroll(
                    collection_name=collection,
                    limit=256,
                    offset=offset,
                    with_payload=False,
                    with_vectors=False,
                ),
            )
            ids.extend(str(point.id) for point in points)
            if offset is None:
                break
        return ids

    # ========== Lifecycle ==========

    async def close(self) -> None:
        if self._client is not None:
            client = self._client
            self._client = None
            self._ready_collections.clear()
            await self._run("close", client.close)
