"""
Service wiring for MemSync.

Builds one instance of each adapter from configuration and injects them into
the coordinators. There is no module-level state: callers own the container
and its lifecycle (``ensure_ready`` then ``close``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from memsync.app.config import MemSyncConfig
from memsync.domain.calendar import CalendarSyncService
from memsync.domain.maintenance import IndexMaintenance
from memsync.domain.memory import MemoryStore
from memsync.infrastructure.calendar import (
    CalendarProvider,
    CredentialProvider,
    GoogleCalendarProvider,
    StaticCredentialProvider,
)
from memsync.infrastructure.embeddings import Embedder, create_embedder
from memsync.infrastructure.persistence import DuckDBStore
from memsync.infrastructure.vector import VectorIndex, create_vector_index

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Adapters and the coordinators built on top of them."""

    config: MemSyncConfig
    store: DuckDBStore
    embedder: Embedder
    vector_index: VectorIndex
    provider: CalendarProvider
    credentials: CredentialProvider
    memories: MemoryStore
    calendar: CalendarSyncService
    maintenance: IndexMaintenance

    async def ensure_ready(self) -> None:
        """Open the store and create both vector collections. Safe to repeat."""
        await self.memories.ensure_ready()
        await self.calendar.ensure_ready()
        logger.info("MemSync services ready")

    async def close(self) -> None:
        await self.provider.close()
        await self.embedder.close()
        await self.vector_index.close()
        await self.store.close()

    async def __aenter__(self) -> "ServiceContainer":
        await self.ensure_ready()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def build_services(
    config: MemSyncConfig,
    credentials: CredentialProvider | None = None,
    embedder: Embedder | None = None,
    vector_index: VectorIndex | None = None,
    provider: CalendarProvider | None = None,
) -> ServiceContainer:
    """Wire adapters and coordinators from configuration.

    Any adapter may be passed in to replace the configured one (the host
    application supplies ``credentials``; tests supply doubles).
    """
    store = DuckDBStore(config.database_path)
    embedder = embedder or create_embedder(config.embedding)
    vector_index = vector_index or create_vector_index(config.vector)
    provider = provider or GoogleCalendarProvider(
        base_url=config.calendar.base_url,
        calendar_id=config.calendar.calendar_id,
        timeout=config.calendar.timeout,
    )
    credentials = credentials or StaticCredentialProvider()
    distance = config.vector.distance

    return ServiceContainer(
        config=config,
        store=store,
        embedder=embedder,
        vector_index=vector_index,
        provider=provider,
        credentials=credentials,
        memories=MemoryStore(
            store, embedder, vector_index,
            collection=config.vector.memory_collection,
            distance=distance,
        ),
        calendar=CalendarSyncService(
            store, embedder, vector_index, provider, credentials,
            collection=config.vector.event_collection,
            distance=distance,
        ),
        maintenance=IndexMaintenance(
            store, embedder, vector_index,
            memory_collection=config.vector.memory_collection,
            event_collection=config.vector.event_collection,
            distance=distance,
        ),
    )
