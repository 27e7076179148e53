"""
Vector index protocol for MemSync.

One narrow, collection-scoped interface. Coordinators never branch on which
backend implements it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable


@dataclass
class VectorHit:
    """A single nearest-neighbour match."""
    id: str
    score: float
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class VectorIndex(Protocol):
    """Collection-scoped upsert/search/delete of (id, vector, payload)."""

    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> None:
        """Create the collection if missing. Safe to call redundantly and concurrently."""
        ...

    async def upsert(
        self,
        collection: str,
        point_id: str,
        vector: Sequence[float],
        payload: dict[str, Any],
    ) -> None:
        """Insert or replace the point with this id."""
        ...

    async def search(
        self,
        collection: str,
        vector: Sequence[float],
        limit: int,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """Return up to ``limit`` hits, best first.

        ``filters`` maps payload keys to values that must match exactly.
        """
        ...

    async def delete(self, collection: str, ids: Sequence[str]) -> None:
        """Delete points by id. Missing ids are not an error."""
        ...

    async def list_ids(self, collection: str) -> list[str]:
        """All point ids in the collection."""
        ...

    async def close(self) -> None:
        ...
