"""
Embedding adapter protocol for MemSync.

Coordinators depend on this protocol only; the concrete embedder is chosen by
configuration in ``memsync.infrastructure.embeddings.factory``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Embedder(Protocol):
    """Turns text into a fixed-dimension vector."""

    @property
    def dimension(self) -> int:
        """Length of every vector returned by ``embed``."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            ValidationError: text is empty
            EmbeddingError: the embedding service failed
        """
        ...

    async def close(self) -> None:
        ...
