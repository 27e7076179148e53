"""
Vector index factory for MemSync.

The backend is a configuration value; exactly one implementation is built.
"""

from __future__ import annotations

from enum import Enum

from memsync.app.config import VectorConfig
from memsync.core.errors import ConfigurationError
from memsync.infrastructure.vector.base import VectorIndex
from memsync.infrastructure.vector.qdrant_index import QdrantVectorIndex


class VectorBackendType(str, Enum):
    """Supported vector index backends."""
    QDRANT = "qdrant"


def create_vector_index(config: VectorConfig) -> VectorIndex:
    """Create the configured vector index.

    Raises:
        ConfigurationError: unknown backend name
    """
    try:
        backend = VectorBackendType(config.backend)
    except ValueError:
        raise ConfigurationError(f"Unknown vector backend: {config.backend}")

    if backend == VectorBackendType.QDRANT:
        return QdrantVectorIndex(url=config.url, api_key=config.api_key)

    raise ConfigurationError(f"Vector backend not wired: {backend.value}")
