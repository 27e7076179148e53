"""
Vector index adapters - collection-scoped nearest-neighbour search.
"""

from memsync.infrastructure.vector.base import VectorHit, VectorIndex
from memsync.infrastructure.vector.qdrant_index import QdrantVectorIndex
from memsync.infrastructure.vector.factory import VectorBackendType, create_vector_index

__all__ = [
    "VectorHit",
    "VectorIndex",
    "QdrantVectorIndex",
    "VectorBackendType",
    "create_vector_index",
]
