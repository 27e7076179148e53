"""
Embedding adapters - text to fixed-dimension vectors.
"""

from memsync.infrastructure.embeddings.base import Embedder
from memsync.infrastructure.embeddings.openai_embedder import OpenAIEmbedder
from memsync.infrastructure.embeddings.sentence_embedder import SentenceTransformerEmbedder
from memsync.infrastructure.embeddings.factory import EmbeddingProviderType, create_embedder

__all__ = [
    "Embedder",
    "OpenAIEmbedder",
    "SentenceTransformerEmbedder",
    "EmbeddingProviderType",
    "create_embedder",
]
