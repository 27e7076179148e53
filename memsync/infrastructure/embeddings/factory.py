"""
Embedder factory for MemSync.

Exactly one embedder is built per process, selected by ``EmbeddingConfig.provider``.
"""

from __future__ import annotations

from enum import Enum

from memsync.app.config import EmbeddingConfig
from memsync.core.errors import ConfigurationError
from memsync.infrastructure.embeddings.base import Embedder
from memsync.infrastructure.embeddings.openai_embedder import OpenAIEmbedder
from memsync.infrastructure.embeddings.sentence_embedder import SentenceTransformerEmbedder


class EmbeddingProviderType(str, Enum):
    """Supported embedding providers."""
    OPENAI = "openai"
    SENTENCE_TRANSFORMERS = "sentence_transformers"


def create_embedder(config: EmbeddingConfig) -> Embedder:
    """Create the configured embedder.

    Raises:
        ConfigurationError: unknown provider name or missing API key
    """
    try:
        provider = EmbeddingProviderType(config.provider)
    except ValueError:
        raise ConfigurationError(f"Unknown embedding provider: {config.provider}")

    if provider == EmbeddingProviderType.OPENAI:
        return OpenAIEmbedder(
            api_key=config.api_key,
            base_url=config.base_url,
            model=config.model,
            dimension=config.dimension,
            timeout=config.timeout,
        )

    model_name = config.model
    if model_name == OpenAIEmbedder.DEFAULT_MODEL:
        model_name = SentenceTransformerEmbedder.DEFAULT_MODEL
    return SentenceTransformerEmbedder(
        model_name=model_name,
        device=config.device,
        # Known models override the OpenAI-sized default dimension
        dimension=SentenceTransformerEmbedder.KNOWN_DIMENSIONS.get(model_name, config.dimension),
    )
