"""
Local embedding adapter using sentence-transformers.

Useful when no hosted embedding service is available. The model is loaded on
first use; loading and encoding both run in the default executor. The output
dimension must be known up front (configured, or one of KNOWN_DIMENSIONS) so
collections can be created without loading the model.
"""

from __future__ import annotations

import asyncio
import logging

from memsync.core.errors import ConfigurationError, EmbeddingError, ValidationError

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Embedding adapter backed by a local sentence-transformers model."""

    DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

    KNOWN_DIMENSIONS = {
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "sentence-transformers/all-MiniLM-L12-v2": 384,
        "sentence-transformers/all-mpnet-base-v2": 768,
        "sentence-transformers/multi-qa-MiniLM-L6-cos-v1": 384,
    }

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        device: str = "cpu",
        dimension: int | None = None,
    ):
        """Initialize the embedder.

        Args:
            model_name: Model to load
            device: Device to use for inference ('cuda' or 'cpu')
            dimension: Output dimension; looked up in KNOWN_DIMENSIONS when omitted
        """
        self.model_name = model_name
        self.device = device
        self._dimension = dimension or self.KNOWN_DIMENSIONS.get(model_name)
        self._model = None
        self._load_lock: asyncio.Lock | None = None
        self._loop_id: int | None = None
        self._embedding_cache: dict[str, list[float]] = {}

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            raise ConfigurationError(
                f"Output dimension of '{self.model_name}' is unknown; set embedding.dimension"
            )
        return self._dimension

    def _ensure_load_lock(self) -> asyncio.Lock:
        """Get or create the load lock for the current event loop."""
        loop_id = id(asyncio.get_running_loop())
        if self._loop_id != loop_id:
            self._load_lock = None
        if self._load_lock is None:
            self._load_lock = asyncio.Lock()
            self._loop_id = loop_id
        return self._load_lock

    def _load_model(self):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            logger.error("sentence-transformers not installed. Run: pip install sentence-transformers")
            raise
        logger.info(f"Loading embedding model {self.model_name} on {self.device}")
        model = SentenceTransformer(self.model_name, device=self.device)
        logger.info("Embedding model loaded successfully")
        return model

    async def _get_model(self):
        """Lazy-load the model off the event loop."""
        if self._model is not None:
            return self._model

        async with self._ensure_load_lock():
            if self._model is None:
                loop = asyncio.get_running_loop()
                try:
                    self._model = await loop.run_in_executor(None, self._load_model)
                except ImportError:
                    raise
                except Exception as e:
                    raise EmbeddingError(f"Failed to load model {self.model_name}: {e}") from e
        return self._model

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text", field="text")

        if text in self._embedding_cache:
            return self._embedding_cache[text]

        model = await self._get_model()
        loop = asyncio.get_running_loop()
        try:
            embedding = await loop.run_in_executor(
                None,
                lambda: model.encode(text, convert_to_tensor=False).tolist()
            )
        except Exception as e:
            raise EmbeddingError(f"Encoding failed: {e}") from e

        if len(embedding) != self.dimension:
            raise EmbeddingError(
                f"Model '{self.model_name}' returned {len(embedding)} dimensions, "
                f"expected {self.dimension}"
            )

        self._embedding_cache[text] = embedding
        return embedding

    async def close(self) -> None:
        self._embedding_cache.clear()
