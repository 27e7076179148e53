"""
OpenAI-compatible embedding adapter for MemSync.

Calls ``POST /embeddings`` on any OpenAI-compatible API. The default model,
text-embedding-3-small, produces 1536-dimension vectors.
"""

from __future__ import annotations

import json
import logging
import os

import httpx
from dotenv import load_dotenv

from memsync.core.errors import ConfigurationError, EmbeddingError, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Embedding adapter backed by the OpenAI embeddings endpoint."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        dimension: int = 1536,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the embedder.

        Args:
            api_key: API key (falls back to OPENAI_API_KEY)
            base_url: API base URL (falls back to OPENAI_BASE_URL, then the public API)
            model: Embedding model name
            dimension: Expected vector length; responses of another length are rejected
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if api_key is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY not provided and not found in environment"
                )

        self.api_key = api_key
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL") or self.DEFAULT_BASE_URL
        self.model = model
        self._dimension = dimension
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def _extract_error_message(self, response: httpx.Response) -> str:
        try:
            error_data = response.json()
            return error_data.get("error", {}).get("message", str(error_data))
        except (json.JSONDecodeError, AttributeError):
            return (response.text or "")[:500] or f"HTTP {response.status_code}"

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text", field="text")

        client = await self._get_client()
        try:
            response = await client.post(
                "/embeddings",
                json={"model": self.model, "input": text},
            )
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if response.status_code >= 400:
            raise EmbeddingError(
                f"Embedding API error: {self._extract_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        if len(embedding) != self._dimension:
            raise EmbeddingError(
                f"Model '{self.model}' returned {len(embedding)} dimensions, "
                f"expected {self._dimension}"
            )

        logger.debug(f"Embedded {len(text)} chars with {self.model}")
        return [float(v) for v in embedding]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
