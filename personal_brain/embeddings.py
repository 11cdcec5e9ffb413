"""
Embedding service for the Personal Brain MCP Server.

Generates embeddings through an OpenAI-compatible ``/embeddings`` endpoint.
Falls back to a zero vector when no key is configured or the call fails, so
callers always receive a vector of the configured dimension.
"""

from typing import Protocol

import httpx
import structlog

from .utils import cosine_similarity

logger = structlog.get_logger(__name__)

# Very long inputs are truncated before embedding
MAX_EMBEDDING_INPUT_CHARS = 8000


class EmbeddingProvider(Protocol):
    """What the rest of the system needs from an embedding backend."""

    async def get_embedding(self, text: str) -> list[float]: ...

    def cosine_similarity(self, a: list[float], b: list[float]) -> float: ...


class EmbeddingService:
    """Embedding backend calling an OpenAI-compatible HTTP API."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        base_url: str = "https://api.openai.com/v1",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

        if not self.api_key:
            logger.warning("embedding_service_without_api_key", model=model)

    def _zero_vector(self) -> list[float]:
        return [0.0] * self.dimension

    async def get_embedding(self, text: str) -> list[float]:
        """Embed ``text``. Returns a zero vector instead of raising."""
        if not text or not self.api_key:
            return self._zero_vector()

        prepared = " ".join(text.split())[:MAX_EMBEDDING_INPUT_CHARS]
        try:
            if self._client is not None:
                return await self._request_embedding(self._client, prepared)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await self._request_embedding(client, prepared)
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.error("embedding_failed", model=self.model, error=str(e))
            return self._zero_vector()

    async def _request_embedding(self, client: httpx.AsyncClient, text: str) -> list[float]:
        response = await client.post(
            f"{self.base_url}/embeddings",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={"model": self.model, "input": text},
        )
        response.raise_for_status()
        data = response.json()
        return [float(x) for x in data["data"][0]["embedding"]]

    def cosine_similarity(self, a: list[float], b: list[float]) -> float:
        return cosine_similarity(a, b)
