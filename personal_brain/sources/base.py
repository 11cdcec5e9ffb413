"""Base class for external knowledge sources.

Every source adapter inherits from ExternalSource and implements search(),
check_availability() and get_source_metadata().
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog

from ..embeddings import EmbeddingProvider
from ..models import ExternalSourceResult, SearchOptions

logger = structlog.get_logger(__name__)

BASE_CONFIDENCE = 0.5
# Leaves headroom for a later semantic re-ranking pass
MAX_CONFIDENCE = 0.95

USER_AGENT = "PersonalBrain/1.0 (personal use)"


def score_confidence(
    *,
    title: str,
    query: str,
    content_length: float = 0,
    length_scale: float = 2000,
    max_length_bonus: float = 0.2,
    age_hours: float | None = None,
    max_age_hours: float | None = None,
    max_recency_bonus: float = 0.2,
    max_title_bonus: float = 0.1,
) -> float:
    """Shared confidence shape: baseline plus bounded bonuses, capped below 1.0.

    - length: ``content_length / length_scale`` up to ``max_length_bonus``
    - recency: linear decay from ``max_recency_bonus`` to 0 over ``max_age_hours``
    - title overlap: share of query words (longer than 3 chars) found in the title
    """
    confidence = BASE_CONFIDENCE
    confidence += min(max(content_length, 0) / length_scale, max_length_bonus)

    if age_hours is not None and max_age_hours:
        age = max(age_hours, 0.0)
        confidence += max(0.0, max_recency_bonus * (1 - age / max_age_hours))

    query_words = query.lower().split()
    title_lower = title.lower()
    title_matches = sum(1 for word in query_words if len(word) > 3 and word in title_lower)
    confidence += min(title_matches / max(1, len(query_words)), max_title_bonus)

    return min(confidence, MAX_CONFIDENCE)


class ExternalSource(ABC):
    """Base class for external source adapters.

    Adapters resolve their own HTTP failures to an empty result list; the
    aggregator additionally isolates anything that still escapes.
    """

    # Adapter metadata - override in subclasses
    name: str = "base"
    source_type: str = "unknown"
    default_limit: int = 3

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        embedding_service: EmbeddingProvider | None = None,
        timeout: float = 10.0,
    ):
        """Initialize adapter.

        Args:
            client: Optional shared HTTP client (tests inject a MockTransport client)
            embedding_service: Optional embedding backend for add_embeddings searches
            timeout: HTTP timeout used when the adapter creates its own client
        """
        self._client = client
        self.embedding_service = embedding_service
        self.timeout = timeout

    @abstractmethod
    async def search(self, options: SearchOptions) -> list[ExternalSourceResult]:
        """Search the source for ``options.query``."""

    @abstractmethod
    async def check_availability(self) -> bool:
        """Return True if the source's API answers."""

    @abstractmethod
    async def get_source_metadata(self) -> dict[str, Any]:
        """Describe the source (type, limits, auth requirements)."""

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _attach_embeddings(self, results: list[ExternalSourceResult]) -> None:
        """Populate ``embedding`` on each result; failures leave it unset."""
        if self.embedding_service is None:
            return
        for result in results:
            try:
                result.embedding = await self.embedding_service.get_embedding(result.content)
            except Exception as e:
                logger.error("source_embedding_failed", source=self.name, title=result.title, error=str(e))
