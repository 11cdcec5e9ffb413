"""
External sources context: search, semantic re-ranking and source status.
"""

from typing import Any

import structlog

from ...aggregator import ExternalSourceAggregator
from ...embeddings import EmbeddingProvider
from ...models import ExternalSourceResult
from .formatter import ExternalSourceFormatter, OutputFormat

logger = structlog.get_logger(__name__)

DEFAULT_SEMANTIC_LIMIT = 5


class ExternalSourceContext:
    """Domain operations over the aggregator and the embedding collaborator."""

    def __init__(
        self,
        aggregator: ExternalSourceAggregator,
        embedding_service: EmbeddingProvider | None = None,
        formatter: ExternalSourceFormatter | None = None,
    ):
        self.aggregator = aggregator
        self.embedding_service = embedding_service
        self.formatter = formatter or ExternalSourceFormatter()

    async def search(
        self,
        query: str,
        limit: int | None = None,
        add_embeddings: bool = False,
    ) -> list[ExternalSourceResult]:
        return await self.aggregator.search(query, limit=limit, add_embeddings=add_embeddings)

    async def semantic_search(self, query: str, limit: int = DEFAULT_SEMANTIC_LIMIT) -> list[ExternalSourceResult]:
        """Re-rank results by cosine similarity to the query embedding.

        Falls back to the first ``limit`` plain results when no result carries an
        embedding, and to a plain search when anything goes wrong.
        """
        if self.embedding_service is None:
            logger.warning("semantic_search_without_embeddings", query=query)
            return await self.search(query, limit=limit)

        try:
            results = await self.aggregator.search(query, add_embeddings=True)
            embedded = [r for r in results if r.embedding]
            if not embedded:
                logger.warning("semantic_search_no_embeddings", query=query)
                return results[:limit]

            query_embedding = await self.embedding_service.get_embedding(query)
            scored = sorted(
                embedded,
                key=lambda r: self.embedding_service.cosine_similarity(query_embedding, r.embedding),
                reverse=True,
            )
            return scored[:limit]
        except Exception as e:
            logger.warning("semantic_search_failed", query=query, error=str(e))
            return await self.search(query, limit=limit)

    async def check_sources_availability(self) -> dict[str, bool]:
        return await self.aggregator.check_sources_availability()

    def toggle_source(self, source_name: str, enabled: bool) -> list[str]:
        """Enable or disable a source. Raises UnknownSourceError for unregistered names."""
        return self.aggregator.set_source_enabled(source_name, enabled)

    def get_enabled_sources(self) -> list[str]:
        return self.aggregator.get_enabled_source_names()

    async def get_sources_status(self, availability: dict[str, bool] | None = None) -> list[dict[str, Any]]:
        """``{name, enabled, available}`` for every registered source."""
        if availability is None:
            availability = await self.check_sources_availability()
        enabled = set(self.aggregator.get_enabled_source_names())
        return [
            {
                "name": source.name,
                "enabled": source.name in enabled,
                "available": availability.get(source.name, False),
            }
            for source in self.aggregator.get_sources()
        ]

    def list_recent(self, limit: int = 10) -> list[ExternalSourceResult]:
        return self.aggregator.list_recent(limit)

    def count(self) -> int:
        return self.aggregator.count()

    def format(self, results: list[ExternalSourceResult], output_format: OutputFormat = "markdown", **options) -> str:
        return self.formatter.format(results, output_format, **options)
