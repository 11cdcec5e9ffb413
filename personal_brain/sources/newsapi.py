"""NewsAPI source adapter.

Searches recent articles through the NewsAPI ``/everything`` endpoint.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog

from ..models import ExternalSourceResult, SearchOptions
from ..utils import NEWS_TRUNCATION_PATTERN, utcnow
from .base import ExternalSource, score_confidence

logger = structlog.get_logger(__name__)

NEWSAPI_BASE_URL = "https://newsapi.org/v2"


def _parse_published(value: str | None) -> datetime:
    if not value:
        return utcnow()
    try:
        published = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return utcnow()
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


class NewsApiSource(ExternalSource):
    """News source. Requires an API key; without one it returns no results."""

    name = "NewsAPI"
    source_type = "news"
    default_limit = 5

    def __init__(
        self,
        api_key: str = "",
        *args,
        max_age_hours: int = 24 * 7,
        base_url: str = NEWSAPI_BASE_URL,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.api_key = api_key
        self.max_age_hours = max_age_hours
        self.base_url = base_url.rstrip("/")

        if not self.api_key:
            logger.warning("newsapi_without_api_key")

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key}

    async def search(self, options: SearchOptions) -> list[ExternalSourceResult]:
        if not self.api_key:
            logger.warning("newsapi_search_skipped", reason="missing_api_key")
            return []

        limit = options.limit or self.default_limit
        logger.info("newsapi_search", query=options.query, limit=limit)

        articles = await self._search_everything(options.query, limit)
        if not articles:
            logger.info("newsapi_no_results", query=options.query)
            return []

        results = []
        for article in articles:
            source_name = (article.get("source") or {}).get("name") or "Unknown Source"
            published = _parse_published(article.get("publishedAt"))
            results.append(ExternalSourceResult(
                title=article.get("title") or "Untitled",
                content=self._format_content(article, published),
                url=article.get("url") or "",
                source=f"{self.name} - {source_name}",
                source_type=self.source_type,
                timestamp=published,
                confidence=self._confidence(article, options.query, published),
            ))

        if options.add_embeddings:
            await self._attach_embeddings(results)

        return results

    async def check_availability(self) -> bool:
        if not self.api_key:
            return False
        try:
            async with self._session() as client:
                response = await client.get(
                    f"{self.base_url}/top-headlines",
                    params={"country": "us", "pageSize": "1"},
                    headers=self._headers,
                )
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("newsapi_unavailable", error=str(e))
            return False
        return data.get("status") == "ok"

    async def get_source_metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.source_type,
            "limitPerDay": 100,  # free plan
            "requiresAuthentication": True,
            "hasApiKey": bool(self.api_key),
            "supportsEmbeddings": self.embedding_service is not None,
            "maxArticleAge": f"{self.max_age_hours} hours",
            "lastUpdated": utcnow().isoformat(),
        }

    async def _search_everything(self, query: str, limit: int) -> list[dict]:
        from_date = (utcnow() - timedelta(hours=self.max_age_hours)).date().isoformat()
        try:
            async with self._session() as client:
                response = await client.get(
                    f"{self.base_url}/everything",
                    params={
                        "q": query,
                        "from": from_date,
                        "sortBy": "relevancy",
                        "language": "en",
                        "pageSize": str(limit),
                    },
                    headers=self._headers,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("newsapi_search_failed", query=query, error=str(e))
            return []

        if data.get("status") != "ok":
            logger.error("newsapi_error", message=data.get("message", "Unknown error"))
            return []
        return data.get("articles") or []

    @staticmethod
    def _format_content(article: dict, published: datetime) -> str:
        content = ""
        if article.get("author"):
            content += f"By {article['author']}\n"
        content += f"Published: {published.strftime('%Y-%m-%d %H:%M')}\n\n"
        if article.get("description"):
            content += f"{article['description']}\n\n"
        if article.get("content"):
            content += NEWS_TRUNCATION_PATTERN.sub("", article["content"])
        return content.strip()

    def _confidence(self, article: dict, query: str, published: datetime) -> float:
        age_hours = (utcnow() - published).total_seconds() / 3600
        return score_confidence(
            title=article.get("title") or "",
            query=query,
            content_length=len(article.get("content") or ""),
            length_scale=2000,
            max_length_bonus=0.2,
            age_hours=age_hours,
            max_age_hours=self.max_age_hours,
        )
