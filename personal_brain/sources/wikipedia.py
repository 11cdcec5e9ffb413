"""Wikipedia source adapter.

Searches the MediaWiki API and returns the plain-text intro of each hit.
"""

import asyncio
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from ..models import ExternalSourceResult, SearchOptions
from ..utils import strip_html, utcnow
from .base import USER_AGENT, ExternalSource, score_confidence

logger = structlog.get_logger(__name__)

WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_ARTICLE_URL = "https://en.wikipedia.org/wiki/"

NO_CONTENT = "No content available."


class WikipediaSource(ExternalSource):
    """Encyclopedia source backed by the public MediaWiki API (no auth)."""

    name = "Wikipedia"
    source_type = "encyclopedia"
    default_limit = 3

    def __init__(self, *args, base_url: str = WIKIPEDIA_API_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.base_url = base_url
        self.headers = {"User-Agent": USER_AGENT}

    async def search(self, options: SearchOptions) -> list[ExternalSourceResult]:
        limit = options.limit or self.default_limit
        logger.info("wikipedia_search", query=options.query, limit=limit)

        try:
            async with self._session() as client:
                articles = await self._search_articles(client, options.query, limit)
                if not articles:
                    logger.info("wikipedia_no_results", query=options.query)
                    return []
                extracts = await asyncio.gather(
                    *(self._fetch_extract(client, article) for article in articles)
                )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("wikipedia_search_failed", query=options.query, error=str(e))
            return []

        results = [
            ExternalSourceResult(
                title=article["title"],
                content=extract,
                url=WIKIPEDIA_ARTICLE_URL + quote(article["title"].replace(" ", "_")),
                source=self.name,
                source_type=self.source_type,
                timestamp=utcnow(),
                confidence=self._confidence(article, options.query),
            )
            for article, extract in zip(articles, extracts)
        ]

        if options.add_embeddings:
            await self._attach_embeddings(results)

        return results

    async def check_availability(self) -> bool:
        try:
            async with self._session() as client:
                response = await client.get(
                    self.base_url,
                    params={"action": "query", "meta": "siteinfo", "siprop": "general", "format": "json"},
                    headers=self.headers,
                )
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("wikipedia_unavailable", error=str(e))
            return False
        # Both the nested (query.general) and flat (sitename) shapes count as up
        return bool(data and ((data.get("query") or {}).get("general") or data.get("sitename")))

    async def get_source_metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.source_type,
            "limitPerMinute": 200,
            "requiresAuthentication": False,
            "supportsEmbeddings": self.embedding_service is not None,
            "lastUpdated": utcnow().isoformat(),
        }

    async def _search_articles(self, client: httpx.AsyncClient, query: str, limit: int) -> list[dict]:
        response = await client.get(
            self.base_url,
            params={
                "action": "query",
                "list": "search",
                "srsearch": query,
                "srlimit": str(limit),
                "format": "json",
                "origin": "*",
            },
            headers=self.headers,
        )
        response.raise_for_status()
        data = response.json()
        return (data.get("query") or {}).get("search") or []

    async def _fetch_extract(self, client: httpx.AsyncClient, article: dict) -> str:
        """Fetch the plain-text intro of a page; a failed fetch falls back to the search snippet."""
        page_id = article["pageid"]
        try:
            response = await client.get(
                self.base_url,
                params={
                    "action": "query",
                    "pageids": str(page_id),
                    "prop": "extracts",
                    "exintro": "1",
                    "explaintext": "1",
                    "format": "json",
                    "origin": "*",
                },
                headers=self.headers,
            )
            response.raise_for_status()
            pages = (response.json().get("query") or {}).get("pages") or {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error("wikipedia_extract_failed", page_id=page_id, error=str(e))
            return strip_html(article.get("snippet") or "") or NO_CONTENT
        page = pages.get(str(page_id)) or {}
        return page.get("extract") or NO_CONTENT

    def _confidence(self, article: dict, query: str) -> float:
        # Longer articles are usually more detailed
        return score_confidence(
            title=article.get("title", ""),
            query=query,
            content_length=article.get("wordcount") or 0,
            length_scale=1000,
            max_length_bonus=0.35,
        )
