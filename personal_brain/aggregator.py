"""
External source aggregation for the Personal Brain MCP Server.

Fans a query out to every enabled source concurrently, merges and ranks the
results by confidence, and memoizes the ranked list in a SearchCache.
"""

import asyncio
import math
from typing import Any

import structlog

from .cache import SearchCache, make_cache_key
from .models import ExternalSourceResult, SearchOptions
from .sources.base import ExternalSource
from .utils import UnknownSourceError

logger = structlog.get_logger(__name__)


class ExternalSourceAggregator:
    """Registry of source adapters plus the cached aggregate search over them.

    ``enabled_sources`` is an allow-list of source names; None means every
    registered source is enabled. An empty list disables all of them.
    """

    def __init__(
        self,
        sources: list[ExternalSource] | None = None,
        enabled_sources: list[str] | None = None,
        max_results: int = 10,
        cache: SearchCache | None = None,
        source_timeout: float | None = 10.0,
    ):
        self.max_results = max_results
        self.source_timeout = source_timeout
        self.cache = cache if cache is not None else SearchCache()
        self._sources: dict[str, ExternalSource] = {}
        self._enabled: list[str] | None = list(enabled_sources) if enabled_sources is not None else None

        for source in sources or []:
            self.register_source(source)

    # ============== Source registry ==============

    def register_source(self, source: ExternalSource) -> None:
        """Register (or replace) a source under its name."""
        self._sources[source.name] = source
        logger.debug("source_registered", source=source.name)

    def get_source(self, name: str) -> ExternalSource | None:
        return self._sources.get(name)

    def get_sources(self) -> list[ExternalSource]:
        return list(self._sources.values())

    def get_enabled_sources(self) -> list[ExternalSource]:
        if self._enabled is None:
            return list(self._sources.values())
        return [self._sources[name] for name in self._enabled if name in self._sources]

    def get_enabled_source_names(self) -> list[str]:
        return [source.name for source in self.get_enabled_sources()]

    def set_enabled_sources(self, names: list[str] | None) -> None:
        """Replace the allow-list. Cached results may include now-disabled sources, so the cache is cleared."""
        self._enabled = list(names) if names is not None else None
        self.cache.clear()
        logger.info("enabled_sources_updated", enabled=self.get_enabled_source_names())

    def set_source_enabled(self, name: str, enabled: bool) -> list[str]:
        """Enable or disable one registered source. Returns the resulting enabled names."""
        if name not in self._sources:
            raise UnknownSourceError(
                f"Unknown source '{name}'. Registered sources: {', '.join(self._sources) or 'none'}"
            )

        names = self.get_enabled_source_names()
        if enabled and name not in names:
            names.append(name)
        elif not enabled and name in names:
            names.remove(name)

        self.set_enabled_sources(names)
        return names

    # ============== Search ==============

    async def search(
        self,
        query: str,
        limit: int | None = None,
        add_embeddings: bool = False,
    ) -> list[ExternalSourceResult]:
        """Search all enabled sources, ranked by confidence.

        Args:
            query: Search text; blank queries return no results
            limit: Per-source limit and result cap; defaults to an even share of max_results
            add_embeddings: Ask sources to attach embeddings to each result

        Returns:
            At most ``max_results`` results sorted by descending confidence
        """
        if not query or not query.strip():
            return []

        enabled = self.get_enabled_sources()
        per_source_limit = limit or math.ceil(self.max_results / max(1, len(enabled)))
        ceiling = min(limit, self.max_results) if limit else self.max_results

        cache_key = make_cache_key(query, {"limit": per_source_limit, "addEmbeddings": add_embeddings})
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("search_cache_hit", query=query)
            return list(cached)

        if not enabled:
            logger.warning("no_enabled_sources", query=query)
            return []

        logger.info("external_search_started", query=query, sources=[s.name for s in enabled])
        options = SearchOptions(query=query, limit=per_source_limit, add_embeddings=add_embeddings)

        per_source = await asyncio.gather(*(self._search_source(source, options) for source in enabled))
        merged = [result for results in per_source for result in results]

        ranked = sorted(merged, key=lambda r: r.confidence, reverse=True)[:ceiling]
        self.cache.set(cache_key, ranked)

        logger.info("external_search_completed", query=query, results=len(ranked))
        return list(ranked)

    async def _search_source(self, source: ExternalSource, options: SearchOptions) -> list[ExternalSourceResult]:
        """Run one source's search; a failure or timeout contributes no results."""
        try:
            if self.source_timeout:
                return await asyncio.wait_for(source.search(options), timeout=self.source_timeout)
            return await source.search(options)
        except asyncio.TimeoutError:
            logger.warning("source_search_timed_out", source=source.name, timeout=self.source_timeout)
            return []
        except Exception as e:
            logger.error("source_search_failed", source=source.name, error=str(e))
            return []

    # ============== Status ==============

    async def check_sources_availability(self) -> dict[str, bool]:
        """Probe every registered source concurrently. Failures count as unavailable."""
        names = list(self._sources)
        checks = await asyncio.gather(*(self._check_source(self._sources[name]) for name in names))
        return dict(zip(names, checks))

    async def _check_source(self, source: ExternalSource) -> bool:
        try:
            if self.source_timeout:
                return bool(await asyncio.wait_for(source.check_availability(), timeout=self.source_timeout))
            return bool(await source.check_availability())
        except asyncio.TimeoutError:
            logger.warning("source_availability_timed_out", source=source.name)
            return False
        except Exception as e:
            logger.error("source_availability_failed", source=source.name, error=str(e))
            return False

    async def get_sources_metadata(self) -> dict[str, dict[str, Any]]:
        metadata: dict[str, dict[str, Any]] = {}
        for name, source in self._sources.items():
            try:
                metadata[name] = await source.get_source_metadata()
            except Exception as e:
                logger.error("source_metadata_failed", source=name, error=str(e))
                metadata[name] = {"name": name, "error": str(e)}
        return metadata

    def list_recent(self, limit: int = 10) -> list[ExternalSourceResult]:
        """Results of the most recent cached search."""
        return self.cache.most_recent(limit)

    def count(self) -> int:
        return len(self.get_enabled_sources())
