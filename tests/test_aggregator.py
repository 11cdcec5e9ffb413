"""
Tests for the external source aggregator.
"""

import pytest

from conftest import FakeSource, make_result


def make_aggregator(sources, clock, **kwargs):
    from personal_brain.aggregator import ExternalSourceAggregator
    from personal_brain.cache import SearchCache

    return ExternalSourceAggregator(sources, cache=SearchCache(ttl=3600, clock=clock), **kwargs)


# ============== Tests for caching ==============

class TestAggregatorCache:
    """Tests for cached aggregate searches."""

    async def test_wikipedia_single_result_cached(self, wikipedia_source, clock):
        """Test the single-source search and that a repeat call skips the adapter."""
        aggregator = make_aggregator([wikipedia_source], clock, enabled_sources=["Wikipedia"])

        first = await aggregator.search("ecosystem architecture")
        second = await aggregator.search("ecosystem architecture")

        assert len(first) == 1
        assert first[0].confidence == 0.65
        assert first[0].title == "Ecosystem architecture"
        assert second == first
        assert len(wikipedia_source.calls) == 1

    async def test_cache_hit_makes_no_calls(self, clock):
        """Test that every source is skipped on a cache hit."""
        a = FakeSource("A", [make_result("a", 0.6)])
        b = FakeSource("B", [make_result("b", 0.7)])
        aggregator = make_aggregator([a, b], clock)

        await aggregator.search("query")
        clock.advance(3599)
        await aggregator.search("QUERY ")

        assert len(a.calls) == 1
        assert len(b.calls) == 1

    async def test_cache_expiry_refetches(self, wikipedia_source, clock):
        """Test that a search after the TTL calls the sources again."""
        aggregator = make_aggregator([wikipedia_source], clock)

        await aggregator.search("ecosystem architecture")
        clock.advance(3600)
        await aggregator.search("ecosystem architecture")

        assert len(wikipedia_source.calls) == 2

    async def test_different_limit_is_separate_entry(self, wikipedia_source, clock):
        """Test that the limit is part of the cache key."""
        aggregator = make_aggregator([wikipedia_source], clock)

        await aggregator.search("ecosystem", limit=2)
        await aggregator.search("ecosystem", limit=3)

        assert len(wikipedia_source.calls) == 2

    async def test_list_recent(self, wikipedia_source, clock):
        """Test that list_recent returns the last cached results."""
        aggregator = make_aggregator([wikipedia_source], clock)
        await aggregator.search("ecosystem")

        assert [r.title for r in aggregator.list_recent()] == ["Ecosystem architecture"]


# ============== Tests for fan-out, ranking and failure isolation ==============

class TestAggregatorSearch:
    """Tests for the aggregate search algorithm."""

    async def test_partial_failure_isolated(self, clock):
        """Test that a failing source contributes nothing and does not fail the search."""
        a = FakeSource("A", [make_result("a1", 0.6), make_result("a2", 0.4)])
        broken = FakeSource("Broken", error=RuntimeError("API down"))
        c = FakeSource("C", [make_result("c1", 0.7)])
        aggregator = make_aggregator([a, broken, c], clock)

        results = await aggregator.search("anything")

        assert [r.title for r in results] == ["c1", "a1", "a2"]
        assert len(broken.calls) == 1

    async def test_results_sorted_and_capped(self, clock):
        """Test ranking by confidence and the max_results ceiling."""
        a = FakeSource("A", [make_result(f"a{i}", 0.5 + i * 0.05) for i in range(5)])
        b = FakeSource("B", [make_result(f"b{i}", 0.52 + i * 0.05) for i in range(5)])
        aggregator = make_aggregator([a, b], clock, max_results=4)

        results = await aggregator.search("anything")

        confidences = [r.confidence for r in results]
        assert len(results) <= 4
        assert confidences == sorted(confidences, reverse=True)

    async def test_per_source_limit_default(self, clock):
        """Test that each source is asked for ceil(max_results / source count)."""
        sources = [FakeSource(name) for name in ("A", "B", "C")]
        aggregator = make_aggregator(sources, clock, max_results=10)

        await aggregator.search("anything")

        assert all(s.calls[0].limit == 4 for s in sources)

    async def test_explicit_limit(self, clock):
        """Test that an explicit limit is passed through and caps the result."""
        a = FakeSource("A", [make_result(f"a{i}", 0.6) for i in range(5)])
        b = FakeSource("B", [make_result(f"b{i}", 0.7) for i in range(5)])
        aggregator = make_aggregator([a, b], clock, max_results=10)

        results = await aggregator.search("anything", limit=3)

        assert a.calls[0].limit == 3
        assert len(results) == 3
        assert all(r.title.startswith("b") for r in results)

    async def test_add_embeddings_forwarded(self, clock):
        """Test that the add_embeddings flag reaches the sources."""
        a = FakeSource("A")
        aggregator = make_aggregator([a], clock)

        await aggregator.search("anything", add_embeddings=True)

        assert a.calls[0].add_embeddings is True

    async def test_slow_source_times_out(self, clock):
        """Test that a source exceeding the deadline resolves to no results."""
        fast = FakeSource("Fast", [make_result("fast", 0.6)])
        slow = FakeSource("Slow", [make_result("slow", 0.9)], delay=5.0)
        aggregator = make_aggregator([fast, slow], clock, source_timeout=0.05)

        results = await aggregator.search("anything")

        assert [r.title for r in results] == ["fast"]

    async def test_blank_query(self, wikipedia_source, clock):
        """Test that a blank query returns nothing without calling sources."""
        aggregator = make_aggregator([wikipedia_source], clock)

        assert await aggregator.search("   ") == []
        assert wikipedia_source.calls == []

    async def test_all_sources_disabled(self, wikipedia_source, clock):
        """Test that an empty allow-list disables every source."""
        aggregator = make_aggregator([wikipedia_source], clock, enabled_sources=[])

        assert await aggregator.search("ecosystem") == []
        assert wikipedia_source.calls == []
        assert aggregator.count() == 0


# ============== Tests for the source registry ==============

class TestAggregatorSources:
    """Tests for enabling and disabling sources."""

    async def test_none_enables_all(self, wikipedia_source, news_source, clock):
        """Test that no allow-list means all registered sources."""
        aggregator = make_aggregator([wikipedia_source, news_source], clock)

        assert aggregator.get_enabled_source_names() == ["Wikipedia", "NewsAPI"]

    async def test_allow_list_skips_unregistered(self, wikipedia_source, clock):
        """Test that allow-listed but unregistered names are ignored."""
        aggregator = make_aggregator([wikipedia_source], clock, enabled_sources=["Wikipedia", "NewsAPI"])

        assert aggregator.get_enabled_source_names() == ["Wikipedia"]

    async def test_disable_newsapi(self, wikipedia_source, news_source, clock):
        """Test that a disabled source is no longer searched."""
        aggregator = make_aggregator(
            [wikipedia_source, news_source], clock, enabled_sources=["Wikipedia", "NewsAPI"]
        )
        await aggregator.search("ecosystem")

        enabled = aggregator.set_source_enabled("NewsAPI", False)
        results = await aggregator.search("ecosystem")

        assert enabled == ["Wikipedia"]
        assert len(news_source.calls) == 1
        assert len(wikipedia_source.calls) == 2
        assert all(r.source == "Wikipedia" for r in results)

    async def test_reenable_source(self, wikipedia_source, news_source, clock):
        """Test enabling a previously disabled source."""
        aggregator = make_aggregator([wikipedia_source, news_source], clock, enabled_sources=["Wikipedia"])

        assert aggregator.set_source_enabled("NewsAPI", True) == ["Wikipedia", "NewsAPI"]

    async def test_toggle_clears_cache(self, wikipedia_source, clock):
        """Test that changing the enabled set drops cached results."""
        aggregator = make_aggregator([wikipedia_source], clock)
        await aggregator.search("ecosystem")

        aggregator.set_source_enabled("Wikipedia", True)

        assert len(aggregator.cache) == 0

    async def test_toggle_unknown_source(self, wikipedia_source, clock):
        """Test that toggling an unregistered name raises."""
        from personal_brain.utils import UnknownSourceError

        aggregator = make_aggregator([wikipedia_source], clock)

        with pytest.raises(UnknownSourceError):
            aggregator.set_source_enabled("Bing", True)

    async def test_register_replaces_by_name(self, clock):
        """Test that registering a source with an existing name replaces it."""
        aggregator = make_aggregator([FakeSource("A")], clock)
        replacement = FakeSource("A")
        aggregator.register_source(replacement)

        assert aggregator.get_sources() == [replacement]


# ============== Tests for availability and metadata ==============

class TestAggregatorStatus:
    """Tests for availability checks and metadata."""

    async def test_availability_map(self, clock):
        """Test that failures and exceptions count as unavailable."""
        sources = [
            FakeSource("Up", available=True),
            FakeSource("Down", available=False),
            FakeSource("Broken", available=RuntimeError("boom")),
        ]
        aggregator = make_aggregator(sources, clock)

        assert await aggregator.check_sources_availability() == {"Up": True, "Down": False, "Broken": False}

    async def test_availability_includes_disabled(self, wikipedia_source, news_source, clock):
        """Test that availability covers every registered source."""
        aggregator = make_aggregator([wikipedia_source, news_source], clock, enabled_sources=["Wikipedia"])

        assert set(await aggregator.check_sources_availability()) == {"Wikipedia", "NewsAPI"}

    async def test_metadata(self, wikipedia_source, clock):
        """Test metadata collection per source."""
        aggregator = make_aggregator([wikipedia_source], clock)

        assert await aggregator.get_sources_metadata() == {"Wikipedia": {"name": "Wikipedia", "type": "test"}}
