"""
Tests for the source adapters and the embedding service, using httpx.MockTransport.
"""

from datetime import timedelta

import httpx
import pytest

from conftest import FakeEmbeddingService


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


WIKI_SEARCH = {
    "query": {
        "search": [
            {"pageid": 101, "title": "Ecosystem architecture", "wordcount": 150},
            {
                "pageid": 202,
                "title": "Software ecosystem",
                "wordcount": 5000,
                "snippet": "A software <span class=\"searchmatch\">ecosystem</span> is",
            },
        ]
    }
}

WIKI_EXTRACTS = {
    "101": "Ecosystem architecture is the design of interacting systems.",
    "202": "A software ecosystem is a collection of software.",
}


def wikipedia_handler(request: httpx.Request) -> httpx.Response:
    params = request.url.params
    if params.get("list") == "search":
        return httpx.Response(200, json=WIKI_SEARCH)
    page_id = params.get("pageids")
    if page_id:
        return httpx.Response(200, json={"query": {"pages": {page_id: {"extract": WIKI_EXTRACTS[page_id]}}}})
    if params.get("meta") == "siteinfo":
        return httpx.Response(200, json={"query": {"general": {"sitename": "Wikipedia"}}})
    return httpx.Response(404)


# ============== Tests for score_confidence() ==============

class TestScoreConfidence:
    """Tests for the shared confidence helper."""

    def test_baseline(self):
        """Test that an empty result scores the baseline."""
        from personal_brain.sources import score_confidence

        assert score_confidence(title="", query="zzz") == pytest.approx(0.5)

    def test_bonuses_bounded(self):
        """Test that each bonus is capped."""
        from personal_brain.sources import score_confidence

        score = score_confidence(title="unrelated", query="zzz", content_length=1_000_000, max_length_bonus=0.2)
        assert score == pytest.approx(0.7)

    def test_recency_decays(self):
        """Test that newer content scores higher."""
        from personal_brain.sources import score_confidence

        fresh = score_confidence(title="", query="x", age_hours=0, max_age_hours=168)
        stale = score_confidence(title="", query="x", age_hours=168, max_age_hours=168)

        assert fresh == pytest.approx(0.7)
        assert stale == pytest.approx(0.5)

    def test_capped_below_one(self):
        """Test the overall cap."""
        from personal_brain.sources import score_confidence

        score = score_confidence(
            title="python testing", query="python testing",
            content_length=10_000, age_hours=0, max_age_hours=10,
        )
        assert score == pytest.approx(0.95)


# ============== Tests for WikipediaSource ==============

class TestWikipediaSource:
    """Tests for the Wikipedia adapter."""

    async def test_search(self):
        """Test search results, urls, extracts and confidence."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import WikipediaSource

        async with mock_client(wikipedia_handler) as client:
            source = WikipediaSource(client=client)
            results = await source.search(SearchOptions(query="ecosystem architecture", limit=2))

        assert [r.title for r in results] == ["Ecosystem architecture", "Software ecosystem"]
        first = results[0]
        assert first.url == "https://en.wikipedia.org/wiki/Ecosystem_architecture"
        assert first.content == WIKI_EXTRACTS["101"]
        assert first.source == "Wikipedia"
        assert first.source_type == "encyclopedia"
        # 0.5 base + 150/1000 length + 0.1 title overlap
        assert first.confidence == pytest.approx(0.75)
        assert first.embedding is None

    async def test_search_sends_limit(self):
        """Test that the limit is sent as srlimit."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import WikipediaSource

        seen = []

        def handler(request):
            seen.append(request.url.params.get("srlimit"))
            return wikipedia_handler(request)

        async with mock_client(handler) as client:
            await WikipediaSource(client=client).search(SearchOptions(query="x", limit=7))

        assert seen[0] == "7"

    async def test_extract_failure_uses_snippet(self):
        """Test that a failed extract fetch falls back to the plain search snippet."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import WikipediaSource

        def handler(request):
            if request.url.params.get("pageids") == "202":
                return httpx.Response(500)
            return wikipedia_handler(request)

        async with mock_client(handler) as client:
            results = await WikipediaSource(client=client).search(SearchOptions(query="ecosystem"))

        assert results[1].content == "A software ecosystem is"
        assert results[0].content == WIKI_EXTRACTS["101"]

    async def test_search_http_error(self):
        """Test that an API failure yields no results."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import WikipediaSource

        async with mock_client(lambda request: httpx.Response(503)) as client:
            assert await WikipediaSource(client=client).search(SearchOptions(query="x")) == []

    async def test_search_no_hits(self):
        """Test an empty search response."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import WikipediaSource

        async with mock_client(lambda request: httpx.Response(200, json={"query": {"search": []}})) as client:
            assert await WikipediaSource(client=client).search(SearchOptions(query="x")) == []

    async def test_embeddings_attached(self):
        """Test that embeddings are attached on request."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import WikipediaSource

        embeddings = FakeEmbeddingService(default=[0.1, 0.2, 0.3])
        async with mock_client(wikipedia_handler) as client:
            source = WikipediaSource(client=client, embedding_service=embeddings)
            results = await source.search(SearchOptions(query="ecosystem", add_embeddings=True))

        assert all(r.embedding == [0.1, 0.2, 0.3] for r in results)

    async def test_check_availability(self):
        """Test the availability probe."""
        from personal_brain.sources import WikipediaSource

        async with mock_client(wikipedia_handler) as client:
            assert await WikipediaSource(client=client).check_availability() is True

        async with mock_client(lambda request: httpx.Response(500, text="down")) as client:
            assert await WikipediaSource(client=client).check_availability() is False

    async def test_metadata(self):
        """Test metadata fields."""
        from personal_brain.sources import WikipediaSource

        metadata = await WikipediaSource().get_source_metadata()

        assert metadata["name"] == "Wikipedia"
        assert metadata["requiresAuthentication"] is False


# ============== Tests for NewsApiSource ==============

def news_article(title="Python 4 released", hours_ago=1, **overrides):
    from personal_brain.utils import utcnow

    article = {
        "source": {"name": "BBC"},
        "author": "Jane Doe",
        "title": title,
        "description": "A short description.",
        "url": "https://example.com/news",
        "publishedAt": (utcnow() - timedelta(hours=hours_ago)).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "content": "The full article text goes here. [+1234 chars]",
    }
    article.update(overrides)
    return article


class TestNewsApiSource:
    """Tests for the NewsAPI adapter."""

    async def test_no_key_no_requests(self):
        """Test that without a key the adapter returns nothing and makes no calls."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import NewsApiSource

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"status": "ok", "articles": []})

        async with mock_client(handler) as client:
            source = NewsApiSource("", client=client)
            assert await source.search(SearchOptions(query="python")) == []
            assert await source.check_availability() is False

        assert calls == []

    async def test_search(self):
        """Test parsing of articles."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import NewsApiSource

        seen = {}

        def handler(request):
            seen["key"] = request.headers.get("X-Api-Key")
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"status": "ok", "articles": [news_article()]})

        async with mock_client(handler) as client:
            results = await NewsApiSource("secret", client=client).search(SearchOptions(query="python", limit=3))

        assert seen["key"] == "secret"
        assert seen["params"]["q"] == "python"
        assert seen["params"]["pageSize"] == "3"
        assert seen["params"]["sortBy"] == "relevancy"

        result = results[0]
        assert result.title == "Python 4 released"
        assert result.source == "NewsAPI - BBC"
        assert result.source_type == "news"
        assert result.content.startswith("By Jane Doe\nPublished: ")
        assert "A short description." in result.content
        assert "[+1234 chars]" not in result.content
        assert 0.5 < result.confidence <= 0.95

    async def test_recent_articles_score_higher(self):
        """Test the recency bonus."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import NewsApiSource

        articles = [news_article(title="Old", hours_ago=160), news_article(title="New", hours_ago=1)]

        async with mock_client(lambda r: httpx.Response(200, json={"status": "ok", "articles": articles})) as client:
            results = await NewsApiSource("k", client=client).search(SearchOptions(query="zzz"))

        by_title = {r.title: r.confidence for r in results}
        assert by_title["New"] > by_title["Old"]

    async def test_error_status(self):
        """Test that an API error payload yields no results."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import NewsApiSource

        body = {"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid."}
        async with mock_client(lambda r: httpx.Response(200, json=body)) as client:
            assert await NewsApiSource("bad", client=client).search(SearchOptions(query="x")) == []

    async def test_http_error(self):
        """Test that an HTTP failure yields no results."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import NewsApiSource

        async with mock_client(lambda r: httpx.Response(429, json={"status": "error"})) as client:
            assert await NewsApiSource("k", client=client).search(SearchOptions(query="x")) == []

    async def test_missing_fields(self):
        """Test defaults for sparse articles."""
        from personal_brain.models import SearchOptions
        from personal_brain.sources import NewsApiSource

        sparse = {"title": None, "url": None, "source": None, "publishedAt": "not a date"}
        async with mock_client(lambda r: httpx.Response(200, json={"status": "ok", "articles": [sparse]})) as client:
            results = await NewsApiSource("k", client=client).search(SearchOptions(query="x"))

        assert results[0].title == "Untitled"
        assert results[0].source == "NewsAPI - Unknown Source"
        assert results[0].timestamp.tzinfo is not None

    async def test_check_availability(self):
        """Test the availability probe."""
        from personal_brain.sources import NewsApiSource

        async with mock_client(lambda r: httpx.Response(200, json={"status": "ok", "articles": []})) as client:
            assert await NewsApiSource("k", client=client).check_availability() is True


# ============== Tests for EmbeddingService ==============

class TestEmbeddingService:
    """Tests for the HTTP embedding collaborator."""

    async def test_get_embedding(self):
        """Test a successful embedding call."""
        from personal_brain.embeddings import EmbeddingService

        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

        async with mock_client(handler) as client:
            service = EmbeddingService(api_key="sk-test", dimension=3, client=client)
            vector = await service.get_embedding("hello   world")

        assert vector == [0.1, 0.2, 0.3]
        assert seen["auth"] == "Bearer sk-test"
        assert seen["path"] == "/v1/embeddings"

    async def test_no_key_zero_vector(self):
        """Test the zero-vector fallback without a key."""
        from personal_brain.embeddings import EmbeddingService

        assert await EmbeddingService(api_key="", dimension=4).get_embedding("text") == [0.0] * 4

    async def test_http_error_zero_vector(self):
        """Test the zero-vector fallback on an API error."""
        from personal_brain.embeddings import EmbeddingService

        async with mock_client(lambda r: httpx.Response(500)) as client:
            service = EmbeddingService(api_key="k", dimension=2, client=client)
            assert await service.get_embedding("text") == [0.0, 0.0]

    def test_cosine_similarity(self):
        """Test cosine similarity edge cases."""
        from personal_brain.embeddings import EmbeddingService

        service = EmbeddingService(api_key="")

        assert service.cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert service.cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
        assert service.cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert service.cosine_similarity([0, 0], [1, 0]) == 0.0
        assert service.cosine_similarity([1, 0], [1, 0, 0]) == 0.0
