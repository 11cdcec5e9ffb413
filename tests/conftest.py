"""
Pytest configuration and fixtures for personal-brain tests.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from personal_brain.models import ExternalSourceResult, SearchOptions
from personal_brain.sources.base import ExternalSource
from personal_brain.utils import cosine_similarity


def make_result(
    title: str,
    confidence: float = 0.5,
    source: str = "Fake",
    source_type: str = "test",
    content: str | None = None,
    embedding: list[float] | None = None,
) -> ExternalSourceResult:
    """Build an ExternalSourceResult with sensible defaults."""
    return ExternalSourceResult(
        title=title,
        content=content or f"Content about {title}",
        url=f"https://example.com/{title.replace(' ', '_')}",
        source=source,
        source_type=source_type,
        timestamp=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
        confidence=confidence,
        embedding=embedding,
    )


class FakeSource(ExternalSource):
    """In-memory source adapter that records every search call."""

    source_type = "test"

    def __init__(self, name, results=None, error=None, available=True, delay=0.0):
        super().__init__()
        self.name = name
        self.results = list(results or [])
        self.error = error
        self.available = available
        self.delay = delay
        self.calls: list[SearchOptions] = []

    async def search(self, options):
        self.calls.append(options)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if options.limit:
            return self.results[:options.limit]
        return list(self.results)

    async def check_availability(self):
        if isinstance(self.available, Exception):
            raise self.available
        return self.available

    async def get_source_metadata(self):
        return {"name": self.name, "type": self.source_type}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmbeddingService:
    """Embedding collaborator returning fixed vectors per text."""

    def __init__(self, vectors=None, default=None, error=None):
        self.vectors = vectors or {}
        self.default = default or [0.0, 0.0, 1.0]
        self.error = error

    async def get_embedding(self, text):
        if self.error is not None:
            raise self.error
        return self.vectors.get(text, self.default)

    def cosine_similarity(self, a, b):
        return cosine_similarity(a, b)


class Recorder:
    """Mediator handler that records every message it receives."""

    def __init__(self, error: Exception | None = None):
        self.messages = []
        self.error = error

    async def __call__(self, message):
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mediator():
    from personal_brain.messaging import ContextMediator
    return ContextMediator(request_timeout=1.0)


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    from personal_brain.config import Settings
    return Settings(
        enabled_sources=[],
        max_results=10,
        newsapi_key="",
        openai_api_key="",
        notes_import_path=None,
        profile_path=None,
    )


@pytest.fixture
def wikipedia_source():
    return FakeSource("Wikipedia", [
        make_result("Ecosystem architecture", 0.65, source="Wikipedia", source_type="encyclopedia"),
    ])


@pytest.fixture
def news_source():
    return FakeSource("NewsAPI", [
        make_result("Ecosystem news", 0.55, source="NewsAPI - BBC", source_type="news"),
    ])


@pytest.fixture
def brain(settings, wikipedia_source, news_source, clock):
    """Fully wired brain over fake sources."""
    from personal_brain.brain import build_brain
    return build_brain(settings, sources=[wikipedia_source, news_source], clock=clock)
