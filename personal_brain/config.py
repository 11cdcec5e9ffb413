"""
Configuration module for the Personal Brain MCP Server.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use BRAIN_ prefix (e.g., BRAIN_MAX_RESULTS).
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - BRAIN_ENABLED_SOURCES: JSON list of enabled source names (empty = all registered)
    - BRAIN_MAX_RESULTS: Maximum results returned by an aggregate search
    - BRAIN_CACHE_TTL_MS: Search cache TTL in milliseconds
    - BRAIN_CACHE_MAX_ENTRIES: Number of cached searches before eviction
    - BRAIN_SOURCE_TIMEOUT: Deadline in seconds for a single source call
    - BRAIN_REQUEST_TIMEOUT: Deadline in seconds for a mediator request
    - BRAIN_NEWSAPI_KEY / NEWSAPI_KEY: NewsAPI key (NewsAPI is only registered when set)
    - BRAIN_OPENAI_API_KEY / OPENAI_API_KEY: Key for the embedding endpoint
    - BRAIN_NOTES_IMPORT_PATH: Markdown directory imported at startup
    - BRAIN_PROFILE_PATH: YAML profile loaded at startup
    """

    enabled_sources: list[str] = Field(default_factory=lambda: ["Wikipedia", "NewsAPI"])
    max_results: int = 10
    cache_ttl_ms: int = 60 * 60 * 1000  # 1 hour
    cache_max_entries: int = 100
    source_timeout: float = 10.0
    request_timeout: float = 30.0

    newsapi_key: str = Field(default="", validation_alias=AliasChoices("BRAIN_NEWSAPI_KEY", "NEWSAPI_KEY"))
    news_max_age_hours: int = 24 * 7

    openai_api_key: str = Field(default="", validation_alias=AliasChoices("BRAIN_OPENAI_API_KEY", "OPENAI_API_KEY"))
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    embedding_base_url: str = "https://api.openai.com/v1"

    notes_import_path: Path | None = None
    profile_path: Path | None = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="BRAIN_", populate_by_name=True)

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000


# Global settings instance, read once at process start
settings = Settings()
