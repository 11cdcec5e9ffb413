"""
Composition root for the Personal Brain.

build_brain() constructs the mediator, the aggregator and every context once
and wires them together; the resulting Brain is passed to the protocol server.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from .aggregator import ExternalSourceAggregator
from .cache import SearchCache
from .config import Settings
from .contexts.conversations import ConversationContext, ConversationMessaging
from .contexts.external_sources import ExternalSourceContext, ExternalSourceMessaging, ExternalSourceTools
from .contexts.notes import NoteContext, NoteMessaging, NoteRepository
from .contexts.profiles import ProfileContext, ProfileMessaging, ProfileRepository
from .embeddings import EmbeddingProvider, EmbeddingService
from .messaging.mediator import ContextMediator
from .messaging.messages import ContextId, DataRequestType, DataResponseMessage, NotificationType, create_data_request
from .sources import ExternalSource, NewsApiSource, WikipediaSource

logger = structlog.get_logger(__name__)

# Sender id for requests issued by the brain itself
ORCHESTRATOR_ID = "brain-orchestrator"

# Broadcast types each context reacts to
DEFAULT_SUBSCRIPTIONS: dict[ContextId, list[NotificationType]] = {
    ContextId.NOTES: [NotificationType.PROFILE_UPDATED, NotificationType.CONVERSATION_STARTED],
    ContextId.PROFILE: [NotificationType.NOTE_CREATED, NotificationType.NOTE_UPDATED],
    ContextId.CONVERSATION: [
        NotificationType.NOTE_CREATED,
        NotificationType.PROFILE_UPDATED,
        NotificationType.EXTERNAL_SOURCES_SEARCH,
    ],
    ContextId.EXTERNAL_SOURCES: [NotificationType.CONVERSATION_STARTED, NotificationType.NOTE_CREATED],
}


@dataclass
class Brain:
    mediator: ContextMediator
    aggregator: ExternalSourceAggregator
    notes: NoteMessaging
    profile: ProfileMessaging
    conversations: ConversationMessaging
    external_sources: ExternalSourceMessaging
    external_tools: ExternalSourceTools
    embedding_service: EmbeddingProvider | None = None

    async def gather_context(
        self,
        query: str,
        note_limit: int = 5,
        external_limit: int | None = None,
    ) -> dict[str, Any]:
        """Ask the notes and external sources contexts for material on ``query`` concurrently.

        Returns ``{"query", "notes", "external", "errors"}``; a failed request
        contributes an empty list and its error text.
        """
        external_params: dict[str, Any] = {"query": query}
        if external_limit:
            external_params["limit"] = external_limit

        notes_response, external_response = await asyncio.gather(
            self.mediator.send_request(create_data_request(
                ORCHESTRATOR_ID, ContextId.NOTES, DataRequestType.NOTES_SEARCH,
                {"query": query, "limit": note_limit},
            )),
            self.mediator.send_request(create_data_request(
                ORCHESTRATOR_ID, ContextId.EXTERNAL_SOURCES, DataRequestType.EXTERNAL_SOURCES_SEARCH,
                external_params,
            )),
        )

        errors = []
        for response in (notes_response, external_response):
            if not response.is_success:
                logger.warning("gather_context_request_failed", source=response.source_context,
                               code=response.error.code, message=response.error.message)
                errors.append(f"{response.source_context}: [{response.error.code}] {response.error.message}")

        return {
            "query": query,
            "notes": _response_items(notes_response, "notes"),
            "external": _response_items(external_response, "results"),
            "errors": errors,
        }


def _response_items(response: DataResponseMessage, key: str) -> list:
    if not response.is_success or not isinstance(response.data, dict):
        return []
    return list(response.data.get(key) or [])


def default_sources(
    settings: Settings,
    client: httpx.AsyncClient | None = None,
    embedding_service: EmbeddingProvider | None = None,
) -> list[ExternalSource]:
    """Wikipedia always; NewsAPI only when a key is configured."""
    sources: list[ExternalSource] = [
        WikipediaSource(client=client, embedding_service=embedding_service, timeout=settings.source_timeout),
    ]
    if settings.newsapi_key:
        sources.append(NewsApiSource(
            settings.newsapi_key,
            client=client,
            embedding_service=embedding_service,
            timeout=settings.source_timeout,
            max_age_hours=settings.news_max_age_hours,
        ))
    else:
        logger.info("newsapi_not_registered", reason="no api key")
    return sources


def build_brain(
    settings: Settings,
    *,
    sources: list[ExternalSource] | None = None,
    embedding_service: EmbeddingProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
    note_repository: NoteRepository | None = None,
    profile_repository: ProfileRepository | None = None,
    clock: Callable[[], float] | None = None,
) -> Brain:
    """Construct and wire every component.

    Args:
        settings: Application settings
        sources: Source adapters to register instead of the defaults
        embedding_service: Embedding backend; built from settings when an API key is set
        http_client: Shared HTTP client for the default sources and embeddings
        note_repository: Note storage (in-memory by default)
        profile_repository: Profile storage (in-memory by default)
        clock: Cache clock override
    """
    mediator = ContextMediator(request_timeout=settings.request_timeout)

    if embedding_service is None and settings.openai_api_key:
        embedding_service = EmbeddingService(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
            base_url=settings.embedding_base_url,
            client=http_client,
        )

    if sources is None:
        sources = default_sources(settings, http_client, embedding_service)

    cache_kwargs: dict[str, Any] = {"ttl": settings.cache_ttl_seconds, "max_entries": settings.cache_max_entries}
    if clock is not None:
        cache_kwargs["clock"] = clock

    aggregator = ExternalSourceAggregator(
        sources,
        enabled_sources=settings.enabled_sources or None,
        max_results=settings.max_results,
        cache=SearchCache(**cache_kwargs),
        source_timeout=settings.source_timeout,
    )

    external_sources = ExternalSourceMessaging(ExternalSourceContext(aggregator, embedding_service), mediator)
    brain = Brain(
        mediator=mediator,
        aggregator=aggregator,
        notes=NoteMessaging(NoteContext(note_repository), mediator),
        profile=ProfileMessaging(ProfileContext(profile_repository), mediator),
        conversations=ConversationMessaging(ConversationContext(), mediator),
        external_sources=external_sources,
        external_tools=ExternalSourceTools(external_sources),
        embedding_service=embedding_service,
    )

    for context_id, notification_types in DEFAULT_SUBSCRIPTIONS.items():
        for notification_type in notification_types:
            mediator.subscribe(context_id, notification_type)

    logger.info(
        "brain_ready",
        contexts=mediator.get_registered_contexts(),
        sources=[s.name for s in aggregator.get_sources()],
        enabled=aggregator.get_enabled_source_names(),
    )
    return brain
