"""
External sources messaging: request handler, notifier and the facade that
wires the context to the mediator.
"""

import structlog

from ...messaging.mediator import ContextMediator
from ...messaging.messages import ContextId, DataRequestType, ErrorCode, NotificationMessage, NotificationType
from ...messaging.schemas import (
    MAX_TOP_RESULTS,
    ExternalSearchParams,
    ExternalSearchPayload,
    ExternalStatusParams,
    ResultSummary,
    SourceAvailabilityPayload,
    SourceStatusPayload,
)
from ...models import ExternalSourceResult
from ..base import ContextMessageHandler, ContextNotifier, RequestRoute
from .context import DEFAULT_SEMANTIC_LIMIT, ExternalSourceContext

logger = structlog.get_logger(__name__)


class ExternalSourceMessageHandler(ContextMessageHandler):
    context_id = ContextId.EXTERNAL_SOURCES

    def __init__(self, context: ExternalSourceContext):
        self.context = context
        super().__init__()

    def request_routes(self) -> dict[DataRequestType, RequestRoute]:
        return {
            DataRequestType.EXTERNAL_SOURCES_SEARCH: RequestRoute(
                ExternalSearchParams, self._search, ErrorCode.SEARCH_ERROR
            ),
            DataRequestType.EXTERNAL_SOURCES_STATUS: RequestRoute(
                ExternalStatusParams, self._status, ErrorCode.STATUS_ERROR
            ),
        }

    def notification_routes(self):
        return {
            NotificationType.CONVERSATION_STARTED: self._on_conversation_started,
            NotificationType.NOTE_CREATED: self._on_note_created,
        }

    async def _search(self, params: ExternalSearchParams) -> dict:
        if params.semantic:
            results = await self.context.semantic_search(params.query, limit=params.limit or DEFAULT_SEMANTIC_LIMIT)
        else:
            results = await self.context.search(params.query, limit=params.limit)
        return {"query": params.query, "results": [r.summary() for r in results], "count": len(results)}

    async def _status(self, params: ExternalStatusParams) -> dict:
        availability = await self.context.check_sources_availability()
        return {
            "availability": availability,
            "sources": await self.context.get_sources_status(availability),
        }

    async def _on_conversation_started(self, notification: NotificationMessage) -> None:
        # A new conversation is a natural point to drop stale searches
        removed = self.context.aggregator.cache.prune_expired()
        logger.debug("external_cache_pruned_on_conversation_start", removed=removed)

    async def _on_note_created(self, notification: NotificationMessage) -> None:
        logger.debug("external_sources_saw_note_created", note_id=notification.payload.get("note_id"))


class ExternalSourceNotifier(ContextNotifier):
    context_id = ContextId.EXTERNAL_SOURCES

    def __init__(self, mediator: ContextMediator):
        super().__init__(mediator)
        self._last_availability: dict[str, bool] | None = None

    async def notify_search_completed(self, query: str, results: list[ExternalSourceResult]) -> list[str]:
        if not results:
            logger.debug("external_search_notification_skipped", query=query)
            return []
        payload = ExternalSearchPayload(
            query=query,
            result_count=len(results),
            sources=sorted({r.source_type for r in results}),
            top_results=[
                ResultSummary(title=r.title, source=r.source, source_type=r.source_type, timestamp=r.timestamp)
                for r in results[:MAX_TOP_RESULTS]
            ],
        )
        return await self._broadcast(NotificationType.EXTERNAL_SOURCES_SEARCH, payload)

    async def notify_availability_changed(self, availability: dict[str, bool]) -> list[str]:
        """Broadcast availability when it differs from the last reported map."""
        previous = self._last_availability or {}
        changed = sorted(
            name for name in set(previous) | set(availability)
            if previous.get(name) != availability.get(name)
        )
        if self._last_availability is not None and not changed:
            return []
        self._last_availability = dict(availability)
        return await self._broadcast(
            NotificationType.EXTERNAL_SOURCES_AVAILABILITY,
            SourceAvailabilityPayload(availability=availability, changed=changed),
        )

    async def notify_source_toggled(self, source_name: str, enabled: bool, enabled_sources: list[str]) -> list[str]:
        return await self._broadcast(
            NotificationType.EXTERNAL_SOURCES_STATUS,
            SourceStatusPayload(source_name=source_name, enabled=enabled, enabled_sources=enabled_sources),
        )


class ExternalSourceMessaging:
    """External sources context wired to the mediator."""

    def __init__(self, context: ExternalSourceContext, mediator: ContextMediator):
        self.context = context
        self.mediator = mediator
        self.notifier = ExternalSourceNotifier(mediator)
        self.handler = ExternalSourceMessageHandler(context)
        mediator.register_handler(ContextId.EXTERNAL_SOURCES, self.handler)

    async def search(self, query: str, limit: int | None = None, add_embeddings: bool = False) -> list[ExternalSourceResult]:
        results = await self.context.search(query, limit=limit, add_embeddings=add_embeddings)
        await self.notifier.notify_search_completed(query, results)
        return results

    async def semantic_search(self, query: str, limit: int = DEFAULT_SEMANTIC_LIMIT) -> list[ExternalSourceResult]:
        results = await self.context.semantic_search(query, limit=limit)
        await self.notifier.notify_search_completed(query, results)
        return results

    async def check_sources_availability(self) -> dict[str, bool]:
        availability = await self.context.check_sources_availability()
        await self.notifier.notify_availability_changed(availability)
        return availability

    async def toggle_source(self, source_name: str, enabled: bool) -> list[str]:
        enabled_sources = self.context.toggle_source(source_name, enabled)
        await self.notifier.notify_source_toggled(source_name, enabled, enabled_sources)
        return enabled_sources
