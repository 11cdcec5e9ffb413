"""
Tool functions for external sources.

Tools never raise: failures come back as a ToolResult with ``is_error`` set.
"""

from typing import Any

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ...models import ToolResult
from ...utils import UnknownSourceError
from .messaging import ExternalSourceMessaging

logger = structlog.get_logger(__name__)

DEFAULT_SEARCH_LIMIT = 5


class SearchExternalSourcesArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1, le=20)
    semantic: bool = True


class ToggleExternalSourceArgs(BaseModel):
    source_name: str = Field(min_length=1, validation_alias=AliasChoices("sourceName", "source_name"))
    enabled: bool


def _invalid_arguments(error: ValidationError) -> ToolResult:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )
    return ToolResult(content=[f"Invalid arguments: {details}"], is_error=True)


class ExternalSourceTools:
    def __init__(self, messaging: ExternalSourceMessaging, default_limit: int = DEFAULT_SEARCH_LIMIT):
        self.messaging = messaging
        self.default_limit = default_limit

    async def search_external_sources(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            args = SearchExternalSourcesArgs.model_validate(arguments)
        except ValidationError as e:
            return _invalid_arguments(e)

        limit = args.limit or self.default_limit
        try:
            if args.semantic:
                results = await self.messaging.semantic_search(args.query, limit=limit)
            else:
                results = await self.messaging.search(args.query, limit=limit)
        except Exception as e:
            logger.error("search_tool_failed", query=args.query, error=str(e))
            return ToolResult(content=[f"Failed to search external sources: {e}"], is_error=True)

        if not results:
            return ToolResult(content=[f'No results found for query: "{args.query}"'])

        return ToolResult(content=[self.messaging.context.format(results)])

    async def toggle_external_source(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            args = ToggleExternalSourceArgs.model_validate(arguments)
        except ValidationError as e:
            return _invalid_arguments(e)

        try:
            enabled_sources = await self.messaging.toggle_source(args.source_name, args.enabled)
        except UnknownSourceError as e:
            return ToolResult(content=[f"Failed to toggle external source: {e}"], is_error=True)

        state = "enabled" if args.enabled else "disabled"
        return ToolResult(content=[
            f'Source "{args.source_name}" is now {state}. Enabled sources: {", ".join(enabled_sources) or "None"}'
        ])

    async def get_external_sources_status(self, arguments: dict[str, Any] | None = None) -> ToolResult:
        try:
            availability = await self.messaging.check_sources_availability()
            status = await self.messaging.context.get_sources_status(availability)
        except Exception as e:
            logger.error("status_tool_failed", error=str(e))
            return ToolResult(content=[f"Failed to get external sources status: {e}"], is_error=True)

        if not status:
            return ToolResult(content=["# External Knowledge Sources\n\nNo sources registered."])

        lines = [
            f"- {s['name']}: {'Available' if s['available'] else 'Unavailable'}"
            f" ({'enabled' if s['enabled'] else 'disabled'})"
            for s in status
        ]
        return ToolResult(content=["# External Knowledge Sources\n\n" + "\n".join(lines)])
