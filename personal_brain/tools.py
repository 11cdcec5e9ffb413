"""
MCP Tools module for the Personal Brain MCP Server.

Contains the tool and resource dispatch functions and create_server(), which
binds them to an mcp Server instance.
"""

import json
from typing import Any
from urllib.parse import parse_qs, urlsplit

import structlog
from mcp.server import Server
from mcp.types import Resource, ResourceTemplate, TextContent, Tool
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .brain import Brain
from .models import ToolResult
from .utils import ContextDataNotFound

logger = structlog.get_logger(__name__)

SERVER_NAME = "personal-brain"


class ToolExecutionError(Exception):
    """Raised to the protocol layer so the tool call is reported with isError."""
    pass


TOOLS = [
    Tool(
        name="search_external_sources",
        description="Search across external knowledge sources (Wikipedia, NewsAPI) with optional semantic re-ranking.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query"
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results (1-20, default: 5)",
                    "minimum": 1,
                    "maximum": 20
                },
                "semantic": {
                    "type": "boolean",
                    "description": "Re-rank results by embedding similarity (default: true)"
                }
            },
            "required": ["query"]
        }
    ),
    Tool(
        name="toggle_external_source",
        description="Enable or disable a specific external knowledge source.",
        inputSchema={
            "type": "object",
            "properties": {
                "sourceName": {
                    "type": "string",
                    "description": "Source name, e.g. 'Wikipedia' or 'NewsAPI'"
                },
                "enabled": {
                    "type": "boolean",
                    "description": "Whether the source should be searched"
                }
            },
            "required": ["sourceName", "enabled"]
        }
    ),
    Tool(
        name="get_external_sources_status",
        description="Check which external sources are enabled and currently reachable.",
        inputSchema={
            "type": "object",
            "properties": {}
        }
    ),
    Tool(
        name="search_notes",
        description="Search stored notes by keyword. All words must match (title matches rank first).",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search keywords"
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results (default: 10)",
                    "default": 10
                }
            },
            "required": ["query"]
        }
    ),
    Tool(
        name="create_note",
        description="Create a new note.",
        inputSchema={
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": "Note title"
                },
                "content": {
                    "type": "string",
                    "description": "Note body (markdown)"
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags for the note"
                }
            },
            "required": ["title", "content"]
        }
    ),
    Tool(
        name="get_profile",
        description="Get the user's profile.",
        inputSchema={
            "type": "object",
            "properties": {}
        }
    ),
    Tool(
        name="gather_context",
        description="Collect notes and external source results relevant to a query in one call.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Topic or question"
                }
            },
            "required": ["query"]
        }
    ),
]


class SearchNotesArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=50)


class CreateNoteArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    content: str
    tags: list[str] = Field(default_factory=list)


class GatherContextArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(min_length=1)


def _format_profile(profile: dict[str, Any]) -> str:
    output = f"# {profile.get('full_name') or 'Profile'}\n\n"
    if profile.get("headline"):
        output += f"**Headline:** {profile['headline']}\n"
    if profile.get("location"):
        output += f"**Location:** {profile['location']}\n"
    if profile.get("skills"):
        output += f"**Skills:** {', '.join(profile['skills'])}\n"
    if profile.get("interests"):
        output += f"**Interests:** {', '.join(profile['interests'])}\n"
    if profile.get("summary"):
        output += f"\n{profile['summary']}\n"
    return output


async def call_brain_tool(brain: Brain, name: str, arguments: dict[str, Any] | None) -> ToolResult:
    """Run a tool by name. Errors come back as a ToolResult with is_error set."""
    arguments = arguments or {}

    if name == "search_external_sources":
        return await brain.external_tools.search_external_sources(arguments)

    elif name == "toggle_external_source":
        return await brain.external_tools.toggle_external_source(arguments)

    elif name == "get_external_sources_status":
        return await brain.external_tools.get_external_sources_status(arguments)

    try:
        if name == "search_notes":
            args = SearchNotesArgs.model_validate(arguments)
            results = await brain.notes.context.search_notes(args.query, limit=args.limit)

            if not results:
                return ToolResult(content=[f"No notes found for query: '{args.query}'"])

            output = f"Found {len(results)} notes for '{args.query}':\n\n"
            for r in results:
                tags_str = ', '.join(r.tags[:3]) if r.tags else 'none'
                output += f"**{r.title}** ({r.id})\n"
                output += f"  Tags: {tags_str} | Score: {r.score:g}\n"
                output += f"  {r.snippet}\n\n"
            return ToolResult(content=[output])

        elif name == "create_note":
            args = CreateNoteArgs.model_validate(arguments)
            note = await brain.notes.create_note(args.title, args.content, tags=args.tags)
            return ToolResult(content=[f"Created note '{note.title}' ({note.id})"])

        elif name == "get_profile":
            profile = await brain.profile.get_profile()
            return ToolResult(content=[_format_profile(profile.model_dump())])

        elif name == "gather_context":
            args = GatherContextArgs.model_validate(arguments)
            gathered = await brain.gather_context(args.query)

            output = f"# Context for '{args.query}'\n\n## Notes ({len(gathered['notes'])})\n"
            for note in gathered["notes"]:
                output += f"- **{note['title']}**: {note['snippet']}\n"
            output += f"\n## External sources ({len(gathered['external'])})\n"
            for result in gathered["external"]:
                output += f"- **{result['title']}** ({result['source']}) {result['url']}\n"
            if gathered["errors"]:
                output += "\n## Errors\n" + "\n".join(f"- {e}" for e in gathered["errors"]) + "\n"
            return ToolResult(content=[output])

    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        return ToolResult(content=[f"Invalid arguments: {details}"], is_error=True)
    except ContextDataNotFound as e:
        return ToolResult(content=[e.message], is_error=True)
    except ValueError as e:
        return ToolResult(content=[str(e)], is_error=True)

    return ToolResult(content=[f"Unknown tool: {name}"], is_error=True)


class SearchResourceParams(BaseModel):
    """Query string of the external://search resource."""

    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1, le=20)
    semantic: bool = False


def _resource_error(error: ValidationError, params: dict[str, str]) -> str:
    field = str(error.errors()[0]["loc"][0])
    if field == "query":
        return "Missing required parameter: query"
    return f"Invalid {field}: {params.get(field)}"


async def read_brain_resource(brain: Brain, uri: str) -> str:
    """Read a resource as JSON text."""
    parts = urlsplit(str(uri))
    location = f"{parts.scheme}://{parts.netloc}{parts.path.rstrip('/')}"

    if location == "external://sources":
        return json.dumps(await brain.external_sources.context.get_sources_status(), indent=2)

    if location == "external://search":
        params = {key: values[0] for key, values in parse_qs(parts.query).items()}
        try:
            search = SearchResourceParams.model_validate(params)
        except ValidationError as e:
            return json.dumps({"error": _resource_error(e, params)})

        if search.semantic:
            results = await brain.external_sources.semantic_search(search.query, limit=search.limit or 5)
        else:
            results = await brain.external_sources.search(search.query, limit=search.limit)
        return json.dumps([r.summary() for r in results], indent=2)

    if location == "profile://current":
        try:
            profile = await brain.profile.get_profile()
        except ContextDataNotFound as e:
            return json.dumps({"error": e.message})
        return profile.model_dump_json(indent=2)

    return json.dumps({"error": f"Unknown resource: {uri}"})


def create_server(brain: Brain) -> Server:
    """Build an mcp Server exposing the brain's tools and resources."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        result = await call_brain_tool(brain, name, arguments)
        if result.is_error:
            logger.warning("tool_call_failed", tool=name, error=result.text)
            raise ToolExecutionError(result.text)
        return [TextContent(type="text", text=text) for text in result.content]

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        """List available resources."""
        return [
            Resource(
                uri="external://sources",
                name="External Sources",
                description="Registered external sources with enabled and availability flags",
                mimeType="application/json"
            ),
            Resource(
                uri="profile://current",
                name="Current Profile",
                description="The user's profile",
                mimeType="application/json"
            ),
        ]

    @server.list_resource_templates()
    async def list_resource_templates() -> list[ResourceTemplate]:
        return [
            ResourceTemplate(
                uriTemplate="external://search{?query,limit,semantic}",
                name="External Search",
                description="Search results from the enabled external sources",
                mimeType="application/json"
            ),
        ]

    @server.read_resource()
    async def read_resource(uri: Any) -> str:
        """Read a resource."""
        return await read_brain_resource(brain, str(uri))

    return server
