"""
Pydantic models for the Personal Brain MCP Server.

Contains data models for external source results, search options, notes,
profiles, and conversations.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .utils import utcnow


class ExternalSourceResult(BaseModel):
    """One item retrieved from an external source. Never persisted."""

    title: str
    content: str
    url: str
    source: str
    source_type: str
    timestamp: datetime
    confidence: float = Field(ge=0.0, le=1.0)
    embedding: list[float] | None = None

    def summary(self) -> dict[str, Any]:
        """Protocol-facing summary (no embedding)."""
        return {
            "title": self.title,
            "content": self.content,
            "source": self.source,
            "sourceType": self.source_type,
            "url": self.url,
            "timestamp": self.timestamp.isoformat(),
        }


class SearchOptions(BaseModel):
    """Options handed to every source adapter's search."""

    query: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1)
    add_embeddings: bool = False


class Note(BaseModel):
    """Model for a stored note."""

    id: str
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    source_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class NoteSearchResult(BaseModel):
    """Model for a keyword search hit."""

    id: str
    title: str
    score: float
    snippet: str
    tags: list[str]


class Profile(BaseModel):
    """Model for the user profile."""

    full_name: str = ""
    headline: str = ""
    summary: str = ""
    location: str = ""
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


class ConversationTurn(BaseModel):
    """Model for one query/response exchange."""

    query: str
    response: str
    user_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class Conversation(BaseModel):
    """Model for a conversation and its turns."""

    id: str
    interface: str = "cli"
    room_id: str | None = None
    turns: list[ConversationTurn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class ToolResult(BaseModel):
    """Text blocks returned by a tool, flagged when the call failed."""

    content: list[str]
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.content)
