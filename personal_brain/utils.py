"""
Utility functions and compiled regex patterns for the Personal Brain MCP Server.

Contains parsing helpers, query normalization, vector math, and shared exceptions.
"""

import math
import re
from datetime import datetime, timezone

import yaml

# Pre-compiled regex patterns for performance
FRONTMATTER_PATTERN = re.compile(r'^---\s*\n(.*?)\n---\s*\n', re.DOTALL)
HEADING_PATTERN = re.compile(r'^#\s+(.+)$', re.MULTILINE)
SEARCH_SPLIT_PATTERN = re.compile(r'[\s\-_]+')
WHITESPACE_PATTERN = re.compile(r'\s+')
HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
NEWS_TRUNCATION_PATTERN = re.compile(r'\[\+\d+ chars\]$')


# ============== Exceptions ==============

class MessageValidationError(ValueError):
    """Raised when a message handed to the mediator is malformed."""
    pass


class UnknownSourceError(ValueError):
    """Raised when an operation names a source that is not registered."""
    pass


class ContextDataNotFound(Exception):
    """Raised by a context when the requested record does not exist.

    The message handler turns it into an error response carrying ``code``.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# ============== Helper Functions ==============

def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace so equivalent queries share a cache key."""
    return WHITESPACE_PATTERN.sub(" ", query.strip().lower())


def split_terms(query: str) -> list[str]:
    """Split a query into lowercase search terms."""
    return [t.strip().lower() for t in SEARCH_SPLIT_PATTERN.split(query) if t.strip()]


def strip_html(text: str) -> str:
    """Remove HTML tags (MediaWiki search snippets wrap matches in spans)."""
    return HTML_TAG_PATTERN.sub("", text)


def parse_frontmatter(content: str) -> tuple[dict, str]:
    """Extract YAML frontmatter and body from markdown content."""
    frontmatter = {}
    body = content

    match = FRONTMATTER_PATTERN.match(content)
    if match:
        try:
            frontmatter = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError:
            pass
        if not isinstance(frontmatter, dict):
            frontmatter = {}
        body = content[match.end():]

    return frontmatter, body


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for empty, mismatched, or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)
