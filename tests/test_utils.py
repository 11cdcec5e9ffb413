"""
Tests for parsing helpers and query utilities.
"""

import pytest


# ============== Tests for parse_frontmatter() ==============

class TestParseFrontmatter:
    """Tests for the parse_frontmatter function."""

    def test_valid_frontmatter(self):
        """Test parsing valid YAML frontmatter."""
        from datetime import date

        from personal_brain.utils import parse_frontmatter

        content = """---
title: Test Note
date: 2024-01-15
tags:
  - python
  - testing
---

# Body content

Some text here.
"""
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter["title"] == "Test Note"
        # YAML parses dates as datetime.date objects
        assert frontmatter["date"] == date(2024, 1, 15)
        assert frontmatter["tags"] == ["python", "testing"]
        assert "# Body content" in body
        assert "title:" not in body

    def test_missing_frontmatter(self):
        """Test parsing content without frontmatter."""
        from personal_brain.utils import parse_frontmatter

        content = "# Just a heading\n\nNo frontmatter here.\n"
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter == {}
        assert body == content

    def test_invalid_yaml_frontmatter(self):
        """Test parsing invalid YAML frontmatter returns empty dict."""
        from personal_brain.utils import parse_frontmatter

        content = """---
title: [broken yaml syntax
invalid: : extra colon
---

Body content here.
"""
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter == {}
        assert "Body content here." in body

    def test_non_mapping_frontmatter(self):
        """Test that a YAML list in the frontmatter is ignored."""
        from personal_brain.utils import parse_frontmatter

        frontmatter, body = parse_frontmatter("---\n- a\n- b\n---\nBody.")

        assert frontmatter == {}
        assert body == "Body."

    def test_frontmatter_no_trailing_newline(self):
        """Test frontmatter handling with minimal spacing."""
        from personal_brain.utils import parse_frontmatter

        frontmatter, body = parse_frontmatter("---\ntitle: Minimal\n---\nBody immediately after.")

        assert frontmatter["title"] == "Minimal"
        assert body == "Body immediately after."


# ============== Tests for helper functions ==============

class TestHelperFunctions:
    """Tests for query and text helpers."""

    def test_normalize_query(self):
        """Test case folding and whitespace collapsing."""
        from personal_brain.utils import normalize_query

        assert normalize_query("  Ecosystem \t  Architecture\n") == "ecosystem architecture"

    def test_split_terms(self):
        """Test splitting on whitespace, hyphens and underscores."""
        from personal_brain.utils import split_terms

        assert split_terms("Event-loop  async_io  Python") == ["event", "loop", "async", "io", "python"]
        assert split_terms("   ") == []

    def test_strip_html(self):
        """Test removal of MediaWiki search highlight markup."""
        from personal_brain.utils import strip_html

        assert strip_html('The <span class="searchmatch">ecosystem</span> of') == "The ecosystem of"

    def test_utcnow_is_aware(self):
        """Test that utcnow returns a timezone-aware datetime."""
        from personal_brain.utils import utcnow

        assert utcnow().tzinfo is not None


class TestCosineSimilarity:
    """Tests for cosine_similarity()."""

    @pytest.mark.parametrize("a, b, expected", [
        ([1.0, 0.0], [1.0, 0.0], 1.0),
        ([1.0, 0.0], [0.0, 1.0], 0.0),
        ([1.0, 0.0], [-1.0, 0.0], -1.0),
        ([], [], 0.0),
        ([1.0, 2.0], [1.0], 0.0),
        ([0.0, 0.0], [1.0, 1.0], 0.0),
    ])
    def test_values(self, a, b, expected):
        """Test identical, orthogonal, opposite and degenerate vectors."""
        from personal_brain.utils import cosine_similarity

        assert cosine_similarity(a, b) == pytest.approx(expected)
