"""
Rendering of external source results as markdown, text, html or json.
"""

import html
import json
from typing import Literal

from ...models import ExternalSourceResult

OutputFormat = Literal["markdown", "text", "html", "json"]

NO_RESULTS = "No external source results found."


class ExternalSourceFormatter:
    """Formats result lists for display. Embeddings are never rendered."""

    def format(
        self,
        results: list[ExternalSourceResult],
        output_format: OutputFormat = "markdown",
        include_metadata: bool = True,
        include_url: bool = True,
        include_timestamp: bool = False,
    ) -> str:
        if not results:
            return NO_RESULTS

        if output_format == "json":
            return self._as_json(results)
        if output_format == "text":
            return self._as_text(results, include_metadata, include_url, include_timestamp)
        if output_format == "html":
            return self._as_html(results, include_metadata, include_url, include_timestamp)
        return self._as_markdown(results, include_metadata, include_url, include_timestamp)

    def _as_markdown(self, results, include_metadata, include_url, include_timestamp) -> str:
        blocks = []
        for r in results:
            output = f"## {r.title}\n\n{r.content}\n\n"
            if include_metadata:
                output += f"**Source:** {r.source} ({r.source_type})\n\n"
            if include_url:
                output += f"**URL:** [{r.title}]({r.url})\n\n"
            if include_timestamp:
                output += f"**Retrieved:** {r.timestamp.strftime('%Y-%m-%d %H:%M')}\n\n"
            blocks.append(output)
        return "---\n\n".join(blocks)

    def _as_text(self, results, include_metadata, include_url, include_timestamp) -> str:
        blocks = []
        for r in results:
            output = f"{r.title}\n{'-' * len(r.title)}\n\n{r.content}\n\n"
            if include_metadata:
                output += f"Source: {r.source} ({r.source_type})\n"
            if include_url:
                output += f"URL: {r.url}\n"
            if include_timestamp:
                output += f"Retrieved: {r.timestamp.strftime('%Y-%m-%d %H:%M')}\n"
            blocks.append(output)
        return ("\n" + "=" * 40 + "\n\n").join(blocks)

    def _as_html(self, results, include_metadata, include_url, include_timestamp) -> str:
        blocks = []
        for r in results:
            output = '<div class="external-result">\n'
            output += f"  <h2>{html.escape(r.title)}</h2>\n"
            output += f'  <div class="content">{html.escape(r.content)}</div>\n'
            if include_metadata:
                output += '  <div class="metadata">\n'
                output += f"    <p><strong>Source:</strong> {html.escape(r.source)} ({html.escape(r.source_type)})</p>\n"
                if include_url:
                    output += (
                        f'    <p><strong>URL:</strong> <a href="{html.escape(r.url)}" target="_blank" '
                        f'rel="noopener noreferrer">{html.escape(r.title)}</a></p>\n'
                    )
                if include_timestamp:
                    output += f"    <p><strong>Retrieved:</strong> {r.timestamp.strftime('%Y-%m-%d %H:%M')}</p>\n"
                output += "  </div>\n"
            output += "</div>"
            blocks.append(output)
        return "\n<hr />\n".join(blocks)

    @staticmethod
    def _as_json(results: list[ExternalSourceResult]) -> str:
        return json.dumps(
            [r.model_dump(mode="json", exclude={"embedding"}) for r in results],
            indent=2,
        )
