"""Styled script export.

Renders a StyledScript as markdown, plain text or a standalone HTML page.
"""

from __future__ import annotations

from enum import Enum

import markdown

from interview2article.models import StyledScript

from .styles import get_style
from .word_count import strip_markdown

EXPORT_STYLES = """
body { font-family: -apple-system, "PingFang SC", "Microsoft YaHei", sans-serif;
       max-width: 760px; margin: 2em auto; padding: 0 1em; line-height: 1.8; color: #222; }
h1, h2, h3 { line-height: 1.3; }
blockquote { border-left: 4px solid #ddd; margin: 1em 0; padding: 0 1em; color: #555; }
.meta { color: #888; font-size: 0.9em; }
"""


class ExportFormat(str, Enum):
    markdown = "markdown"
    txt = "txt"
    html = "html"


MEDIA_TYPES = {
    ExportFormat.markdown: "text/markdown; charset=utf-8",
    ExportFormat.txt: "text/plain; charset=utf-8",
    ExportFormat.html: "text/html; charset=utf-8",
}

FILE_EXTENSIONS = {
    ExportFormat.markdown: "md",
    ExportFormat.txt: "txt",
    ExportFormat.html: "html",
}


def _escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


def _convert_markdown(markdown_text: str) -> str:
    md = markdown.Markdown(extensions=["tables", "fenced_code"])
    return md.convert(markdown_text)


def _first_heading(content: str) -> str | None:
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            return stripped.lstrip("#").strip() or None
    return None


def render_export(script: StyledScript, export_format: ExportFormat, title: str | None = None) -> str:
    """Render a styled script for download.

    Args:
        script: The artifact to export.
        export_format: markdown, txt or html.
        title: Document title; defaults to the first heading of the content.

    Returns:
        The rendered document as text.
    """
    if export_format == ExportFormat.markdown:
        return script.content

    if export_format == ExportFormat.txt:
        return strip_markdown(script.content).strip() + "\n"

    doc_title = title or _first_heading(script.content) or "Interview"
    meta = (
        f"{get_style(script.style).label} · {script.word_count} words · "
        f"{script.estimated_read_time} min read"
    )
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{_escape_html(doc_title)}</title>
    <style>{EXPORT_STYLES}</style>
</head>
<body>
    <p class="meta">{_escape_html(meta)}</p>
    {_convert_markdown(script.content)}
</body>
</html>"""


def export_filename(style: str, export_format: ExportFormat) -> str:
    return f"interview-{style}.{FILE_EXTENSIONS[export_format]}"
