"""Plain-text rendering of page records for the terminal."""

from __future__ import annotations

import html
import textwrap
from typing import Iterable, List

from .models import Page, TagCount

DESCRIPTION_MAX_CHARS = 300
WRAP_WIDTH = 70
DESCRIPTION_INDENT = 4


def content_fmt(content: str, indent: int = DESCRIPTION_INDENT, width: int = WRAP_WIDTH) -> str:
    """Unescape, cut to a readable length, wrap and indent a description."""
    text = html.unescape(content)[:DESCRIPTION_MAX_CHARS]
    return textwrap.indent(textwrap.fill(text, width=width), " " * indent)


def format_page(page: Page) -> str:
    lines = [page.url + page.labels]
    if page.is_html:
        lines.append(html.unescape(page.title))
        if page.description:
            lines.append("")
            lines.append(content_fmt(page.description))
    elif page.mime_type:
        lines[0] += f"  MIME Type {page.mime_type}"
    return "\n".join(lines)


def format_pages(pages: Iterable[Page]) -> str:
    """Pages separated by a blank line."""
    return "\n\n".join(format_page(p) for p in pages)


def format_tag_counts(counts: Iterable[TagCount]) -> str:
    rows: List[TagCount] = list(counts)
    if not rows:
        return ""
    width = max(len(c.tag) for c in rows) + 2
    return "\n".join(f"{c.tag:<{width}}{c.count}" for c in rows)
