"""HTML metadata and anchor extraction."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from .config import Settings, get_settings
from .download import Deadline, download
from .models import Anchor

logger = logging.getLogger(__name__)

# (attribute, value) pairs in priority order; the first non-empty content wins.
DESCRIPTION_SOURCES: Tuple[Tuple[str, str], ...] = (
    ("name", "description"),
    ("property", "twitter:description"),
    ("property", "og:description"),
)

TEXT_LIST_PREFIX = b"http"
PEEK_LEN = 512


# ---------------------------------------------------------------------------
# Page metadata
# ---------------------------------------------------------------------------

def _parse_html(content: bytes | str) -> BeautifulSoup:
    try:
        return BeautifulSoup(content, "lxml")
    except ParserRejectedMarkup as exc:
        raise ValueError(f"unparseable HTML: {exc}") from exc


def _first_meta_content(soup: BeautifulSoup, attr: str, value: str) -> str:
    for meta in soup.find_all("meta"):
        if (meta.get(attr) or "").strip().lower() != value:
            continue
        content = (meta.get("content") or "").strip()
        if content:
            return content
    return ""


def extract_metadata(content: bytes | str, base_url: Optional[str] = None) -> Tuple[str, str]:
    """Extract ``(title, description)`` from an HTML document.

    Title is the trimmed text of the first ``<title>`` element. Description is
    the first non-empty of ``meta name=description``, ``meta
    property=twitter:description`` and ``meta property=og:description``.
    Missing elements yield empty strings.

    Args:
        content: Raw HTML bytes (encoding is detected) or decoded text.
        base_url: The URL the document was fetched from, used for logging.

    Raises:
        ValueError: If the parser rejects the document outright.
    """
    soup = _parse_html(content)

    title_tag = soup.find("title")
    title = title_tag.get_text().strip() if title_tag else ""

    description = ""
    for attr, value in DESCRIPTION_SOURCES:
        description = _first_meta_content(soup, attr, value)
        if description:
            break

    logger.debug(
        "Extracted metadata from %s (title=%d chars, description=%d chars)",
        base_url or "<document>", len(title), len(description),
    )
    return title, description


# ---------------------------------------------------------------------------
# Anchors
# ---------------------------------------------------------------------------

def anchors_from_text(content: bytes) -> List[Anchor]:
    """One URL per non-blank line."""
    text = content.decode("utf-8", errors="replace")
    return [Anchor(url=line.strip()) for line in text.splitlines() if line.strip()]


def anchors_from_html(
    content: bytes | str, *, base: Optional[str] = None, resolve: bool = False
) -> List[Anchor]:
    """Collect every ``<a href>`` of an HTML document, usually a bookmark export.

    With ``resolve``, relative hrefs are made absolute against the document's
    ``<base href>`` when present, else against ``base``.
    """
    soup = _parse_html(content)

    if resolve:
        base_tag = soup.find("base", href=True)
        if base_tag and base_tag["href"].strip():
            base = urljoin(base or "", base_tag["href"].strip())

    anchors: List[Anchor] = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if resolve and base:
            href = urljoin(base, href)
        anchors.append(Anchor(url=href, text=a.get_text().strip()))
    return anchors


def anchors_from_bytes(
    content: bytes, *, base: Optional[str] = None, resolve: bool = False
) -> List[Anchor]:
    """Dispatch on the first bytes: a URL list starts with ``http``, anything else is HTML."""
    if content[:PEEK_LEN].lstrip().startswith(TEXT_LIST_PREFIX):
        return anchors_from_text(content)
    return anchors_from_html(content, base=base, resolve=resolve)


def anchors_from_file(path: Path) -> List[Anchor]:
    content = Path(path).read_bytes()
    if not content:
        raise ValueError(f"{path} is empty")
    return anchors_from_bytes(content)


def anchors_from_url(
    url: str,
    *,
    resolve: bool = False,
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> List[Anchor]:
    """Fetch ``url`` and return the anchors of the page, read up to ``max_page_size``.

    Raises:
        VisitError: The download failed, as for :func:`baks.visit.fetch`.
    """
    s = settings or get_settings()
    got = download(url, s, Deadline(s.timeout_total), client=client)
    return anchors_from_bytes(got.body, base=str(got.url), resolve=resolve)


def extract_anchors(
    source: str,
    *,
    resolve: bool = False,
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> List[Anchor]:
    """Return anchors from a URL (``http://``/``https://``) or a local file."""
    if source.startswith(("http://", "https://")):
        return anchors_from_url(source, resolve=resolve, settings=settings, client=client)
    return anchors_from_file(Path(source))
