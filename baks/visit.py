"""Fetch a single URL under a deadline and build its page record.

The whole fetch, body read and HTML extraction included, shares one deadline.
HTML extraction runs on a separate thread and races that deadline; the
thread hands its result over through a one-slot queue so a result that
arrives after the caller stopped waiting is dropped without blocking.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import httpx

from .classify import detect_content_type, is_html
from .config import Settings, get_settings
from .download import (
    FETCH_THREAD_NAME,
    Deadline,
    download,
    redirected_to_host_root,
    run_before_deadline,
)
from .errors import ExtractionError
from .extract import extract_metadata
from .models import Page, utc_now

logger = logging.getLogger(__name__)

EXTRACT_THREAD_NAME = "baks-extract"

__all__ = [
    "EXTRACT_THREAD_NAME",
    "FETCH_THREAD_NAME",
    "Deadline",
    "extract_with_deadline",
    "fetch",
    "redirected_to_host_root",
]


def extract_with_deadline(
    body: bytes, base_url: str, deadline: Deadline
) -> Tuple[str, str]:
    """Run :func:`extract_metadata` on a worker thread, waiting at most until ``deadline``.

    Raises:
        TimeoutError: The deadline expired first. The worker keeps running and
            its result is dropped into a slot nobody reads.
        ValueError: The parser rejected the document.
    """
    return run_before_deadline(
        lambda: extract_metadata(body, base_url),
        deadline,
        name=EXTRACT_THREAD_NAME,
        what="metadata extraction",
    )


def _set_content_attributes(
    page: Page, body: bytes, url: str, settings: Settings, deadline: Deadline
) -> None:
    try:
        page.title, page.description = extract_with_deadline(body, page.url, deadline)
    except (TimeoutError, ValueError) as exc:
        if settings.strict_extraction:
            raise ExtractionError(url, exc) from exc
        page.extraction_error = str(exc)
        logger.warning("Partial extraction for %s: %s", url, exc)


def fetch(
    url: str,
    ignore_http_errors: bool = False,
    skip_content: bool = False,
    *,
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> Page:
    """Fetch ``url`` and return its page record.

    Args:
        url: The URL to fetch.
        ignore_http_errors: Accept a final status other than 200.
        skip_content: Do not read the body; only URL metadata is populated.
        settings: Application settings. Uses defaults if not provided.
        client: HTTP client to use. A client bound to the deadline is created
            when not provided.

    Returns:
        A Page built from the final (post-redirect) URL. For HTML, title and
        description are filled in unless extraction failed or lost the race
        against the deadline, in which case ``extraction_error`` says why.

    Raises:
        NetworkError: The request failed, including redirect loops and
            undecodable bodies.
        DeadlineExceededError: The overall deadline expired before the body
            was read.
        HTTPStatusError: Final status was not 200 and errors are not ignored.
        RedirectAnomalyError: A non-root path was redirected to the host root.
        ExtractionError: Extraction failed and ``strict_extraction`` is set.
    """
    s = settings or get_settings()
    deadline = Deadline(s.timeout_total)

    logger.debug("Fetching: %s (skip_content=%s)", url, skip_content)

    got = download(
        url,
        s,
        deadline,
        client=client,
        ignore_http_errors=ignore_http_errors,
        read_body=not skip_content,
        check_root_redirect=True,
    )
    page = Page(
        url=str(got.url),
        url_original=url,
        host=got.url.host,
        is_root_page=got.url.path in ("", "/"),
        added_at=utc_now(),
    )
    if got.body is None:
        return page

    page.mime_type = detect_content_type(got.body, s.sniff_len)
    if is_html(page.mime_type):
        _set_content_attributes(page, got.body, url, s, deadline)

    logger.info("Fetched OK: %s (%s, %d bytes)", page.url, page.mime_type, len(got.body))
    return page
