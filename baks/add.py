"""Add pipeline: fetch a URL, tag it and store it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .config import Settings, get_settings
from .errors import BaksError, StorageError, VisitError, is_retryable
from .models import Page
from .store import PageStore
from .tags import TagResolver
from .visit import fetch

logger = logging.getLogger(__name__)


@dataclass
class AddReport:
    """Outcome of adding a batch of URLs."""

    added: List[Page] = field(default_factory=list)
    failed: List[Tuple[str, BaksError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return f"{len(self.added)} added, {len(self.failed)} failed"


def _retry_decorator(settings: Settings):
    return retry(
        stop=stop_after_attempt(max(1, settings.max_attempts)),
        wait=wait_exponential(
            multiplier=settings.backoff_multiplier,
            min=settings.backoff_min,
            max=settings.backoff_max,
        ),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    )


def add_url(
    url: str,
    store: PageStore,
    resolver: Optional[TagResolver] = None,
    *,
    tag: str = "",
    referrer: str = "",
    ignore_http_errors: bool = False,
    skip_content: bool = False,
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> Page:
    """Fetch ``url`` and insert it into ``store``.

    The page keeps ``tag`` when given, otherwise it gets the tag the resolver
    derives from its host.

    Raises:
        VisitError: The fetch failed (after retries, when configured).
        StorageError: The insert failed, e.g. the url is already stored.
    """
    s = settings or get_settings()

    @_retry_decorator(s)
    def _do_fetch() -> Page:
        return fetch(url, ignore_http_errors, skip_content, settings=s, client=client)

    page = _do_fetch()
    page.referrer = referrer
    page.tag = tag or (resolver.resolve(page.host) if resolver else "")

    stored = store.insert(page)
    logger.info("Added %s%s", stored.url, stored.labels)
    return stored


def add_many(
    urls: Iterable[str],
    store: PageStore,
    resolver: Optional[TagResolver] = None,
    **kwargs,
) -> AddReport:
    """Add each URL in turn; a failed URL is logged and the batch goes on."""
    report = AddReport()
    for url in urls:
        try:
            report.added.append(add_url(url, store, resolver, **kwargs))
        except (VisitError, StorageError) as exc:
            logger.error("%s", exc)
            report.failed.append((url, exc))
    if report.failed:
        logger.warning("%s", report.summary())
    return report
