"""Shared test fixtures for baks tests."""

from pathlib import Path
from typing import Callable

import httpx
import pytest

from baks.config import Settings
from baks.store import PageStore


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a temporary database with a short deadline."""
    return Settings(
        db_path=tmp_path / "baks.db",
        timeout_total=5.0,
        max_attempts=1,
        backoff_multiplier=0.0,
        backoff_min=0.0,
        backoff_max=0.0,
    )


@pytest.fixture
def store(settings: Settings):
    with PageStore(settings.resolved_db_path()) as s:
        yield s


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """Build an httpx client served by a handler function instead of the network."""
    clients = []

    def _make(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.close()


@pytest.fixture
def article_html() -> bytes:
    """A page with a title and all three description sources."""
    return b"""<!DOCTYPE html>
    <html><head>
        <title>  Python Packaging Guide  </title>
        <meta property="og:description" content="Open graph text">
        <meta property="twitter:description" content="Twitter card text">
        <meta name="description" content="  How to package Python projects.  ">
    </head><body><p>Hello</p></body></html>
    """


@pytest.fixture
def bookmarks_html() -> str:
    """Minimal browser bookmark export."""
    return """<!DOCTYPE NETSCAPE-Bookmark-file-1>
    <TITLE>Bookmarks</TITLE>
    <DL><p>
        <DT><A HREF="https://example.com/one" ADD_DATE="1">  First  </A>
        <DT><A HREF="https://example.org/two">Second</A>
        <DT><A NAME="no-href">Not a link</A>
    </DL><p>
    """
