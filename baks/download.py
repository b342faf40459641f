"""HTTP GET under an overall deadline.

httpx timeouts apply per operation (connect, each read), so a slow server can
keep a request alive for several times the configured total. The blocking
part of a download therefore runs on a worker thread and the caller stops
waiting when the deadline expires. The worker finishes on its own, bounded by
the httpx timeouts, and drops its result into a slot nobody reads.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, NamedTuple, Optional, TypeVar

import httpx

from .config import Settings
from .errors import (
    DeadlineExceededError,
    HTTPStatusError,
    NetworkError,
    RedirectAnomalyError,
)

logger = logging.getLogger(__name__)

FETCH_THREAD_NAME = "baks-fetch"

T = TypeVar("T")


class Deadline:
    """A point in monotonic time after which the fetch is abandoned."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


class Download(NamedTuple):
    url: httpx.URL
    body: Optional[bytes]


def new_client(settings: Settings, deadline: Deadline) -> httpx.Client:
    return httpx.Client(
        timeout=deadline.remaining(),
        follow_redirects=True,
        headers={
            "user-agent": settings.user_agent,
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        },
    )


def run_before_deadline(
    fn: Callable[[], T], deadline: Deadline, *, name: str, what: str
) -> T:
    """Run ``fn`` on a daemon thread and wait for it at most until ``deadline``.

    Raises:
        TimeoutError: The deadline expired first.
        Exception: Whatever ``fn`` raised.
    """
    slot: "queue.Queue[tuple]" = queue.Queue(maxsize=1)

    def _work() -> None:
        try:
            value = fn()
        except Exception as exc:  # handed to the waiting caller
            slot.put_nowait((False, exc))
        else:
            slot.put_nowait((True, value))

    threading.Thread(target=_work, name=name, daemon=True).start()

    try:
        ok, value = slot.get(timeout=deadline.remaining())
    except queue.Empty:
        raise TimeoutError(f"{what} did not finish within {deadline.seconds:g}s") from None

    if not ok:
        raise value
    return value


def _is_path_empty(path: str) -> bool:
    return path in ("", "/")


def redirected_to_host_root(asked_path: str, got_path: str) -> bool:
    """Heuristic: a non-root path that lands on the host root is a soft 404 or a login wall."""
    return _is_path_empty(got_path) and not _is_path_empty(asked_path)


def read_capped(resp: httpx.Response, url: str, limit: int, deadline: Deadline) -> bytes:
    """Read at most ``limit`` bytes of the body; longer bodies are truncated."""
    body = bytearray()
    for chunk in resp.iter_bytes():
        if deadline.expired:
            raise DeadlineExceededError(url, "deadline exceeded while reading body")
        body.extend(chunk)
        if len(body) >= limit:
            logger.debug("Body of %s truncated to %d bytes", url, limit)
            del body[limit:]
            break
    return bytes(body)


def download(
    url: str,
    settings: Settings,
    deadline: Deadline,
    *,
    client: Optional[httpx.Client] = None,
    ignore_http_errors: bool = False,
    read_body: bool = True,
    check_root_redirect: bool = False,
) -> Download:
    """GET ``url`` and read up to ``max_page_size`` bytes of its body.

    The body is left unread when ``read_body`` is false.

    Raises:
        NetworkError: The request failed (connection, TLS, redirect loop,
            undecodable body, invalid URL).
        DeadlineExceededError: ``deadline`` expired.
        HTTPStatusError: Final status was not 200 and errors are not ignored.
        RedirectAnomalyError: ``check_root_redirect`` is set and a non-root
            path was redirected to the host root.
    """
    owns_client = client is None
    if client is None:
        client = new_client(settings, deadline)

    def _get() -> Download:
        try:
            with client.stream("GET", url, timeout=deadline.remaining()) as resp:
                if resp.status_code != 200 and not ignore_http_errors:
                    raise HTTPStatusError(url, resp.status_code)
                final_url = resp.url
                if check_root_redirect and redirected_to_host_root(
                    httpx.URL(url).path, final_url.path
                ):
                    raise RedirectAnomalyError(url, str(final_url))
                body = None
                if read_body:
                    body = read_capped(resp, url, settings.max_page_size, deadline)
                return Download(final_url, body)
        finally:
            if owns_client:
                client.close()

    try:
        return run_before_deadline(_get, deadline, name=FETCH_THREAD_NAME, what="request")
    except (TimeoutError, httpx.TimeoutException) as exc:
        raise DeadlineExceededError(url, exc) from exc
    except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
        raise NetworkError(url, exc) from exc
