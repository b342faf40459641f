"""Error taxonomy for fetching and storage.

Every error raised by the fetch pipeline names the operation and the URL it
failed on, and keeps the underlying exception as ``__cause__`` so callers can
decide on retries by looking at the innermost cause.
"""

from __future__ import annotations

from typing import Optional, Union

import httpx

RETRY_STATUS = frozenset({408, 429, 500, 502, 503, 504})

Cause = Union[BaseException, str]


class BaksError(Exception):
    """Base class for all baks errors."""


class VisitError(BaksError):
    """A fetch of ``url`` failed; renders as ``<op>: <url>: <cause>``."""

    op = "visit"

    def __init__(self, url: str, cause: Cause) -> None:
        self.url = url
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.op}: {self.url}: {self.cause}"


class NetworkError(VisitError):
    """The request failed before any HTTP response arrived."""


class DeadlineExceededError(VisitError):
    """The overall fetch deadline expired."""


class HTTPStatusError(VisitError):
    def __init__(self, url: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(url, f"HTTP status {status_code}")


class RedirectAnomalyError(VisitError):
    """A non-root path was redirected to the host root (soft 404, login wall)."""

    def __init__(self, url: str, location: str) -> None:
        self.location = location
        super().__init__(url, f"redirection to host root {location}")


class ExtractionError(VisitError):
    """HTML metadata could not be parsed, or parsing lost the race against the deadline."""


class StorageError(BaksError):
    op = "db"

    def __init__(self, cause: Cause, url: Optional[str] = None) -> None:
        self.url = url
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.url:
            return f"{self.op}: {self.url}: {self.cause}"
        return f"{self.op}: {self.cause}"


class DuplicateURLError(StorageError):
    """The url is already stored."""


def root_cause(exc: BaseException) -> BaseException:
    """Follow ``__cause__`` links down to the innermost exception."""
    seen = {id(exc)}
    while exc.__cause__ is not None and id(exc.__cause__) not in seen:
        exc = exc.__cause__
        seen.add(id(exc))
    return exc


def is_retryable(exc: BaseException) -> bool:
    """Return True when retrying the same fetch could plausibly succeed."""
    if isinstance(exc, HTTPStatusError):
        return exc.status_code in RETRY_STATUS
    if isinstance(exc, DeadlineExceededError):
        return True
    return isinstance(root_cause(exc), (httpx.TransportError, TimeoutError))
