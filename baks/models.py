"""Pydantic models shared across the application."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Page(BaseModel):
    """One bookmarked URL with its extracted metadata."""

    url: str
    url_original: str = ""
    title: str = ""
    description: str = ""
    mime_type: str = ""
    tag: str = ""
    referrer: str = ""
    host: str = ""
    is_root_page: bool = False
    added_at: datetime = Field(default_factory=utc_now)

    # Set when metadata extraction was abandoned; never persisted.
    extraction_error: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_html(self) -> bool:
        """Return True when the sniffed content type is HTML."""
        return self.mime_type.startswith("text/html")

    @property
    def labels(self) -> str:
        """Render tag and referrer as ' -- :tag:referrer:', or '' when both are empty."""
        parts = [label for label in (self.tag, self.referrer) if label]
        if not parts:
            return ""
        return " -- :" + "".join(f"{p}:" for p in parts)


class TagRule(BaseModel):
    """Maps a host suffix to a predefined tag."""

    host_suffix: str
    tag: str


class TagCount(BaseModel):
    tag: str
    count: int


class Anchor(BaseModel):
    """A link found in a bookmark export, a URL list or a fetched page."""

    url: str
    text: str = ""
