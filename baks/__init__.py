"""baks: bookmarks with extracted metadata and full-text search."""

from .add import AddReport, add_many, add_url
from .classify import detect_content_type
from .config import Settings, get_settings
from .extract import extract_anchors, extract_metadata
from .models import Anchor, Page, TagCount, TagRule
from .store import PageStore
from .tags import TagResolver
from .visit import fetch

__all__ = [
    "Settings",
    "get_settings",
    "Page",
    "TagRule",
    "TagCount",
    "Anchor",
    "detect_content_type",
    "extract_metadata",
    "extract_anchors",
    "fetch",
    "TagResolver",
    "PageStore",
    "add_url",
    "add_many",
    "AddReport",
]
