"""Tests for the SQLite page store and its full-text index."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from baks.errors import DuplicateURLError, StorageError
from baks.models import Page
from baks.store import UNTAGGED, PageStore, format_timestamp, parse_timestamp


def _page(n: int, **overrides) -> Page:
    defaults = {
        "url": f"https://example.com/{n}",
        "url_original": f"https://example.com/{n}",
        "title": f"Page {n}",
        "description": f"Description of page {n}",
        "mime_type": "text/html; charset=utf-8",
        "host": "example.com",
    }
    defaults.update(overrides)
    return Page(**defaults)


class TestTimestamps:
    def test_fixed_width_utc(self) -> None:
        dt = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2026-03-04 05:06:07.000000+00:00"

    def test_parse_back(self) -> None:
        dt = datetime(2026, 3, 4, 5, 6, 7, 123456, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(dt)) == dt

    def test_naive_is_utc(self) -> None:
        assert format_timestamp(datetime(2026, 1, 1)).endswith("+00:00")


class TestInsert:
    def test_insert_returns_stored_page(self, store: PageStore) -> None:
        stored = store.insert(_page(1, tag="news", referrer="hn", is_root_page=True))
        got = store.get("https://example.com/1")
        assert got == stored
        assert got.tag == "news"
        assert got.referrer == "hn"
        assert got.is_root_page is True

    def test_duplicate_url_rejected(self, store: PageStore) -> None:
        store.insert(_page(1))
        with pytest.raises(DuplicateURLError) as exc_info:
            store.insert(_page(1, title="Zebra crossing"))
        assert exc_info.value.url == "https://example.com/1"
        assert "UNIQUE" in str(exc_info.value)
        assert store.count() == 1
        assert store.get("https://example.com/1").title == "Page 1"

    def test_failed_insert_leaves_index_untouched(self, store: PageStore) -> None:
        store.insert(_page(1))
        with pytest.raises(DuplicateURLError):
            store.insert(_page(1, title="Zebra crossing"))
        assert store.search_count("zebra") == 0
        assert store.search("zebra") == []

    def test_added_at_assigned_at_write_time(self, store: PageStore) -> None:
        fetched = datetime(2000, 1, 1, tzinfo=timezone.utc)
        stored = store.insert(_page(1, added_at=fetched))
        assert stored.added_at > fetched
        assert store.get(stored.url).added_at == stored.added_at

    def test_added_at_strictly_increasing(self, store: PageStore) -> None:
        stamps = [store.insert(_page(n)).added_at for n in range(20)]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)

    def test_empty_strings_round_trip(self, store: PageStore) -> None:
        store.insert(Page(url="https://example.com/bare"))
        got = store.get("https://example.com/bare")
        assert got.title == ""
        assert got.description == ""
        assert got.mime_type == ""
        assert got.tag == ""

    def test_get_missing(self, store: PageStore) -> None:
        assert store.get("https://nowhere.example/") is None


class TestSearch:
    def test_token_in_title_found_once(self, store: PageStore) -> None:
        store.insert(_page(1, title="Structure and Interpretation", description=""))
        store.insert(_page(2))
        results = store.search("interpretation")
        assert [p.url for p in results] == ["https://example.com/1"]

    def test_token_in_description_found(self, store: PageStore) -> None:
        store.insert(_page(1, description="A tour of asyncio internals"))
        assert [p.url for p in store.search("asyncio")] == ["https://example.com/1"]

    def test_newest_first(self, store: PageStore) -> None:
        for n in range(3):
            store.insert(_page(n, title=f"python notes {n}"))
        results = store.search("python")
        assert [p.url for p in results] == [
            "https://example.com/2",
            "https://example.com/1",
            "https://example.com/0",
        ]

    def test_count_matches_results(self, store: PageStore) -> None:
        for n in range(4):
            store.insert(_page(n, title="rust" if n % 2 else "go"))
        assert store.search_count("rust") == len(store.search("rust")) == 2

    def test_prefix_and_phrase_passed_through(self, store: PageStore) -> None:
        store.insert(_page(1, title="Pythonic patterns"))
        store.insert(_page(2, title="patterns of enterprise"))
        assert store.search_count("pythonic*") == 1
        assert store.search_count("pyth*") == 1
        assert store.search_count('"enterprise patterns"') == 0
        assert store.search_count('"patterns of"') == 1

    def test_column_filter(self, store: PageStore) -> None:
        store.insert(_page(1, title="databases", description="nothing"))
        store.insert(_page(2, title="nothing", description="databases"))
        assert [p.url for p in store.search("title:databases")] == ["https://example.com/1"]

    def test_bad_query_is_storage_error(self, store: PageStore) -> None:
        with pytest.raises(StorageError):
            store.search('"unterminated')
        with pytest.raises(StorageError):
            store.search_count('"unterminated')


class TestListings:
    def test_list_by_tag_and_referrer(self, store: PageStore) -> None:
        store.insert(_page(1, tag="news", referrer="hn"))
        store.insert(_page(2, tag="news"))
        store.insert(_page(3, tag="code", referrer="hn"))
        assert [p.url for p in store.list_by_tag("news")] == [
            "https://example.com/2",
            "https://example.com/1",
        ]
        assert [p.url for p in store.list_by_referrer("hn")] == [
            "https://example.com/3",
            "https://example.com/1",
        ]
        assert store.list_by_tag("missing") == []

    def test_like(self, store: PageStore) -> None:
        store.insert(_page(1, title="Effective Python"))
        store.insert(_page(2, title="Fluent Python"))
        store.insert(_page(3, title="Go in Action"))
        assert store.like_count("%python%") == 2
        assert [p.url for p in store.like("Fluent%")] == ["https://example.com/2"]

    def test_recent_and_random(self, store: PageStore) -> None:
        for n in range(5):
            store.insert(_page(n))
        assert [p.url for p in store.recent(2)] == [
            "https://example.com/4",
            "https://example.com/3",
        ]
        sample = store.random(3)
        assert len(sample) == 3
        assert len({p.url for p in sample}) == 3


class TestTagCounts:
    def test_sums_to_total_with_untagged_last(self, store: PageStore) -> None:
        tags = ["news", "news", "news", "code", "", "", "video"]
        for n, tag in enumerate(tags):
            store.insert(_page(n, tag=tag))
        counts = store.tag_counts()
        assert sum(c.count for c in counts) == len(tags)
        assert counts[-1].tag == UNTAGGED
        assert counts[-1].count == 2
        assert counts[0].tag == "news"
        assert counts[0].count == 3

    def test_no_untagged_bucket_when_all_tagged(self, store: PageStore) -> None:
        store.insert(_page(1, tag="news"))
        store.insert(_page(2, tag="code"))
        counts = store.tag_counts()
        assert UNTAGGED not in [c.tag for c in counts]
        assert sum(c.count for c in counts) == 2

    def test_explicit_untagged_shares_the_bucket(self, store: PageStore) -> None:
        store.insert(_page(1, tag=UNTAGGED))
        store.insert(_page(2, tag=""))
        store.insert(_page(3, tag="news"))
        counts = store.tag_counts()
        assert [(c.tag, c.count) for c in counts] == [("news", 1), (UNTAGGED, 2)]

    def test_empty_store(self, store: PageStore) -> None:
        assert store.tag_counts() == []


class TestTagRulesAndSchema:
    def test_rules_in_load_order(self, store: PageStore) -> None:
        store.add_tag_rule("example.com", "news")
        store.add_tag_rule("blog.example.com", "tech")
        rules = store.tag_rules()
        assert [(r.host_suffix, r.tag) for r in rules] == [
            ("example.com", "news"),
            ("blog.example.com", "tech"),
        ]

    def test_reopen_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "again.db"
        with PageStore(path) as first:
            first.insert(_page(1, title="persisted"))
        with PageStore(path) as second:
            assert second.count() == 1
            assert second.search_count("persisted") == 1

    def test_unopenable_path(self, tmp_path: Path) -> None:
        with pytest.raises(StorageError):
            PageStore(tmp_path / "missing-dir" / "baks.db")
