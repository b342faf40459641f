"""Command-line interface for baks."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from .add import add_many
from .config import Settings, get_settings
from .errors import BaksError
from .extract import anchors_from_file, extract_anchors
from .render import format_page, format_tag_counts
from .server import serve
from .store import PageStore
from .tags import TagResolver
from .visit import fetch

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    p = argparse.ArgumentParser(
        prog="baks",
        description=(
            "Bookmarks with full-text search on title and description. Each "
            "bookmark has a tag (what it is about) and a referrer (where it "
            "was found)."
        ),
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    p.add_argument("--db", type=Path, default=None, help="Database path")

    sub = p.add_subparsers(dest="cmd", required=True)

    # --- path ---
    sub.add_parser("path", help="Print the database path")

    # --- visit ---
    visit = sub.add_parser(
        "visit", help="Visit the urls and print the title and description of each"
    )
    visit.add_argument("-i", dest="ignore_errors", action="store_true", help="Ignore HTTP errors")
    visit.add_argument("-n", dest="skip_content", action="store_true", help="Don't read content")
    visit.add_argument("urls", nargs="+")

    # --- add ---
    add = sub.add_parser(
        "add",
        help="Add urls to the database",
        description=(
            "Add urls to the database. A file argument is read as a text file "
            "with one url per line, or as HTML (usually a browser bookmark "
            "export) whose <a href> links are added. Pages without -t are "
            "tagged by the host rules in the pages_tags table."
        ),
    )
    add.add_argument("-t", dest="tag", default="", help="Tag")
    add.add_argument("-r", dest="referrer", default="", help="Referrer")
    add.add_argument("-i", dest="ignore_errors", action="store_true", help="Ignore HTTP errors")
    add.add_argument("-n", dest="skip_content", action="store_true", help="Don't read content")
    add.add_argument("sources", nargs="+", metavar="url|file")

    # --- search ---
    search = sub.add_parser(
        "search",
        help="Full-text search on title or description",
        description=(
            "The query is an SQLite FTS5 query applied verbatim; it can use "
            "phrase, NEAR and prefix queries."
        ),
    )
    search.add_argument("-c", dest="count_only", action="store_true", help="Only print the result count")
    search.add_argument("query")

    # --- list ---
    lst = sub.add_parser("list", help="List urls with a tag or a referrer")
    lst.add_argument("-t", dest="tag", default="", help="Tag")
    lst.add_argument("-r", dest="referrer", default="", help="Referrer")
    lst.add_argument("-c", dest="counts", action="store_true", help="Show the count of each tag")

    # --- like ---
    like = sub.add_parser("like", help="SQL LIKE search on titles")
    like.add_argument("-c", dest="count_only", action="store_true", help="Only print the result count")
    like.add_argument("pattern")

    # --- extract ---
    extract = sub.add_parser("extract", help="Extract urls from urls or files")
    extract.add_argument("-t", dest="print_text", action="store_true", help="Print anchor text")
    extract.add_argument("-a", dest="resolve", action="store_true", help="Print absolute urls")
    extract.add_argument("sources", nargs="+", metavar="url|file")

    # --- serve ---
    srv = sub.add_parser("serve", help="Serve the search web interface")
    srv.add_argument("--host", default=None, help="Listen host")
    srv.add_argument("--port", type=int, default=None, help="Listen port")

    return p


def _configure_logging(verbose: bool) -> None:
    """Set up root logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _settings(args: argparse.Namespace) -> Settings:
    s = get_settings()
    if args.db is not None:
        s.db_path = args.db
    return s


def _print_pages(pages) -> None:
    for pg in pages:
        print(format_page(pg))
        print()


def _expand_sources(sources: List[str]) -> List[str]:
    """Urls pass through; files are replaced by the urls they contain."""
    urls: List[str] = []
    for src in sources:
        if src.startswith("http"):
            urls.append(src)
            continue
        try:
            urls.extend(a.url for a in anchors_from_file(Path(src)))
        except (OSError, ValueError) as exc:
            logger.error('add "%s": %s', src, exc)
    return urls


def _open_store(s: Settings) -> PageStore:
    return PageStore(s.ensure_db_dir())


def _cmd_visit(args: argparse.Namespace, s: Settings) -> int:
    for url in args.urls:
        try:
            pg = fetch(url, args.ignore_errors, args.skip_content, settings=s)
        except BaksError as exc:
            logger.error("%s", exc)
            continue
        print(format_page(pg))
        print()
    return 0


def _cmd_add(args: argparse.Namespace, s: Settings) -> int:
    with _open_store(s) as store:
        resolver = TagResolver(store.tag_rules())
        report = add_many(
            _expand_sources(args.sources),
            store,
            resolver,
            tag=args.tag,
            referrer=args.referrer,
            ignore_http_errors=args.ignore_errors,
            skip_content=args.skip_content,
            settings=s,
        )
    logger.info("%s", report.summary())
    return 0


def _cmd_search(args: argparse.Namespace, s: Settings) -> int:
    with _open_store(s) as store:
        if args.count_only:
            print("Found", store.search_count(args.query), "results.")
        else:
            _print_pages(store.search(args.query))
    return 0


def _cmd_list(args: argparse.Namespace, s: Settings) -> int:
    if not (args.counts or args.tag or args.referrer):
        logger.error("list: one of -t, -r or -c is required")
        return 2
    with _open_store(s) as store:
        if args.counts:
            print(format_tag_counts(store.tag_counts()))
            return 0
        if args.tag:
            _print_pages(store.list_by_tag(args.tag))
        if args.referrer:
            _print_pages(store.list_by_referrer(args.referrer))
    return 0


def _cmd_like(args: argparse.Namespace, s: Settings) -> int:
    with _open_store(s) as store:
        if args.count_only:
            print("Results:", store.like_count(args.pattern))
        else:
            _print_pages(store.like(args.pattern))
    return 0


def _cmd_extract(args: argparse.Namespace, s: Settings) -> int:
    for src in args.sources:
        try:
            anchors = extract_anchors(src, resolve=args.resolve, settings=s)
        except (BaksError, OSError, ValueError) as exc:
            logger.error('extract "%s": %s', src, exc)
            continue
        for a in anchors:
            print(f"{a.text} {a.url}" if args.print_text else a.url)
        print()
    return 0


def _cmd_serve(args: argparse.Namespace, s: Settings) -> int:
    if args.host:
        s.listen_host = args.host
    if args.port:
        s.listen_port = args.port
    s.ensure_db_dir()
    serve(s)
    return 0


COMMANDS = {
    "visit": _cmd_visit,
    "add": _cmd_add,
    "search": _cmd_search,
    "list": _cmd_list,
    "like": _cmd_like,
    "extract": _cmd_extract,
    "serve": _cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    s = _settings(args)

    if args.cmd == "path":
        print(s.resolved_db_path())
        return 0

    try:
        return COMMANDS[args.cmd](args, s)
    except BaksError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
