"""Read-only HTTP search front-end."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from flask import Flask, Response, g, render_template, request

from .config import Settings, get_settings
from .errors import StorageError
from .models import Page
from .store import PageStore

logger = logging.getLogger(__name__)

OPENSEARCH_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<OpenSearchDescription xmlns="http://a9.com/-/spec/opensearch/1.1/">
  <ShortName>baks</ShortName>
  <Description>baks bookmarks search engine</Description>
  <InputEncoding>UTF-8</InputEncoding>
  <Url type="text/html" template="http://@/search?q={searchTerms}" />
</OpenSearchDescription>
"""


def _internal_error(exc: Exception) -> Response:
    logger.error("Request %s failed: %s", request.path, exc)
    return Response(f"internal error: {exc}", status=500, mimetype="text/plain")


def _results(query: str, count: int, pages: List[Page]) -> Response:
    resp = Response(render_template("results.html", query=query, count=count, pages=pages))
    resp.headers["Cache-Control"] = "no-cache"
    return resp


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Build the Flask app; each request opens its own connection to the store."""
    s = settings or get_settings()
    db_path = s.resolved_db_path()
    opensearch_xml = OPENSEARCH_TEMPLATE.replace("@", s.resolved_announce_addr())

    app = Flask(__name__)
    app.config["BAKS_SETTINGS"] = s

    @app.template_filter("timefmt")
    def _timefmt(dt) -> str:
        return dt.strftime("%Y-%m-%d")

    @app.template_filter("ifempty")
    def _ifempty(value: str, default: str) -> str:
        return value or default

    def get_store() -> PageStore:
        if "store" not in g:
            g.store = PageStore(db_path)
        return g.store

    @app.teardown_appcontext
    def _close_store(_exc) -> None:
        store = g.pop("store", None)
        if store is not None:
            store.close()

    def _listing(title: str, fetch_pages: Callable[[PageStore, int], List[Page]]) -> Response:
        n = request.args.get("n", s.default_listing_size, type=int)
        try:
            pages = fetch_pages(get_store(), n)
        except StorageError as exc:
            return _internal_error(exc)
        return _results(title, len(pages), pages)

    @app.get("/")
    def index():
        return render_template("index.html")

    @app.get("/opensearch.xml")
    def opensearch():
        return Response(opensearch_xml, mimetype="application/opensearchdescription+xml")

    @app.get("/search")
    def search():
        query = request.args.get("q", "")
        try:
            store = get_store()
            count = store.search_count(query)
            pages = store.search(query)
        except StorageError as exc:
            return _internal_error(exc)
        return _results(query, count, pages)

    @app.get("/recent")
    def recent():
        return _listing("Recent", PageStore.recent)

    @app.get("/random")
    def random():
        return _listing("Random", PageStore.random)

    return app


def serve(settings: Optional[Settings] = None) -> None:
    s = settings or get_settings()
    app = create_app(s)
    logger.info("Serving %s on http://%s:%d", s.resolved_db_path(), s.listen_host, s.listen_port)
    app.run(host=s.listen_host, port=s.listen_port)
