"""Unit tests for content-type sniffing."""

import pytest

from baks.classify import (
    BINARY_TYPE,
    HTML_TYPE,
    TEXT_TYPE,
    detect_content_type,
    is_html,
)


class TestDetectContentType:
    """Tests for detect_content_type."""

    @pytest.mark.parametrize(
        "data",
        [
            b"<!DOCTYPE html><html><head></head></html>",
            b"<html><body>x</body></html>",
            b"<HTML>",
            b"  \n\t<head><title>x</title></head>",
            b"<p>para</p>",
            b"<!-- comment --><div>x</div>",
            b"<a href='/'>x</a>",
        ],
    )
    def test_html(self, data: bytes) -> None:
        assert detect_content_type(data) == HTML_TYPE

    def test_tag_must_be_terminated(self) -> None:
        # '<pre' is not '<p' followed by space or '>'.
        assert detect_content_type(b"<pre>code</pre>") == TEXT_TYPE

    @pytest.mark.parametrize(
        "data, expected",
        [
            (b"<?xml version='1.0'?><feed/>", "text/xml; charset=utf-8"),
            (b"%PDF-1.7\n", "application/pdf"),
            (b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR", "image/png"),
            (b"\xff\xd8\xff\xe0\x00\x10JFIF", "image/jpeg"),
            (b"GIF89a\x01\x00\x01\x00", "image/gif"),
            (b"RIFF\x24\x00\x00\x00WEBPVP8 ", "image/webp"),
            (b"PK\x03\x04\x14\x00\x00\x00", "application/zip"),
            (b"\x1f\x8b\x08\x00\x00\x00\x00\x00", "application/x-gzip"),
            (b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom", "video/mp4"),
            (b"ID3\x03\x00\x00\x00", "audio/mpeg"),
        ],
    )
    def test_signatures(self, data: bytes, expected: str) -> None:
        assert detect_content_type(data) == expected

    def test_plain_text(self) -> None:
        assert detect_content_type(b"just some words\nand lines") == TEXT_TYPE

    def test_empty_is_text(self) -> None:
        assert detect_content_type(b"") == TEXT_TYPE

    def test_binary_fallback(self) -> None:
        assert detect_content_type(b"\x00\x01\x02\x03garbage") == BINARY_TYPE

    def test_only_prefix_is_considered(self) -> None:
        data = b"a" * 600 + b"\x00\x01\x02"
        assert detect_content_type(data) == TEXT_TYPE
        assert detect_content_type(data, sniff_len=700) == BINARY_TYPE

    def test_markup_after_prefix_ignored(self) -> None:
        data = b"\x01" * 512 + b"<html>"
        assert detect_content_type(data) == BINARY_TYPE


class TestIsHtml:
    def test_prefix_match(self) -> None:
        assert is_html(HTML_TYPE) is True
        assert is_html("text/html") is True
        assert is_html(TEXT_TYPE) is False
        assert is_html("") is False
