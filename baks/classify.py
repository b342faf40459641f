"""Content-type sniffing over a bounded byte prefix.

Follows the WHATWG MIME sniffing algorithm closely enough to tell markup,
common images, media, archives and fonts apart. The result never depends on
more than ``sniff_len`` bytes and an unrecognised prefix falls back to
``text/plain`` or ``application/octet-stream``.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

SNIFF_LEN = 512

HTML_TYPE = "text/html; charset=utf-8"
TEXT_TYPE = "text/plain; charset=utf-8"
BINARY_TYPE = "application/octet-stream"

_WHITESPACE = b"\t\n\x0c\r "

# Tags recognised case-insensitively when followed by a space or '>'.
_HTML_SIGNATURES = [
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
]

# (mask, pattern, skip leading whitespace, content type)
_MASKED_SIGNATURES: List[Tuple[bytes, bytes, bool, str]] = [
    (b"\xff\xff\xff\xff\xff", b"<?xml", True, "text/xml; charset=utf-8"),
    (b"\xff\xff\xff\xff\xff", b"%PDF-", False, "application/pdf"),
    (b"\xff" * 11, b"%!PS-Adobe-", False, "application/postscript"),
    (b"\xff\xff\x00\x00", b"\xfe\xff\x00\x00", False, "text/plain; charset=utf-16be"),
    (b"\xff\xff\x00\x00", b"\xff\xfe\x00\x00", False, "text/plain; charset=utf-16le"),
    (b"\xff\xff\xff\x00", b"\xef\xbb\xbf\x00", False, TEXT_TYPE),
    (b"\xff\xff\xff\xff", b"\x00\x00\x01\x00", False, "image/x-icon"),
    (b"\xff\xff\xff\xff", b"\x00\x00\x02\x00", False, "image/x-icon"),
    (
        b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff\xff\xff",
        b"RIFF\x00\x00\x00\x00WEBPVP",
        False,
        "image/webp",
    ),
    (
        b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff",
        b"RIFF\x00\x00\x00\x00WAVE",
        False,
        "audio/wave",
    ),
    (
        b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff",
        b"RIFF\x00\x00\x00\x00AVI ",
        False,
        "video/avi",
    ),
    (
        b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff",
        b"FORM\x00\x00\x00\x00AIFF",
        False,
        "audio/aiff",
    ),
]

_EXACT_SIGNATURES: List[Tuple[bytes, str]] = [
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\x0d\x0a\x1a\x0a", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"BM", "image/bmp"),
    (b"OggS\x00", "application/ogg"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
    (b"ID3", "audio/mpeg"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"\x00\x01\x00\x00", "font/ttf"),
    (b"OTTO", "font/otf"),
    (b"ttcf", "font/collection"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"\x00\x61\x73\x6d", "application/wasm"),
]


def _skip_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _html_sig(data: bytes) -> Optional[str]:
    data = _skip_whitespace(data)
    for sig in _HTML_SIGNATURES:
        if len(data) < len(sig) + 1:
            continue
        if data[: len(sig)].upper() != sig:
            continue
        # The byte after the tag must terminate it.
        if data[len(sig)] in b" >":
            return HTML_TYPE
    return None


def _masked_sig(data: bytes) -> Optional[str]:
    for mask, pattern, skip_ws, ctype in _MASKED_SIGNATURES:
        candidate = _skip_whitespace(data) if skip_ws else data
        if len(candidate) < len(pattern):
            continue
        if all((candidate[i] & mask[i]) == pattern[i] for i in range(len(mask))):
            return ctype
    return None


def _exact_sig(data: bytes) -> Optional[str]:
    for sig, ctype in _EXACT_SIGNATURES:
        if data.startswith(sig):
            return ctype
    return None


def _mp4_sig(data: bytes) -> Optional[str]:
    if len(data) < 12:
        return None
    box_size = int.from_bytes(data[:4], "big")
    if box_size % 4 != 0 or len(data) < box_size:
        return None
    if data[4:8] != b"ftyp":
        return None
    for start in range(8, box_size, 4):
        if start == 12:
            # Skips the minor version.
            continue
        if data[start : start + 3] == b"mp4":
            return "video/mp4"
    return None


def _text_sig(data: bytes) -> Optional[str]:
    for b in data:
        if b <= 0x08 or b == 0x0B or 0x0E <= b <= 0x1A or 0x1C <= b <= 0x1F:
            return None
    return TEXT_TYPE


_SNIFFERS: List[Callable[[bytes], Optional[str]]] = [
    _html_sig,
    _masked_sig,
    _exact_sig,
    _mp4_sig,
    _text_sig,
]


def detect_content_type(data: bytes, sniff_len: int = SNIFF_LEN) -> str:
    """Sniff the MIME type of ``data`` from at most its first ``sniff_len`` bytes.

    Never fails: unrecognised content is reported as ``application/octet-stream``
    (or ``text/plain; charset=utf-8`` when it contains no binary control bytes).
    """
    prefix = bytes(data[:sniff_len])
    for sniff in _SNIFFERS:
        ctype = sniff(prefix)
        if ctype is not None:
            return ctype
    return BINARY_TYPE


def is_html(content_type: str) -> bool:
    return content_type.startswith("text/html")
