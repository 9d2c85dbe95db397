"""
Content-type sniffing from the leading bytes of a payload.

Follows the WHATWG MIME Sniffing signatures: only the first ``SNIFF_LENGTH``
bytes are considered and the result always names a concrete MIME type,
falling back to ``application/octet-stream``.
"""

import struct
from typing import Callable, List, Optional, Tuple

SNIFF_LENGTH = 512

DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_PLAIN_UTF8 = "text/plain; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "
_TAG_TERMINATORS = b" >"

# Bytes that never occur in plain text (WHATWG "binary data bytes")
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)

_HTML_TAGS = [
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

# (prefix, content type)
_EXACT_SIGNATURES: List[Tuple[bytes, str]] = [
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", TEXT_PLAIN_UTF8),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"BM", "image/bmp"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"ID3", "audio/mpeg"),
    (b"OggS\x00", "application/ogg"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
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
    (b"\x00asm", "application/wasm"),
]

# Container formats: (leading tag, form type at offset 8, content type)
_CONTAINER_SIGNATURES: List[Tuple[bytes, bytes, str]] = [
    (b"RIFF", b"WEBPVP", "image/webp"),
    (b"FORM", b"AIFF", "audio/aiff"),
    (b"RIFF", b"AVI ", "video/avi"),
    (b"RIFF", b"WAVE", "audio/wave"),
]


def _first_non_whitespace(data: bytes) -> int:
    for i, b in enumerate(data):
        if b not in _WHITESPACE:
            return i
    return len(data)


def _match_html(data: bytes) -> Optional[str]:
    data = data[_first_non_whitespace(data):]
    upper = data.upper()
    for tag in _HTML_TAGS:
        if len(data) < len(tag) + 1:
            continue
        if upper.startswith(tag) and data[len(tag)] in _TAG_TERMINATORS:
            return "text/html; charset=utf-8"
    return None


def _match_xml(data: bytes) -> Optional[str]:
    data = data[_first_non_whitespace(data):]
    if data.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    return None


def _match_exact(data: bytes) -> Optional[str]:
    for prefix, content_type in _EXACT_SIGNATURES:
        if data.startswith(prefix):
            return content_type
    return None


def _match_container(data: bytes) -> Optional[str]:
    for tag, form, content_type in _CONTAINER_SIGNATURES:
        if data[:4] == tag and data[8:8 + len(form)] == form:
            return content_type
    return None


def _match_mp4(data: bytes) -> Optional[str]:
    if len(data) < 12:
        return None
    (box_size,) = struct.unpack(">I", data[:4])
    if len(data) < box_size or box_size % 4 != 0:
        return None
    if data[4:8] != b"ftyp":
        return None
    for start in range(8, box_size, 4):
        if start == 12:
            # minor version, not a brand
            continue
        if data[start:start + 3] == b"mp4":
            return "video/mp4"
    return None


def _match_text(data: bytes) -> Optional[str]:
    if any(b in _BINARY_BYTES for b in data):
        return None
    return TEXT_PLAIN_UTF8


_MATCHERS: List[Callable[[bytes], Optional[str]]] = [
    _match_html,
    _match_xml,
    _match_exact,
    _match_container,
    _match_mp4,
    _match_text,
]


def detect_content_type(data: bytes) -> str:
    """Return the MIME type of ``data`` judged from its first 512 bytes."""
    data = bytes(data[:SNIFF_LENGTH])
    for matcher in _MATCHERS:
        content_type = matcher(data)
        if content_type:
            return content_type
    return DEFAULT_CONTENT_TYPE
