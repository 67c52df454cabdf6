"""Content sniffing for inscription payloads.

Inscriptions routinely misreport their media type, so the category is derived
from the bytes themselves. The declared content type is only used to pick a
file extension when nothing in the payload gives it away.
"""

from __future__ import annotations

import json
import mimetypes
import unicodedata
from enum import Enum
from typing import Any, Optional


class Category(str, Enum):
    TEXT = "text"
    JSON = "json"
    BRC20 = "brc20"
    HTML = "html"
    IMAGE = "image"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


BRC20_PROTOCOL = "brc-20"
_ALLOWED_WHITESPACE = frozenset("\t\n\r\f\v")
_HTML_PREFIXES = (b"<html", b"<!doctype html")
_WHITESPACE_BYTES = b" \t\n\r\f\v"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_json(data: bytes) -> tuple[bool, Any]:
    """Strictly parse ``data`` as one JSON value.

    Returns ``(True, value)`` on success. ``NaN``/``Infinity`` literals and
    anything that is not valid UTF-8 are rejected.
    """

    try:
        text = data.decode("utf-8")
        return True, json.loads(text, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError, RecursionError):
        return False, None


def is_brc20(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    marker = value.get("p")
    return isinstance(marker, str) and marker.strip().lower() == BRC20_PROTOCOL


def image_format(data: bytes) -> Optional[str]:
    """Return the image container format named by the leading bytes, if any."""

    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if len(data) >= 12 and data[4:8] == b"ftyp" and data[8:12] in (b"avif", b"avis"):
        return "avif"
    if data[:4] in (b"II*\x00", b"MM\x00*"):
        return "tiff"
    if len(data) >= 26 and data[:2] == b"BM" and data[6:10] == b"\x00\x00\x00\x00":
        return "bmp"
    if len(data) >= 6 and data[:4] == b"\x00\x00\x01\x00" and data[4:6] != b"\x00\x00":
        return "ico"
    return None


def looks_like_html(data: bytes) -> bool:
    head = data.lstrip(_WHITESPACE_BYTES)[:16].lower()
    return head.startswith(_HTML_PREFIXES)


def is_printable_text(data: bytes) -> bool:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    for char in text:
        if char in _ALLOWED_WHITESPACE:
            continue
        if unicodedata.category(char) == "Cc":
            return False
    return True


def classify(data: bytes, declared_type_hint: Optional[str] = None) -> Category:
    """Return the category of ``data``; first matching rule wins.

    ``declared_type_hint`` is accepted so call sites can pass what the
    inscription claims, but it never changes the outcome.
    """

    parsed, value = parse_json(data)
    if parsed:
        return Category.BRC20 if is_brc20(value) else Category.JSON
    if image_format(data) is not None:
        return Category.IMAGE
    if looks_like_html(data):
        return Category.HTML
    if is_printable_text(data):
        return Category.TEXT
    return Category.UNKNOWN


_CATEGORY_EXTENSIONS = {
    Category.TEXT: "txt",
    Category.JSON: "json",
    Category.BRC20: "json",
    Category.HTML: "html",
}
_IMAGE_EXTENSIONS = {"jpeg": "jpg", "tiff": "tif"}


def file_extension(category: Category, data: bytes, declared_type_hint: Optional[str] = None) -> str:
    """Guess a file extension for extracted content.

    The classified category decides; only ``UNKNOWN`` payloads fall back to
    the declared content type, and then to ``dat``.
    """

    if category in _CATEGORY_EXTENSIONS:
        return _CATEGORY_EXTENSIONS[category]
    if category is Category.IMAGE:
        fmt = image_format(data) or "dat"
        return _IMAGE_EXTENSIONS.get(fmt, fmt)
    if declared_type_hint:
        media_type = declared_type_hint.split(";", 1)[0].strip().lower()
        guessed = mimetypes.guess_extension(media_type) if media_type else None
        if guessed:
            return guessed.lstrip(".")
    return "dat"
