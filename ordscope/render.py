"""Plain-text presentation of inscriptions for the CLI and console."""

from __future__ import annotations

import json
import webbrowser
from typing import Any, List

from .classifier import Category
from .inscription import DEFAULT_WEB_BASE, Inscription

COMPACT_JSON_SEPARATORS = (",", ":")


def format_json(value: Any, raw: bool = False) -> str:
    if raw:
        return json.dumps(value, separators=COMPACT_JSON_SEPARATORS, ensure_ascii=False)
    return json.dumps(value, indent=2, ensure_ascii=False)


def preview_text(value: str, limit: int = 120) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "…"


def describe(inscription: Inscription) -> str:
    """One-line summary used in lists."""

    declared = inscription.content_type or "-"
    return (
        f"{inscription.inscription_id} | {inscription.category.value:<7} | "
        f"{inscription.size:>7} B | declared {declared}"
    )


def render_content(inscription: Inscription, raw_json: bool = False) -> str:
    """Render the inscription body according to its category."""

    category = inscription.category
    if category in (Category.JSON, Category.BRC20):
        return format_json(inscription.json_value(), raw=raw_json)
    if category in (Category.TEXT, Category.HTML):
        return inscription.text() or ""
    if category is Category.IMAGE:
        fmt = inscription.image_format() or "image"
        return f"[{fmt} image, {inscription.size} bytes; extract it to view]"
    return inscription.content.hex()


def render_detail(inscription: Inscription, raw_json: bool = False) -> str:
    fields = inscription.fields
    lines: List[str] = [
        f"Inscription {inscription.inscription_id}",
        f"  input {inscription.id.input_index}, envelope {inscription.id.envelope_index}",
        f"  category: {inscription.category.value}; declared content type: {inscription.content_type or 'none'}",
        f"  length: {inscription.size} bytes",
    ]
    if fields.pointer is not None:
        lines.append(f"  pointer: {fields.pointer}")
    if fields.parent is not None:
        lines.append(f"  parent: {fields.parent}")
    if fields.metaprotocol is not None:
        lines.append(f"  metaprotocol: {fields.metaprotocol}")
    if fields.metadata is not None:
        lines.append(f"  metadata: {preview_text(fields.metadata.hex())}")
    for tag, value in fields.unknown:
        lines.append(f"  tag {tag}: {preview_text(value.hex())}")
    lines.append("")
    lines.append(render_content(inscription, raw_json=raw_json))
    return "\n".join(lines)


def open_web(inscription: Inscription, base: str = DEFAULT_WEB_BASE) -> str:
    """Open the inscription on an ordinals explorer; returns the URL."""

    url = inscription.web_url(base)
    webbrowser.open(url)
    return url
