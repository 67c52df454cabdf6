"""Decode tagged fields and content from an inscription envelope.

An ``ord`` envelope body looks like::

    "ord" <tag> <value> <tag> <value> ... <separator> <chunk> <chunk> ...

where the separator is an empty push and the content is every chunk after it,
joined without delimiters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ordscope.envelope import Envelope

logger = logging.getLogger(__name__)

PROTOCOL_ID = b"ord"

TAG_CONTENT_TYPE = 1
TAG_POINTER = 2
TAG_PARENT = 3
TAG_METADATA = 5
TAG_METAPROTOCOL = 7

KNOWN_TAGS: Dict[int, str] = {
    TAG_CONTENT_TYPE: "content_type",
    TAG_POINTER: "pointer",
    TAG_PARENT: "parent",
    TAG_METADATA: "metadata",
    TAG_METAPROTOCOL: "metaprotocol",
}


class FieldGrammarError(ValueError):
    """Raised when an envelope body does not follow the tag/value layout."""


@dataclass(frozen=True)
class InscriptionFields:
    """Semantic view over the tagged fields of one envelope."""

    content_type: Optional[str] = None
    pointer: Optional[int] = None
    parent: Optional[str] = None
    metadata: Optional[bytes] = None
    metaprotocol: Optional[str] = None
    unknown: Tuple[Tuple[int, bytes], ...] = ()
    tags: Tuple[int, ...] = field(default=(), repr=False)

    def __len__(self) -> int:
        return len(self.tags)


@dataclass(frozen=True)
class DecodedEnvelope:
    fields: InscriptionFields
    content: bytes


def _tag_number(push: bytes) -> int:
    return int.from_bytes(push, "little")


def _decode_text(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def decode_parent(value: bytes) -> Optional[str]:
    """Decode a parent field into an ``<txid>i<index>`` inscription id.

    The value is the 32-byte txid in internal (little-endian) byte order,
    optionally followed by a little-endian index of up to four bytes.
    """

    if len(value) < 32 or len(value) > 36:
        return None
    txid = value[:32][::-1].hex()
    index = int.from_bytes(value[32:], "little")
    return f"{txid}i{index}"


def split_fields(pushes: List[bytes]) -> Tuple[List[Tuple[int, bytes]], bytes]:
    """Split an envelope body (after the protocol id) into fields and content."""

    pairs: List[Tuple[int, bytes]] = []
    position = 0
    while position < len(pushes):
        tag_push = pushes[position]
        if not any(tag_push):
            return pairs, b"".join(pushes[position + 1 :])
        if position + 1 >= len(pushes):
            raise FieldGrammarError(f"tag {_tag_number(tag_push)} has no value")
        pairs.append((_tag_number(tag_push), pushes[position + 1]))
        position += 2
    return pairs, b""


def decode_envelope(envelope: Envelope) -> Optional[DecodedEnvelope]:
    """Decode ``envelope`` or return ``None`` when it is not a usable inscription."""

    pushes = list(envelope.pushes)
    if not pushes or pushes[0] != PROTOCOL_ID:
        logger.debug("Skipping envelope %d: not an ord envelope", envelope.index)
        return None

    try:
        pairs, content = split_fields(pushes[1:])
    except FieldGrammarError as exc:
        logger.debug("Skipping envelope %d: %s", envelope.index, exc)
        return None

    values: Dict[str, object] = {}
    unknown: List[Tuple[int, bytes]] = []
    seen: List[int] = []
    for tag, value in pairs:
        if tag in seen:
            logger.info("Ignoring duplicate tag %d in envelope %d", tag, envelope.index)
            continue
        seen.append(tag)

        name = KNOWN_TAGS.get(tag)
        if name is None:
            unknown.append((tag, value))
        elif tag in (TAG_CONTENT_TYPE, TAG_METAPROTOCOL):
            values[name] = _decode_text(value)
        elif tag == TAG_POINTER:
            values[name] = int.from_bytes(value, "little")
        elif tag == TAG_PARENT:
            parent = decode_parent(value)
            if parent is None:
                logger.debug("Envelope %d has a malformed parent field (%d bytes)", envelope.index, len(value))
            values[name] = parent
        else:
            values[name] = value

    fields = InscriptionFields(unknown=tuple(unknown), tags=tuple(seen), **values)
    return DecodedEnvelope(fields=fields, content=content)
