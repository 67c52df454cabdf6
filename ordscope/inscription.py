"""Inscription records and transaction-level decoding.

This module ties the witness tokenizer, envelope parser, field decoder and
classifier together: given a verbose transaction as returned by the node, it
produces every inscription the transaction carries.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ordscope.classifier import Category, classify, file_extension, image_format, parse_json
from ordscope.envelope import parse_envelopes
from ordscope.fields import InscriptionFields, decode_envelope
from ordscope.script import decode_script, tapscript_from_witness

logger = logging.getLogger(__name__)

DEFAULT_WEB_BASE = "https://ordinals.com"
_ID_PATTERN = re.compile(r"^(?P<txid>[0-9a-fA-F]{64})i(?P<offset>\d+)$")


@dataclass(frozen=True, order=True)
class InscriptionId:
    """Unique identity of an inscription within a process run."""

    txid: str
    input_index: int
    envelope_index: int


@dataclass(frozen=True)
class InscriptionRef:
    """A user-facing ``<txid>i<n>`` reference, ``n`` counting across inputs."""

    txid: str
    offset: int

    def __str__(self) -> str:
        return f"{self.txid}i{self.offset}"


class InscriptionIdError(ValueError):
    """Raised for inscription ids that are not of the form ``<txid>i<n>``."""


def parse_inscription_ref(raw: str) -> InscriptionRef:
    match = _ID_PATTERN.match(raw.strip())
    if match is None:
        raise InscriptionIdError(f"Invalid inscription id '{raw}'; expected <64-hex txid>i<number>")
    return InscriptionRef(txid=match.group("txid").lower(), offset=int(match.group("offset")))


@dataclass(frozen=True)
class Inscription:
    """Decoded inscription. Immutable once built."""

    id: InscriptionId
    offset: int
    content: bytes
    content_type: Optional[str]
    fields: InscriptionFields
    category: Category

    @property
    def txid(self) -> str:
        return self.id.txid

    @property
    def inscription_id(self) -> str:
        return str(InscriptionRef(self.id.txid, self.offset))

    @property
    def size(self) -> int:
        return len(self.content)

    def file_extension(self) -> str:
        return file_extension(self.category, self.content, self.content_type)

    def file_name(self) -> str:
        return f"{self.inscription_id}.{self.file_extension()}"

    def text(self) -> Optional[str]:
        if self.category in (Category.IMAGE, Category.UNKNOWN):
            return None
        return self.content.decode("utf-8", errors="replace")

    def json_value(self) -> Any:
        if self.category not in (Category.JSON, Category.BRC20):
            return None
        return parse_json(self.content)[1]

    def image_format(self) -> Optional[str]:
        return image_format(self.content)

    def web_url(self, base: str = DEFAULT_WEB_BASE) -> str:
        return f"{base.rstrip('/')}/inscription/{self.inscription_id}"

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.inscription_id,
            "txid": self.id.txid,
            "input": self.id.input_index,
            "envelope": self.id.envelope_index,
            "category": self.category.value,
            "content_type": self.content_type,
            "length": self.size,
            "pointer": self.fields.pointer,
            "parent": self.fields.parent,
            "metaprotocol": self.fields.metaprotocol,
        }


def _witness_bytes(vin: Dict[str, Any]) -> Optional[List[bytes]]:
    items = vin.get("txinwitness") or []
    try:
        return [bytes.fromhex(item) for item in items]
    except (TypeError, ValueError):
        logger.debug("Witness with non-hex items skipped")
        return None


def decode_transaction(tx_json: Dict[str, Any]) -> List[Inscription]:
    """Decode every inscription in a verbose transaction.

    Inputs are visited in order and envelopes in encounter order within each
    input. A malformed witness only loses the inscriptions of that input.
    """

    txid = tx_json.get("txid")
    if not txid:
        raise ValueError("Transaction JSON is missing 'txid'")

    inscriptions: List[Inscription] = []
    for input_index, vin in enumerate(tx_json.get("vin", [])):
        witness = _witness_bytes(vin)
        if not witness:
            continue
        tapscript = tapscript_from_witness(witness)
        if tapscript is None:
            continue

        for envelope in parse_envelopes(decode_script(tapscript)):
            decoded = decode_envelope(envelope)
            if decoded is None:
                continue
            inscriptions.append(
                Inscription(
                    id=InscriptionId(txid, input_index, envelope.index),
                    offset=len(inscriptions),
                    content=decoded.content,
                    content_type=decoded.fields.content_type,
                    fields=decoded.fields,
                    category=classify(decoded.content, decoded.fields.content_type),
                )
            )

    if inscriptions:
        logger.debug("Decoded %d inscription(s) from %s", len(inscriptions), txid)
    return inscriptions
