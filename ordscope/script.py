"""Tapscript tokenizing helpers.

These helpers turn a transaction input's witness into the ordered instruction
stream that inscription envelopes live in. They stop short of executing or
validating scripts; anything that cannot be tokenized is simply cut off so that
callers can keep working with whatever came before it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

OP_0 = 0x00
OP_FALSE = OP_0
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_IF = 0x63
OP_NOTIF = 0x64
OP_ENDIF = 0x68
OP_CHECKSIG = 0xAC

TAPROOT_ANNEX_PREFIX = 0x50
MAX_SCRIPT_ELEMENT_SIZE = 520


@dataclass(frozen=True)
class Instruction:
    """A single script instruction: either a data push or a bare opcode."""

    opcode: int
    data: Optional[bytes] = None

    @property
    def is_push(self) -> bool:
        return self.data is not None

    def as_push(self) -> Optional[bytes]:
        """Return the bytes this instruction places on the stack, if any.

        ``OP_1NEGATE`` and ``OP_1``..``OP_16`` push small numbers without a
        payload; they are reported as their minimal number encoding.
        """

        if self.data is not None:
            return self.data
        if self.opcode == OP_1NEGATE:
            return b"\x81"
        if OP_1 <= self.opcode <= OP_16:
            return bytes([self.opcode - OP_1 + 1])
        return None


def iter_instructions(script: bytes) -> Iterator[Instruction]:
    """Yield the instructions of ``script`` in order.

    A push whose declared length runs past the end of the script ends the
    stream; the instructions decoded before it are still yielded.
    """

    offset = 0
    length = len(script)
    while offset < length:
        opcode = script[offset]
        offset += 1

        if opcode > OP_PUSHDATA4:
            yield Instruction(opcode)
            continue

        if opcode < OP_PUSHDATA1:
            size = opcode
        else:
            width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[opcode]
            if offset + width > length:
                logger.debug("Truncated push length at offset %d", offset - 1)
                return
            size = int.from_bytes(script[offset : offset + width], "little")
            offset += width

        if offset + size > length:
            logger.debug("Push of %d bytes runs past end of script at offset %d", size, offset)
            return
        yield Instruction(opcode, script[offset : offset + size])
        offset += size


def decode_script(script: bytes) -> List[Instruction]:
    return list(iter_instructions(script))


def tapscript_from_witness(witness: Sequence[bytes]) -> Optional[bytes]:
    """Return the leaf script of a script-path spend, if the witness has one.

    Follows the BIP341 witness layout: an optional trailing annex (first byte
    ``0x50``) is dropped, and a stack with at least two remaining elements
    carries the leaf script second from the end, before the control block.
    """

    stack = list(witness)
    if len(stack) >= 2 and stack[-1][:1] == bytes([TAPROOT_ANNEX_PREFIX]):
        stack.pop()
    if len(stack) < 2:
        return None
    return stack[-2]


def encode_push(data: bytes) -> bytes:
    """Encode ``data`` as a minimal script push."""

    size = len(data)
    if size > MAX_SCRIPT_ELEMENT_SIZE:
        raise ValueError(f"Push of {size} bytes exceeds the {MAX_SCRIPT_ELEMENT_SIZE}-byte element limit")
    if size < OP_PUSHDATA1:
        return bytes([size]) + data
    if size <= 0xFF:
        return bytes([OP_PUSHDATA1, size]) + data
    return bytes([OP_PUSHDATA2]) + size.to_bytes(2, "little") + data


def assemble_script(*items: int | bytes) -> bytes:
    """Build a script from opcodes (ints) and data pushes (bytes)."""

    script = bytearray()
    for item in items:
        if isinstance(item, int):
            script.append(item)
        else:
            script.extend(encode_push(item))
    return bytes(script)
