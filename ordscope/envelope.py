"""Locate ``OP_FALSE OP_IF … OP_ENDIF`` inscription envelopes in a tapscript.

Only the envelope structure is checked here. Interpreting what is inside an
envelope is left to :mod:`ordscope.fields`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ordscope.script import OP_ENDIF, OP_IF, Instruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Envelope:
    """Push items found between ``OP_IF`` and ``OP_ENDIF``, in order."""

    index: int
    pushes: Tuple[bytes, ...]


def _is_envelope_start(instructions: Sequence[Instruction], position: int) -> bool:
    if position + 1 >= len(instructions):
        return False
    first = instructions[position]
    return first.data == b"" and instructions[position + 1].opcode == OP_IF


def parse_envelopes(instructions: Sequence[Instruction]) -> List[Envelope]:
    """Return every well-formed envelope in ``instructions``, in encounter order.

    A body may only contain data pushes (small-number opcodes count as pushes).
    If the script ends, or any other opcode shows up, before the closing
    ``OP_ENDIF``, that envelope is dropped and scanning carries on from the
    offending instruction. This function never raises on malformed input.
    """

    envelopes: List[Envelope] = []
    position = 0
    total = len(instructions)

    while position < total:
        if not _is_envelope_start(instructions, position):
            position += 1
            continue

        start = position
        position += 2
        pushes: List[bytes] = []
        closed = False
        while position < total:
            instruction = instructions[position]
            if instruction.opcode == OP_ENDIF and not instruction.is_push:
                closed = True
                position += 1
                break
            data = instruction.as_push()
            if data is None:
                logger.debug(
                    "Discarding envelope at instruction %d: unexpected opcode 0x%02x",
                    start,
                    instruction.opcode,
                )
                break
            pushes.append(data)
            position += 1

        if closed:
            envelopes.append(Envelope(index=len(envelopes), pushes=tuple(pushes)))
        elif position >= total:
            logger.debug("Discarding unterminated envelope at instruction %d", start)

    return envelopes
