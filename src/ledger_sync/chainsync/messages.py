"""
Chain-sync method names and instruction types.

The chain-sync protocol has two methods:

- **FindIntersect** places the remote's cursor on the first candidate point it
  knows, answering IntersectionFound or IntersectionNotFound.
- **RequestNext** asks for the instruction that follows the cursor. The answer
  is a RollBackward (the cursor rewinds to a point, discarding blocks after
  it) or a RollForward (one block is appended at the cursor).

Instructions are a closed tagged variant. Every consumer matches on the two
cases; nothing else can come out of `parse_instruction`.
"""

from __future__ import annotations

from typing import Any, Final

from pydantic import ValidationError

from ledger_sync.types import (
    LenientBaseModel,
    PointOrOrigin,
    ProtocolError,
    TipOrOrigin,
    UnknownInstructionError,
)

FIND_INTERSECT: Final = "FindIntersect"
"""Method that negotiates the starting point."""

REQUEST_NEXT: Final = "RequestNext"
"""Method that asks for the next instruction."""

SEQUENCE_KEY: Final = "seq"
"""Key of the RequestNext sequence number inside `mirror` and `reflection`."""

Block = dict[str, Any]
"""An opaque block payload, forwarded to handlers unmodified."""


class _Instruction(LenientBaseModel):
    """Common base of instruction payloads. Unknown fields are ignored."""


class RollBackward(_Instruction):
    """Rewind the cursor: blocks after `point` are no longer on the chain."""

    point: PointOrOrigin
    """The point to rewind to. It remains on the chain."""

    tip: TipOrOrigin
    """The remote's head when the instruction was emitted."""


class RollForward(_Instruction):
    """Append one block at the cursor."""

    block: Block
    """The new block, opaque to the client."""

    tip: TipOrOrigin
    """The remote's head when the instruction was emitted."""


Instruction = RollBackward | RollForward
"""A chain-sync instruction."""


def parse_instruction(result: Any) -> Instruction:
    """
    Classify the result of a RequestNext response.

    Args:
        result: The decoded `result` member of the response.

    Returns:
        The matching instruction.

    Raises:
        UnknownInstructionError: If the result is neither variant.
        ProtocolError: If a variant is present but its body is malformed.
    """
    match result:
        case {"RollBackward": dict() as body}:
            model: type[Instruction] = RollBackward
        case {"RollForward": dict() as body}:
            model = RollForward
        case _:
            raise UnknownInstructionError(result)

    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise ProtocolError(f"Malformed {model.__name__}", body) from exc
