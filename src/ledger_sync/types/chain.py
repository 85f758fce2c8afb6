"""
Positions in the remote chain.

The remote node addresses its chain with two kinds of reference:

- A **point** names a block by slot and header hash.
- A **tip** is the node's current head, a point plus the block height.

Both may instead be the distinguished string ``"origin"``, which stands for
the position before the first block. Origin always exists on every chain, so
it is the one candidate an intersection search can never miss.
"""

from __future__ import annotations

from typing import Any, Final, Literal

from pydantic import Field, TypeAdapter

from .base import LenientBaseModel

ORIGIN: Final = "origin"
"""The position before the first block of the chain."""

Origin = Literal["origin"]
"""Type of the origin marker."""


class Point(LenientBaseModel):
    """A concrete position in the chain: a block identified by slot and hash."""

    slot: int = Field(ge=0)
    """Absolute slot number of the block."""

    hash: str
    """Hex-encoded header hash of the block."""

    def __str__(self) -> str:
        return f"{self.slot}:{self.hash}"


class Tip(LenientBaseModel):
    """The remote node's current head."""

    slot: int = Field(ge=0)
    """Slot of the head block."""

    hash: str
    """Hex-encoded header hash of the head block."""

    block_no: int = Field(ge=0)
    """Height of the head block."""

    def to_point(self) -> Point:
        """Drop the block height, keeping only the position."""
        return Point(slot=self.slot, hash=self.hash)


PointOrOrigin = Point | Origin
"""A point, or the origin of the chain."""

TipOrOrigin = Tip | Origin
"""A tip, or origin when the remote chain is still empty."""

_POINT_ADAPTER: TypeAdapter[PointOrOrigin] = TypeAdapter(PointOrOrigin)
_TIP_ADAPTER: TypeAdapter[TipOrOrigin] = TypeAdapter(TipOrOrigin)


def parse_point(value: Any) -> PointOrOrigin:
    """
    Decode a point from its JSON form.

    Raises:
        pydantic.ValidationError: If the value is neither origin nor a point.
    """
    return _POINT_ADAPTER.validate_python(value)


def parse_tip(value: Any) -> TipOrOrigin:
    """
    Decode a tip from its JSON form.

    Raises:
        pydantic.ValidationError: If the value is neither origin nor a tip.
    """
    return _TIP_ADAPTER.validate_python(value)


def dump_point(point: PointOrOrigin) -> str | dict[str, Any]:
    """Encode a point into its JSON form."""
    if isinstance(point, Point):
        return point.model_dump(by_alias=True)
    return ORIGIN


def point_from_tip(tip: TipOrOrigin) -> PointOrOrigin:
    """Convert a tip into the point it sits on."""
    if isinstance(tip, Tip):
        return tip.to_point()
    return ORIGIN


def parse_point_arg(text: str) -> PointOrOrigin:
    """
    Parse a point written as ``SLOT:HASH`` or ``origin``.

    Raises:
        ValueError: If the text is not in either form.
    """
    if text == ORIGIN:
        return ORIGIN
    slot, sep, block_hash = text.partition(":")
    if not sep or not slot.isdigit() or not block_hash:
        raise ValueError(f"Invalid point {text!r}, expected SLOT:HASH or 'origin'")
    return Point(slot=int(slot), hash=block_hash)


class Intersection(LenientBaseModel):
    """Result of the intersection handshake."""

    point: PointOrOrigin
    """The first candidate point the remote found on its chain."""

    tip: TipOrOrigin
    """The remote's head at the time of the handshake."""
