"""
Builders for chain positions and wire messages.

Responses are built as JSON text, exactly as the transport hands them to
listeners.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from ledger_sync.chainsync import FIND_INTERSECT, REQUEST_NEXT, SEQUENCE_KEY
from ledger_sync.connection.envelope import FAULT_TYPE, RESPONSE_TYPE
from ledger_sync.types import Point, PointOrOrigin, Tip, TipOrOrigin, dump_point


def make_hash(n: int) -> str:
    """A deterministic 32-byte hex hash."""
    return f"{n:064x}"


def make_point(slot: int = 1) -> Point:
    """A point whose hash is derived from its slot."""
    return Point(slot=slot, hash=make_hash(slot))


def make_tip(slot: int = 100, block_no: int = 50) -> Tip:
    """A tip whose hash is derived from its slot."""
    return Tip(slot=slot, hash=make_hash(slot), block_no=block_no)


def tip_json(tip: TipOrOrigin) -> Any:
    """Wire form of a tip."""
    if isinstance(tip, Tip):
        return tip.model_dump(by_alias=True)
    return tip


def make_block(n: int) -> dict[str, Any]:
    """An opaque block tagged with an identifier."""
    return {"babbage": {"header": {"blockHeight": n}, "body": []}}


def response(
    methodname: str,
    result: Any,
    reflection: dict[str, Any] | None = None,
) -> str:
    """A response envelope."""
    message: dict[str, Any] = {
        "type": RESPONSE_TYPE,
        "version": "1.0",
        "servicename": "ogmios",
        "methodname": methodname,
        "result": result,
    }
    if reflection is not None:
        message["reflection"] = reflection
    return json.dumps(message)


def fault(
    code: str,
    detail: str,
    methodname: str | None = None,
    reflection: dict[str, Any] | None = None,
) -> str:
    """A fault envelope."""
    message: dict[str, Any] = {
        "type": FAULT_TYPE,
        "version": "1.0",
        "servicename": "ogmios",
        "fault": {"code": code, "string": detail},
    }
    if methodname is not None:
        message["methodname"] = methodname
    if reflection is not None:
        message["reflection"] = reflection
    return json.dumps(message)


def reply_to(request: dict[str, Any], result: Any) -> str:
    """A response to a decoded request, reflecting its mirror."""
    return response(request["methodname"], result, request.get("mirror"))


def _seq(seq: int | None) -> dict[str, Any] | None:
    return None if seq is None else {SEQUENCE_KEY: seq}


def roll_forward(
    n: int,
    seq: int | None = None,
    tip: TipOrOrigin | None = None,
) -> str:
    """A RequestNext response carrying block `n`."""
    tip = tip if tip is not None else make_tip()
    result = {"RollForward": {"block": make_block(n), "tip": tip_json(tip)}}
    return response(REQUEST_NEXT, result, _seq(seq))


def roll_backward(
    point: PointOrOrigin,
    seq: int | None = None,
    tip: TipOrOrigin | None = None,
) -> str:
    """A RequestNext response rewinding to `point`."""
    tip = tip if tip is not None else make_tip()
    result = {"RollBackward": {"point": dump_point(point), "tip": tip_json(tip)}}
    return response(REQUEST_NEXT, result, _seq(seq))


def intersection_found(point: PointOrOrigin, tip: TipOrOrigin) -> dict[str, Any]:
    """A FindIntersect result accepting `point`."""
    return {"IntersectionFound": {"point": dump_point(point), "tip": tip_json(tip)}}


def intersection_not_found(tip: TipOrOrigin) -> dict[str, Any]:
    """A FindIntersect result rejecting every candidate."""
    return {"IntersectionNotFound": {"tip": tip_json(tip)}}


def intersect_responder(
    tip: TipOrOrigin | None = None,
    found: bool = True,
) -> Callable[[dict[str, Any]], str | None]:
    """
    Auto-reply for FindIntersect requests.

    Accepts the first candidate point, or rejects all of them when `found`
    is False. Origin is always accepted, as on a real chain.
    """
    tip = tip if tip is not None else make_tip()

    def respond(request: dict[str, Any]) -> str | None:
        if request.get("methodname") != FIND_INTERSECT:
            return None
        points = request["args"]["points"]
        if found or points == ["origin"]:
            result = {"IntersectionFound": {"point": points[0], "tip": tip_json(tip)}}
            return reply_to(request, result)
        return reply_to(request, intersection_not_found(tip))

    return respond
