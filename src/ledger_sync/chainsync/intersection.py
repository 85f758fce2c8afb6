"""
Intersection handshake.

Before instructions can flow, client and remote must agree on a starting
point. The client proposes candidate points, typically its most recent
checkpoints from newest to oldest; the remote walks them in order and places
its cursor on the first one it knows.

Without any checkpoint the client starts from the remote's current tip. It
learns the tip by intersecting at origin, which exists on every chain and
whose answer carries the tip.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from ledger_sync.query import Query
from ledger_sync.types import (
    ORIGIN,
    Intersection,
    IntersectionNotFoundError,
    PointOrOrigin,
    ProtocolError,
    dump_point,
    parse_point,
    parse_tip,
    point_from_tip,
)

from .messages import FIND_INTERSECT

logger = logging.getLogger(__name__)


def classify_intersection(result: Any) -> Intersection:
    """
    Interpret a FindIntersect result.

    Raises:
        IntersectionNotFoundError: If no candidate exists on the remote chain.
        ProtocolError: If the result is neither outcome.
    """
    try:
        match result:
            case {"IntersectionFound": {"point": point, "tip": tip}}:
                return Intersection(point=parse_point(point), tip=parse_tip(tip))
            case {"IntersectionNotFound": {"tip": tip}}:
                raise IntersectionNotFoundError(parse_tip(tip))
    except ValidationError as exc:
        raise ProtocolError("Malformed FindIntersect result", result) from exc
    raise ProtocolError("Unexpected FindIntersect result", result)


@dataclass(slots=True)
class IntersectionNegotiator:
    """
    Runs the FindIntersect handshake.

    Uses one request/response exchange and never touches pipeline state.
    """

    query: Query
    """One-shot requester on the sync connection."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Destination for diagnostics."""

    async def find_intersection(
        self,
        points: Sequence[PointOrOrigin] | None = None,
    ) -> Intersection:
        """
        Place the remote cursor on the first known candidate.

        Args:
            points: Candidates in order of preference. None or empty means
                the remote's current tip.

        Returns:
            The accepted point and the remote tip.

        Raises:
            IntersectionNotFoundError: If no candidate exists on the remote chain.
            ProtocolError: If the answer is neither outcome.
        """
        candidates = list(points) if points else [await self.current_tip_point()]
        self.logger.debug("Finding intersection among %d candidate(s)", len(candidates))

        result = await self.query.request(
            FIND_INTERSECT,
            {"points": [dump_point(point) for point in candidates]},
        )
        intersection = classify_intersection(result)
        self.logger.info("Intersection found at %s (tip %s)", intersection.point, intersection.tip)
        return intersection

    async def current_tip_point(self) -> PointOrOrigin:
        """Ask the remote for its tip, as a point."""
        result = await self.query.request(FIND_INTERSECT, {"points": [ORIGIN]})
        try:
            tip = classify_intersection(result).tip
        except IntersectionNotFoundError as e:
            # Origin is on every chain, but the answer carries the tip either way.
            tip = e.tip
        return point_from_tip(tip)
