"""Tests for the intersection handshake."""

from __future__ import annotations

import pytest

from ledger_sync.chainsync import FIND_INTERSECT, IntersectionNegotiator, classify_intersection
from ledger_sync.query import Query
from ledger_sync.types import (
    ORIGIN,
    IntersectionNotFoundError,
    PointOrOrigin,
    ProtocolError,
    RequestTimeoutError,
)
from tests.ledger_sync.helpers import (
    MockConnection,
    intersect_responder,
    intersection_found,
    intersection_not_found,
    make_context,
    make_point,
    make_tip,
    reply_to,
    run_async,
)


def _negotiator(connection: MockConnection, timeout: float | None = 1.0) -> IntersectionNegotiator:
    return IntersectionNegotiator(query=Query(make_context(connection), timeout=timeout))


class TestClassifyIntersection:
    """Tests for interpreting FindIntersect results."""

    def test_found(self) -> None:
        """IntersectionFound yields the point and tip."""
        intersection = classify_intersection(intersection_found(make_point(3), make_tip()))

        assert intersection.point == make_point(3)
        assert intersection.tip == make_tip()

    def test_found_at_origin(self) -> None:
        """Origin is a valid intersection."""
        intersection = classify_intersection(intersection_found(ORIGIN, ORIGIN))

        assert intersection.point == ORIGIN
        assert intersection.tip == ORIGIN

    def test_not_found_carries_tip(self) -> None:
        """IntersectionNotFound raises with the remote tip attached."""
        with pytest.raises(IntersectionNotFoundError) as exc_info:
            classify_intersection(intersection_not_found(make_tip(slot=400)))

        assert exc_info.value.tip == make_tip(slot=400)

    @pytest.mark.parametrize(
        "result",
        [
            {"RollForward": {}},
            {"IntersectionFound": {"point": "origin"}},
            None,
            "IntersectionFound",
        ],
    )
    def test_unexpected_result(self, result: object) -> None:
        """Anything else is a protocol error."""
        with pytest.raises(ProtocolError):
            classify_intersection(result)

    def test_malformed_point(self) -> None:
        """A found intersection with an invalid point is a protocol error."""
        result = {"IntersectionFound": {"point": {"slot": "x"}, "tip": "origin"}}

        with pytest.raises(ProtocolError, match="Malformed"):
            classify_intersection(result)


class TestFindIntersection:
    """Tests for IntersectionNegotiator.find_intersection."""

    def test_sends_candidates_in_order(self) -> None:
        """Candidates are proposed in the caller's order of preference."""

        async def run_test() -> None:
            connection = MockConnection(responder=intersect_responder())
            points = [make_point(30), make_point(20), ORIGIN]

            intersection = await _negotiator(connection).find_intersection(points)

            (request,) = connection.requests
            assert request["methodname"] == FIND_INTERSECT
            assert request["args"]["points"] == [
                {"slot": 30, "hash": make_point(30).hash},
                {"slot": 20, "hash": make_point(20).hash},
                "origin",
            ]
            assert intersection.point == make_point(30)
            assert intersection.tip == make_tip()

        run_async(run_test())

    @pytest.mark.parametrize("points", [None, []])
    def test_without_points_starts_at_tip(self, points: list[PointOrOrigin] | None) -> None:
        """No candidates means the remote's current tip."""

        async def run_test() -> None:
            tip = make_tip(slot=999, block_no=500)
            connection = MockConnection(responder=intersect_responder(tip))

            intersection = await _negotiator(connection).find_intersection(points)

            first, second = connection.requests
            assert first["args"]["points"] == ["origin"]
            assert second["args"]["points"] == [tip.to_point().model_dump(by_alias=True)]
            assert intersection.point == tip.to_point()

        run_async(run_test())

    def test_empty_chain_starts_at_origin(self) -> None:
        """A remote whose tip is origin is followed from origin."""

        async def run_test() -> None:
            connection = MockConnection(responder=intersect_responder(ORIGIN))

            intersection = await _negotiator(connection).find_intersection()

            assert connection.requests[1]["args"]["points"] == ["origin"]
            assert intersection.point == ORIGIN

        run_async(run_test())

    def test_not_found_propagates(self) -> None:
        """No known candidate raises IntersectionNotFoundError without retrying."""

        async def run_test() -> None:
            connection = MockConnection(responder=intersect_responder(found=False))

            with pytest.raises(IntersectionNotFoundError):
                await _negotiator(connection).find_intersection([make_point(1)])

            assert len(connection.requests) == 1

        run_async(run_test())

    def test_malformed_answer_raises_protocol_error(self) -> None:
        """An answer that is neither outcome is a protocol error."""

        async def run_test() -> None:
            connection = MockConnection(responder=lambda request: reply_to(request, {"What": 1}))

            with pytest.raises(ProtocolError):
                await _negotiator(connection).find_intersection([make_point(1)])

        run_async(run_test())

    def test_silent_remote_times_out(self) -> None:
        """An unanswered handshake raises RequestTimeoutError."""

        async def run_test() -> None:
            connection = MockConnection()

            with pytest.raises(RequestTimeoutError):
                await _negotiator(connection, timeout=0.01).find_intersection([make_point(1)])

        run_async(run_test())
