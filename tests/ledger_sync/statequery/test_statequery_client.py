"""Tests for ledger state queries."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from ledger_sync.statequery import QUERY_METHOD, StateQueryClient, create_state_query_client
from ledger_sync.types import ORIGIN, ConnectionNotOpenError, ServerFaultError, UnknownResultError
from tests.ledger_sync.helpers import (
    MockConnection,
    fault,
    make_context,
    make_hash,
    make_point,
    make_tip,
    reply_to,
    run_async,
    tip_json,
)


def _answering(answers: dict[str, Any]) -> MockConnection:
    """A connection whose remote answers queries by name."""

    def respond(request: dict[str, Any]) -> str | None:
        query = request["args"]["query"]
        name = query if isinstance(query, str) else next(iter(query))
        if name not in answers:
            return fault("client", f"unknown query {name}", reflection=request["mirror"])
        return reply_to(request, answers[name])

    return MockConnection(responder=respond)


async def _client(connection: MockConnection) -> StateQueryClient:
    return await create_state_query_client(make_context(connection), timeout=1.0)


class TestTypedQueries:
    """Tests for the typed query helpers."""

    def test_chain_tip(self) -> None:
        """chainTip decodes into a Tip."""

        async def run_test() -> None:
            tip = make_tip(slot=700, block_no=300)
            client = await _client(_answering({"chainTip": tip_json(tip)}))

            assert await client.chain_tip() == tip

        run_async(run_test())

    def test_ledger_tip(self) -> None:
        """ledgerTip decodes into a Point."""

        async def run_test() -> None:
            client = await _client(
                _answering({"ledgerTip": {"slot": 650, "hash": make_hash(650)}})
            )

            assert await client.ledger_tip() == make_point(650)

        run_async(run_test())

    def test_block_height(self) -> None:
        """blockHeight is an integer or origin."""

        async def run_test() -> None:
            assert await (await _client(_answering({"blockHeight": 42}))).block_height() == 42
            assert (
                await (await _client(_answering({"blockHeight": "origin"}))).block_height()
                == ORIGIN
            )

        run_async(run_test())

    def test_current_epoch(self) -> None:
        """currentEpoch is an integer."""

        async def run_test() -> None:
            client = await _client(_answering({"currentEpoch": 421}))

            assert await client.current_epoch() == 421

        run_async(run_test())

    def test_system_start(self) -> None:
        """systemStart decodes into a timezone-aware datetime."""

        async def run_test() -> None:
            client = await _client(_answering({"systemStart": "2017-09-23T21:44:51+00:00"}))

            assert await client.system_start() == datetime(2017, 9, 23, 21, 44, 51, tzinfo=UTC)

        run_async(run_test())

    def test_wrong_shape_is_unknown_result(self) -> None:
        """A result of the wrong shape raises UnknownResultError."""

        async def run_test() -> None:
            client = await _client(
                _answering({"chainTip": [1, 2], "currentEpoch": "x", "systemStart": 5})
            )

            with pytest.raises(UnknownResultError):
                await client.chain_tip()
            with pytest.raises(UnknownResultError):
                await client.current_epoch()
            with pytest.raises(UnknownResultError):
                await client.system_start()

        run_async(run_test())


class TestRawQuery:
    """Tests for StateQueryClient.query."""

    def test_request_shape(self) -> None:
        """Queries are sent as the Query method with the query name."""

        async def run_test() -> None:
            connection = _answering({"currentEpoch": 1, "poolParameters": {}})
            client = await _client(connection)

            await client.query("currentEpoch")
            await client.query("poolParameters", ["pool1"])

            first, second = connection.requests
            assert first["methodname"] == QUERY_METHOD
            assert first["args"] == {"query": "currentEpoch"}
            assert second["args"] == {"query": {"poolParameters": ["pool1"]}}

        run_async(run_test())

    def test_era_mismatch_is_unknown_result(self) -> None:
        """Queries unsupported by the current era raise UnknownResultError."""

        async def run_test() -> None:
            mismatch = {"eraMismatch": {"ledgerEra": "Shelley", "queryEra": "Alonzo"}}
            client = await _client(
                _answering({"currentEpoch": mismatch, "chainTip": "QueryUnavailableInCurrentEra"})
            )

            with pytest.raises(UnknownResultError):
                await client.query("currentEpoch")
            with pytest.raises(UnknownResultError):
                await client.query("chainTip")

        run_async(run_test())

    def test_fault_propagates(self) -> None:
        """A fault answer raises ServerFaultError."""

        async def run_test() -> None:
            client = await _client(_answering({}))

            with pytest.raises(ServerFaultError):
                await client.query("nonsense")

        run_async(run_test())


class TestLifecycle:
    """Tests for creation and shutdown."""

    def test_shutdown_closes_connection(self) -> None:
        """shutdown() closes the connection once; a second call raises."""

        async def run_test() -> None:
            connection = MockConnection()
            client = await _client(connection)

            await client.shutdown()

            assert connection.close_calls == 1
            with pytest.raises(ConnectionNotOpenError):
                await client.shutdown()

        run_async(run_test())

    def test_closed_connection_rejected(self) -> None:
        """Queries and creation fail on a closed connection."""

        async def run_test() -> None:
            connection = MockConnection()
            client = await _client(connection)
            connection.peer_close()

            with pytest.raises(ConnectionNotOpenError):
                await client.current_epoch()
            with pytest.raises(ConnectionNotOpenError):
                await _client(connection)

        run_async(run_test())
