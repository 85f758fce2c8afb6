"""Tests for the status and metrics API server."""

from __future__ import annotations

import httpx
import pytest

from ledger_sync.api import ApiServer, ApiServerConfig
from ledger_sync.chainsync import ChainSyncState, SyncProgress
from ledger_sync.metrics import requests_sent
from tests.ledger_sync.helpers import make_tip, run_async


class TestApiServerConfiguration:
    """Tests for API server configuration behavior."""

    def test_default_config(self) -> None:
        """Default configuration binds locally on port 9100."""
        config = ApiServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 9100

    def test_port_in_use_raises_and_leaves_nothing_bound(self) -> None:
        """A second server on a taken port fails to start and stays down."""

        async def run_test() -> None:
            first = ApiServer(config=ApiServerConfig(port=15500))
            await first.start()

            try:
                second = ApiServer(config=ApiServerConfig(port=15500))
                with pytest.raises(OSError):
                    await second.start()

                assert not second.is_running
                await second.stop()
            finally:
                await first.stop()

        run_async(run_test())


class TestEndpoints:
    """Tests for the HTTP endpoints."""

    def test_health(self) -> None:
        """Health endpoint returns JSON with healthy status."""

        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15501))
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15501/health")

                assert response.status_code == 200
                assert response.json() == {"status": "healthy", "service": "ledger-sync"}
            finally:
                await server.stop()

            assert not server.is_running

        run_async(run_test())

    def test_metrics(self) -> None:
        """Metrics endpoint serves the Prometheus text format."""

        async def run_test() -> None:
            requests_sent.inc()
            server = ApiServer(config=ApiServerConfig(port=15502))
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15502/metrics")

                assert response.status_code == 200
                assert response.headers["content-type"].startswith("text/plain")
                assert "ledger_sync_request_next_sent_total" in response.text
                assert "ledger_sync_requests_in_flight" in response.text
            finally:
                await server.stop()

        run_async(run_test())

    def test_status_unavailable_before_sync(self) -> None:
        """Status returns 503 while no progress is available."""

        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15503))
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15503/status")

                assert response.status_code == 503
            finally:
                await server.stop()

        run_async(run_test())

    def test_status_reports_progress(self) -> None:
        """Status renders the current progress snapshot."""

        async def run_test() -> None:
            progress = SyncProgress(
                state=ChainSyncState.SYNCING,
                tip=make_tip(slot=88, block_no=44),
                instructions_dispatched=5,
                requests_in_flight=100,
            )
            server = ApiServer(
                config=ApiServerConfig(port=15504),
                progress_getter=lambda: progress,
            )
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15504/status")

                assert response.status_code == 200
                data = response.json()
                assert data["state"] == "SYNCING"
                assert data["tip"]["blockNo"] == 44
                assert data["instructionsDispatched"] == 5
                assert data["requestsInFlight"] == 100
            finally:
                await server.stop()

        run_async(run_test())
