"""
Monitoring endpoints for a running chain-sync session.

Routes:
- /health - liveness of this process
- /status - chain-sync progress as JSON, 503 until a session is attached
- /metrics - Prometheus exposition
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from aiohttp import web

from ledger_sync.metrics import generate_metrics

if TYPE_CHECKING:
    from ledger_sync.chainsync import SyncProgress

logger = logging.getLogger(__name__)

ProgressGetter = Callable[[], "SyncProgress | None"]
"""Returns the session snapshot, or None while no session is attached."""


async def _health(_request: web.Request) -> web.Response:
    return web.json_response({"status": "healthy", "service": "ledger-sync"})


async def _metrics(_request: web.Request) -> web.Response:
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Where the monitoring endpoints listen."""

    host: str = "127.0.0.1"
    """Bind address."""

    port: int = 9100
    """TCP port."""


@dataclass(slots=True)
class ApiServer:
    """
    Serves the monitoring routes on aiohttp.

    `start()` returns once the socket is bound; `stop()` releases it.
    """

    config: ApiServerConfig
    """Bind address and port."""

    progress_getter: ProgressGetter = field(default=lambda: None)
    """Source of the /status payload."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """Set while the server is bound."""

    @property
    def is_running(self) -> bool:
        """Whether the socket is bound."""
        return self._runner is not None

    async def start(self) -> None:
        """
        Bind the socket and begin serving.

        Raises:
            OSError: If the address is unavailable. Nothing is left bound.
        """
        app = web.Application()
        app.router.add_get("/health", _health)
        app.router.add_get("/metrics", _metrics)
        app.router.add_get("/status", self._status)

        runner = web.AppRunner(app)
        await runner.setup()
        try:
            await web.TCPSite(runner, self.config.host, self.config.port).start()
        except BaseException:
            await runner.cleanup()
            raise

        self._runner = runner
        logger.info("Monitoring on http://%s:%d", self.config.host, self.config.port)

    async def stop(self) -> None:
        """Release the socket. Idempotent."""
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()
            logger.info("Monitoring stopped")

    async def _status(self, _request: web.Request) -> web.Response:
        progress = self.progress_getter()
        if progress is None:
            raise web.HTTPServiceUnavailable(reason="Chain sync not started")
        return web.json_response(progress.to_json())
