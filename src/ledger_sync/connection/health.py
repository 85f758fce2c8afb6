"""
Health probe for the remote node's HTTP interface.

The remote node serves a JSON health report next to its WebSocket. A node
that has never seen a tip update is still connecting to its own upstream
and cannot answer chain-sync requests yet, so clients check the report
before opening a session.
"""

from __future__ import annotations

import logging

import httpx

from ledger_sync.types import LenientBaseModel, ServerNotReadyError, TipOrOrigin

from .config import ConnectionConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
"""HTTP request timeout in seconds."""

HEALTH_ENDPOINT = "/health"
"""Path of the health report."""


class ServerHealth(LenientBaseModel):
    """Subset of the remote node's health report used by the client."""

    start_time: str | None = None
    """When the remote process started (ISO-8601)."""

    last_known_tip: TipOrOrigin | None = None
    """Most recent tip the remote has seen."""

    last_tip_update: str | None = None
    """When the tip last changed. None until the remote is connected upstream."""

    network_synchronization: float | None = None
    """Fraction of the chain the remote has synchronized, in [0, 1]."""

    current_era: str | None = None
    """Ledger era the remote is in."""

    connection_status: str | None = None
    """State of the remote's own upstream connection."""

    @property
    def is_ready(self) -> bool:
        """Whether the remote has received at least one tip update."""
        return self.last_tip_update is not None


async def get_server_health(
    config: ConnectionConfig,
    timeout: float = DEFAULT_TIMEOUT,
) -> ServerHealth:
    """
    Fetch the remote node's health report.

    Args:
        config: Address of the remote node.
        timeout: Request timeout in seconds.

    Returns:
        The parsed health report.

    Raises:
        ServerNotReadyError: If the request fails or the report is malformed.
    """
    url = f"{config.address.http}{HEALTH_ENDPOINT}"
    logger.debug("Fetching server health from %s", url)

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            return ServerHealth.model_validate_json(response.content)

    except httpx.RequestError as exc:
        raise ServerNotReadyError(
            f"Network error while connecting to {exc.request.url}: {exc}"
        ) from exc
    except httpx.HTTPStatusError as exc:
        raise ServerNotReadyError(
            f"HTTP error {exc.response.status_code}: {exc.response.text[:200]}"
        ) from exc
    except Exception as e:
        raise ServerNotReadyError(f"Failed to read server health: {e}") from e


async def ensure_server_ready(
    config: ConnectionConfig,
    timeout: float = DEFAULT_TIMEOUT,
) -> ServerHealth:
    """
    Fetch the health report and require the remote to be ready.

    Raises:
        ServerNotReadyError: If the probe fails or the remote is not ready.
    """
    health = await get_server_health(config, timeout=timeout)
    if not health.is_ready:
        raise ServerNotReadyError("Server is not ready: no tip update received yet", health)
    logger.info(
        "Server ready: era=%s, synchronization=%s",
        health.current_era,
        health.network_synchronization,
    )
    return health
