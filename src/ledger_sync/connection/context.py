"""Interaction context shared by every client on a connection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ledger_sync.types import ConnectionNotOpenError

from .config import ConnectionConfig
from .health import ensure_server_ready
from .types import Connection
from .websocket import WebSocketConnection

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InteractionContext:
    """
    An open connection plus the settings it was opened with.

    Several clients may share one context. Each filters the inbound messages
    it owns, so a chain-sync session and one-shot queries can coexist.
    """

    connection: Connection
    """The open transport."""

    config: ConnectionConfig = field(default_factory=ConnectionConfig)
    """Settings used to open the transport."""


async def create_interaction_context(
    config: ConnectionConfig | None = None,
    *,
    check_health: bool = True,
) -> InteractionContext:
    """
    Open a connection to the remote node.

    Args:
        config: Connection settings. Defaults come from the environment.
        check_health: Require a ready health report before connecting.

    Returns:
        A context wrapping the open connection.

    Raises:
        ServerNotReadyError: If `check_health` is set and the remote is not ready.
        aiohttp.ClientError: If the WebSocket cannot be opened.
    """
    config = config or ConnectionConfig()
    if check_health:
        await ensure_server_ready(config)

    connection = await WebSocketConnection.open(config)
    logger.info("Interaction context ready at %s", config.address.websocket)
    return InteractionContext(connection=connection, config=config)


def ensure_open(connection: Connection) -> None:
    """
    Require an open connection.

    Raises:
        ConnectionNotOpenError: If the connection is closed or closing.
    """
    if not connection.is_open:
        raise ConnectionNotOpenError()


async def close_context(context: InteractionContext, client_name: str) -> None:
    """
    Close the connection of a one-shot client.

    Raises:
        ConnectionNotOpenError: If the connection was already closed.
    """
    ensure_open(context.connection)
    logger.info("Shutting down %s...", client_name)
    await context.connection.close()
    logger.info("%s connection closed", client_name)
