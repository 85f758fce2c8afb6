"""
Abstract interface for a duplex message connection.

Clients depend on this Protocol rather than on the WebSocket transport so
tests can substitute an in-memory fake and the transport can evolve without
breaking consumers.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

MessageListener = Callable[[str], None]
"""Callback invoked with each inbound text message."""

CloseListener = Callable[[], None]
"""Callback invoked once when the connection closes."""


@runtime_checkable
class Connection(Protocol):
    """
    An open, bidirectional text-message channel to the remote node.

    Messages are delivered to every registered listener in arrival order.
    Requests and responses are NOT assumed to line up: several clients may
    share one connection, and each filters the messages it cares about.

    Example usage:
        connection = await WebSocketConnection.open(config)
        connection.add_listener(on_message)
        connection.send('{"methodname": "RequestNext", ...}')
        await connection.close()
    """

    @property
    def is_open(self) -> bool:
        """Whether messages can still be sent."""
        ...

    def send(self, text: str) -> None:
        """
        Queue a text message for sending.

        Messages are written in the order they were queued.

        Raises:
            ConnectionNotOpenError: If the connection is closed or closing.
        """
        ...

    def add_listener(self, listener: MessageListener) -> None:
        """Register a callback for inbound messages."""
        ...

    def remove_listener(self, listener: MessageListener) -> None:
        """Detach a previously registered message callback. Unknown callbacks are ignored."""
        ...

    def add_close_listener(self, listener: CloseListener) -> None:
        """Register a callback for the close event."""
        ...

    def remove_close_listener(self, listener: CloseListener) -> None:
        """Detach a previously registered close callback. Unknown callbacks are ignored."""
        ...

    async def close(self) -> None:
        """
        Close the connection and wait for the close acknowledgement.

        Idempotent.
        """
        ...

    async def wait_closed(self) -> None:
        """Block until the connection has fully closed."""
        ...
