"""
WebSocket transport to the remote node.

The remote node speaks JSON over a single WebSocket. This module owns that
socket and turns it into the listener-based Connection interface:

- A **reader task** receives text frames and fans them out to listeners.
- A **writer task** drains an outbound queue, so `send()` never blocks and
  messages leave in the order they were queued.

Closing from either side is terminal. Both tasks stop, the socket and HTTP
session are released, and close listeners fire exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import aiohttp

from ledger_sync.types import ConnectionNotOpenError

from .config import ConnectionConfig
from .types import CloseListener, MessageListener

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WebSocketConnection:
    """
    Connection implementation over an aiohttp client WebSocket.

    Thread Safety
    -------------
    This class is designed for single-threaded async operation. All methods
    must be called from the event loop that opened the connection.
    """

    config: ConnectionConfig
    """Where the connection points to."""

    _session: aiohttp.ClientSession | None = field(default=None, repr=False)
    """HTTP session owning the socket."""

    _ws: aiohttp.ClientWebSocketResponse | None = field(default=None, repr=False)
    """The underlying WebSocket."""

    _listeners: list[MessageListener] = field(default_factory=list, repr=False)
    """Inbound message callbacks, in registration order."""

    _close_listeners: list[CloseListener] = field(default_factory=list, repr=False)
    """Close callbacks, in registration order."""

    _outbound: asyncio.Queue[str] = field(default_factory=asyncio.Queue, repr=False)
    """Messages waiting for the writer task."""

    _reader: asyncio.Task[None] | None = field(default=None, repr=False)
    _writer: asyncio.Task[None] | None = field(default=None, repr=False)

    _release_task: asyncio.Task[None] | None = field(default=None, repr=False)
    """Cleanup started from inside the reader or writer task."""

    _closing: bool = field(default=False)
    """Set as soon as either side starts closing."""

    _closed: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    """Set once the transport is fully released."""

    @classmethod
    async def open(cls, config: ConnectionConfig) -> WebSocketConnection:
        """
        Connect to the remote node.

        Args:
            config: Address and limits of the connection.

        Returns:
            An open connection with its reader and writer tasks running.

        Raises:
            aiohttp.ClientError: If the socket cannot be established.
        """
        connection = cls(config=config)
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(
                config.address.websocket,
                max_msg_size=config.max_payload,
                heartbeat=config.heartbeat,
            )
        except BaseException:
            await session.close()
            raise

        connection._session = session
        connection._ws = ws
        connection._reader = asyncio.create_task(connection._read_loop())
        connection._writer = asyncio.create_task(connection._write_loop())
        logger.debug("Connected to %s", config.address.websocket)
        return connection

    @property
    def is_open(self) -> bool:
        """Whether messages can still be sent."""
        return self._ws is not None and not self._closing and not self._ws.closed

    def send(self, text: str) -> None:
        """
        Queue a message for the writer task.

        Raises:
            ConnectionNotOpenError: If the connection is closed or closing.
        """
        if not self.is_open:
            raise ConnectionNotOpenError()
        self._outbound.put_nowait(text)

    def add_listener(self, listener: MessageListener) -> None:
        """Register a callback for inbound messages."""
        self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        """Detach a message callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_close_listener(self, listener: CloseListener) -> None:
        """Register a callback for the close event."""
        self._close_listeners.append(listener)

    def remove_close_listener(self, listener: CloseListener) -> None:
        """Detach a close callback."""
        if listener in self._close_listeners:
            self._close_listeners.remove(listener)

    async def close(self) -> None:
        """Close the socket and wait until the transport is released."""
        await self._release()

    async def wait_closed(self) -> None:
        """Block until the transport is released."""
        await self._closed.wait()

    async def _read_loop(self) -> None:
        """Deliver inbound frames to listeners until the socket closes."""
        assert self._ws is not None
        try:
            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    self._deliver(message.data)
                elif message.type == aiohttp.WSMsgType.BINARY:
                    self._deliver(message.data.decode("utf-8", errors="replace"))
                elif message.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", self._ws.exception())
                    break
        finally:
            # The socket ended on its own (peer close or error).
            #
            # Release in a fresh task so this task's cancellation does not
            # interrupt the cleanup.
            if not self._closing:
                logger.info("Connection to %s closed by peer", self.config.address.websocket)
                self._release_task = asyncio.get_running_loop().create_task(self._release())

    async def _write_loop(self) -> None:
        """Write queued messages in order until the socket closes."""
        assert self._ws is not None
        while True:
            text = await self._outbound.get()
            try:
                await self._ws.send_str(text)
            except (ConnectionResetError, aiohttp.ClientError) as e:
                logger.warning("Failed to send message: %s", e)
                if not self._closing:
                    self._release_task = asyncio.get_running_loop().create_task(self._release())
                return

    def _deliver(self, text: str) -> None:
        """Fan one message out to every listener, isolating listener failures."""
        for listener in list(self._listeners):
            try:
                listener(text)
            except Exception:
                logger.exception("Message listener %r failed", listener)

    async def _release(self) -> None:
        """Tear down the transport once; later callers wait for the first."""
        if self._closing:
            await self._closed.wait()
            return
        self._closing = True

        current = asyncio.current_task()
        for task in (self._reader, self._writer):
            if task is not None and task is not current and not task.done():
                task.cancel()

        try:
            if self._ws is not None:
                await self._ws.close()
        finally:
            if self._session is not None:
                await self._session.close()
            self._closed.set()

            for listener in list(self._close_listeners):
                try:
                    listener()
                except Exception:
                    logger.exception("Close listener %r failed", listener)
