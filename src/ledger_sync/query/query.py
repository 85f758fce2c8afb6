"""
One-shot request/response correlation.

Several requests may be outstanding on one connection at the same time, and
the remote may answer them in any order. Each request therefore carries a
generated identifier in its `mirror`; the remote echoes it back in the
response's `reflection`, which selects the waiting caller.

Pending Map
-----------
Every outstanding request owns one future in a map keyed by its identifier.
An entry leaves the map exactly once:

- on the first response carrying its identifier (the future resolves),
- on timeout (the caller gets RequestTimeoutError),
- when the connection closes (the future fails with ConnectionNotOpenError).

Responses whose identifier is unknown (late answers to timed-out requests,
or messages owned by other clients) are ignored.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, cast

from ledger_sync import metrics
from ledger_sync.config import DEFAULT_QUERY_TIMEOUT
from ledger_sync.connection import InteractionContext, Response, decode_response, encode_request
from ledger_sync.types import (
    ConnectionNotOpenError,
    ProtocolError,
    RequestTimeoutError,
    ServerFaultError,
)

logger = logging.getLogger(__name__)

REQUEST_ID_KEY = "requestId"
"""Key of the request identifier inside `mirror` and `reflection`."""


def new_request_id() -> str:
    """Generate a request identifier unique for the life of the process."""
    return uuid.uuid4().hex


@dataclass(slots=True)
class Query:
    """
    Sends one-shot requests and awaits their correlated responses.

    One instance may serve any number of concurrent requests. It attaches a
    single listener to the connection while at least one request is pending
    and detaches it when the map drains.
    """

    context: InteractionContext
    """Connection to send on."""

    timeout: float | None = DEFAULT_QUERY_TIMEOUT
    """Seconds to wait for each response. None waits forever."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Destination for diagnostics."""

    _pending: dict[str, asyncio.Future[Response]] = field(default_factory=dict, repr=False)
    """Futures of outstanding requests, by request identifier."""

    _attached: bool = field(default=False, repr=False)
    """Whether the message and close listeners are registered."""

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    async def request(self, methodname: str, args: dict[str, Any] | None = None) -> Any:
        """
        Send a request and wait for its result.

        Args:
            methodname: Remote method to call.
            args: Method arguments, if any.

        Returns:
            The `result` member of the matching response.

        Raises:
            ConnectionNotOpenError: If the connection is closed, or closes
                before the response arrives.
            RequestTimeoutError: If no response arrives within `timeout`.
            ServerFaultError: If the remote answers with a fault.
        """
        connection = self.context.connection
        if not connection.is_open:
            raise ConnectionNotOpenError()

        request_id = new_request_id()
        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        self._attach()

        try:
            connection.send(encode_request(methodname, args, mirror={REQUEST_ID_KEY: request_id}))
            self.logger.debug("Sent %s (requestId=%s)", methodname, request_id)
            response = await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            # wait_for only times out when a timeout is set.
            metrics.queries_total.labels(method=methodname, outcome="timeout").inc()
            raise RequestTimeoutError(methodname, cast(float, self.timeout)) from None
        finally:
            self._pending.pop(request_id, None)
            if not self._pending:
                self._detach()

        if response.is_fault:
            metrics.queries_total.labels(method=methodname, outcome="fault").inc()
            fault = response.fault
            raise ServerFaultError(
                fault.code if fault else "unknown",
                fault.string if fault else "no fault details",
            )
        metrics.queries_total.labels(method=methodname, outcome="ok").inc()
        self.logger.debug("Response to %s (requestId=%s)", methodname, request_id)
        return response.result

    def _attach(self) -> None:
        if self._attached:
            return
        self.context.connection.add_listener(self._on_message)
        self.context.connection.add_close_listener(self._on_close)
        self._attached = True

    def _detach(self) -> None:
        if not self._attached:
            return
        self.context.connection.remove_listener(self._on_message)
        self.context.connection.remove_close_listener(self._on_close)
        self._attached = False

    def _on_message(self, raw: str) -> None:
        """Resolve the future whose identifier the message reflects."""
        # Cheap pre-filter: most traffic on a shared connection is chain-sync
        # responses that carry no request identifier.
        if REQUEST_ID_KEY not in raw:
            return

        try:
            response = decode_response(raw)
        except ProtocolError as e:
            self.logger.debug("Ignoring undecodable message: %s", e)
            return

        request_id = (response.reflection or {}).get(REQUEST_ID_KEY)
        if not isinstance(request_id, str):
            return

        future = self._pending.get(request_id)
        if future is None or future.done():
            return
        future.set_result(response)

    def _on_close(self) -> None:
        """Fail every outstanding request."""
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ConnectionNotOpenError("Connection closed before response"))
