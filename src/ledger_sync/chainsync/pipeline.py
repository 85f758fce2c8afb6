"""
Sliding-window pipelining of RequestNext messages.

Asking for one instruction at a time costs a full round trip per block.
Replaying years of history that way is dominated by network latency, not by
processing. The pipeline hides the latency by keeping a fixed number of
requests in flight: the remote queues them and answers each as soon as the
next instruction exists.

The Window
----------
::

    start(w)          w requests sent immediately
    response arrives  outstanding -= 1
    instruction done  one request sent, outstanding += 1

At steady state `outstanding == w`. The window is fixed rather than unbounded
so a fast remote cannot flood a slow consumer.

Sequence Numbers
----------------
Every request mirrors a sequence number, which the remote reflects on the
response. The dispatcher uses it to restore emission order should responses
ever arrive out of order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ledger_sync import metrics
from ledger_sync.config import DEFAULT_IN_FLIGHT
from ledger_sync.connection import Connection, encode_request

from .messages import REQUEST_NEXT, SEQUENCE_KEY

logger = logging.getLogger(__name__)


def validate_window_size(window_size: object) -> int:
    """
    Check that a window size is a positive integer.

    Raises:
        ValueError: If the value is not a positive integer.
    """
    if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size < 1:
        raise ValueError(f"In-flight window must be a positive integer, got {window_size!r}")
    return window_size


@dataclass(slots=True)
class PipelineController:
    """
    Keeps a bounded number of RequestNext messages in flight.

    Counter updates never span an await, so they are atomic on the event
    loop whether handlers run sequentially or concurrently.
    """

    connection: Connection
    """Transport the requests are sent on."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Destination for diagnostics."""

    window_size: int = field(default=DEFAULT_IN_FLIGHT)
    """Target number of outstanding requests. Set by start()."""

    _outstanding: int = field(default=0)
    """Requests sent and not yet answered."""

    _next_seq: int = field(default=0)
    """Sequence number of the next request."""

    _running: bool = field(default=False)
    """Whether consumed instructions are replenished."""

    @property
    def outstanding(self) -> int:
        """Requests sent and not yet answered."""
        return self._outstanding

    @property
    def sent(self) -> int:
        """Total requests sent since start()."""
        return self._next_seq

    @property
    def is_running(self) -> bool:
        """Whether start() was called and stop() was not."""
        return self._running

    def start(self, window_size: int = DEFAULT_IN_FLIGHT) -> None:
        """
        Fill the window without waiting for any response.

        Args:
            window_size: Number of requests to keep in flight.

        Raises:
            ValueError: If the window size is not a positive integer.
            RuntimeError: If the pipeline is already running.
            ConnectionNotOpenError: If the connection is closed.
        """
        self.window_size = validate_window_size(window_size)
        if self._running:
            raise RuntimeError("Pipeline already started")
        self._running = True

        for _ in range(self.window_size):
            self._send()
        self.logger.debug("Pipeline started with %d requests in flight", self.window_size)

    def on_response(self) -> None:
        """Account for one answered request."""
        if self._outstanding > 0:
            self._outstanding -= 1
        metrics.requests_in_flight.set(self._outstanding)

    def on_instruction_consumed(self) -> bool:
        """
        Replenish the window by one request.

        Returns:
            True if a request was sent. False after stop(), or when the window
            is already full.
        """
        if not self._running:
            self.logger.debug("Pipeline stopped; not replenishing")
            return False
        if self._outstanding >= self.window_size:
            self.logger.debug("Window full (%d); not replenishing", self._outstanding)
            return False
        self._send()
        return True

    def stop(self) -> None:
        """
        Stop replenishing.

        Requests already in flight may still be answered; the dispatcher
        tolerates those late responses.
        """
        if self._running:
            self.logger.debug("Pipeline stopped with %d requests outstanding", self._outstanding)
        self._running = False

    def _send(self) -> None:
        seq = self._next_seq
        self.connection.send(encode_request(REQUEST_NEXT, mirror={SEQUENCE_KEY: seq}))
        self._next_seq += 1
        self._outstanding += 1
        metrics.requests_sent.inc()
        metrics.requests_in_flight.set(self._outstanding)
