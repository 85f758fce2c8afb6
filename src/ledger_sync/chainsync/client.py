"""
Chain-sync client.

Composes the intersection handshake, the request pipeline and the
instruction dispatcher into one lifecycle on one connection::

    client = await create_chain_sync_client(context, handlers)
    intersection = await client.start_sync([checkpoint])
    ...
    await client.shutdown()

After `start_sync` returns, instructions flow to the handlers for as long as
the connection lives. Each handler call must eventually invoke its
`request_next` continuation to keep the pipeline full.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ledger_sync.config import DEFAULT_IN_FLIGHT
from ledger_sync.connection import InteractionContext
from ledger_sync.query import Query
from ledger_sync.types import (
    AlreadySyncingError,
    ConnectionNotOpenError,
    Intersection,
    PointOrOrigin,
)

from .dispatcher import ChainSyncMessageHandlers, InstructionDispatcher
from .intersection import IntersectionNegotiator
from .pipeline import PipelineController, validate_window_size
from .progress import SyncProgress
from .states import ChainSyncState

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChainSyncClient:
    """
    Replays the remote chain and follows its tip.

    One client per connection. Other clients (queries, submissions) may share
    the connection; the client only consumes RequestNext responses and its
    own FindIntersect answers.
    """

    context: InteractionContext
    """Connection the client runs on."""

    handlers: ChainSyncMessageHandlers
    """Consumer callbacks for instructions."""

    sequential: bool = field(default=True)
    """Run handlers one at a time in chain order."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Destination for diagnostics, passed on to every component."""

    _state: ChainSyncState = field(default=ChainSyncState.CREATED)
    """Current lifecycle state."""

    _negotiator: IntersectionNegotiator = field(init=False, repr=False)
    _pipeline: PipelineController = field(init=False, repr=False)
    _dispatcher: InstructionDispatcher = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Wire the components and watch the connection for closure."""
        connection = self.context.connection
        self._negotiator = IntersectionNegotiator(
            query=Query(self.context, logger=self.logger),
            logger=self.logger,
        )
        self._pipeline = PipelineController(connection=connection, logger=self.logger)
        self._dispatcher = InstructionDispatcher(
            handlers=self.handlers,
            on_consumed=self._pipeline.on_instruction_consumed,
            on_response=self._pipeline.on_response,
            in_flight=lambda: self._pipeline.outstanding,
            sequential=self.sequential,
            logger=self.logger,
        )
        connection.add_close_listener(self._on_close)

    @property
    def state(self) -> ChainSyncState:
        """Current lifecycle state."""
        return self._state

    @property
    def pipeline(self) -> PipelineController:
        """The request pipeline, for monitoring."""
        return self._pipeline

    @property
    def dispatcher(self) -> InstructionDispatcher:
        """The instruction dispatcher, for monitoring."""
        return self._dispatcher

    def progress(self) -> SyncProgress:
        """Snapshot of the session for monitoring."""
        return SyncProgress(
            state=self._state,
            tip=self._dispatcher.last_tip,
            instructions_dispatched=self._dispatcher.dispatched,
            messages_dropped=self._dispatcher.dropped,
            requests_in_flight=self._pipeline.outstanding,
        )

    async def start_sync(
        self,
        points: Sequence[PointOrOrigin] | None = None,
        in_flight: int = DEFAULT_IN_FLIGHT,
    ) -> Intersection:
        """
        Negotiate a starting point and open the pipeline.

        Args:
            points: Candidate starting points, preferred first. None starts
                from the remote's current tip.
            in_flight: Number of RequestNext messages kept in flight.

        Returns:
            The accepted intersection.

        Raises:
            AlreadySyncingError: If sync was already started on this client.
            ValueError: If `in_flight` is not a positive integer.
            ConnectionNotOpenError: If the connection is closed.
            IntersectionNotFoundError: If no candidate exists on the remote chain.
            ProtocolError: If the handshake answer is malformed.
        """
        if self._state.is_active:
            raise AlreadySyncingError()
        if self._state.is_terminal or not self.context.connection.is_open:
            raise ConnectionNotOpenError()
        validate_window_size(in_flight)

        self.logger.info("Starting chain sync...")
        self._transition(ChainSyncState.NEGOTIATING)
        try:
            intersection = await self._negotiator.find_intersection(points)
        except BaseException:
            # Leave the client reusable unless shutdown or closure intervened.
            if self._state is ChainSyncState.NEGOTIATING:
                self._transition(ChainSyncState.CREATED)
            raise

        if self._state is not ChainSyncState.NEGOTIATING or not self.context.connection.is_open:
            raise ConnectionNotOpenError("Connection closed during negotiation")

        self._transition(ChainSyncState.SYNCING)
        self._dispatcher.reorder_limit = in_flight
        self.context.connection.add_listener(self._dispatcher.on_message)
        self._dispatcher.start()
        self._pipeline.start(in_flight)

        self.logger.info(
            "Chain sync running from %s with %d requests in flight",
            intersection.point,
            in_flight,
        )
        return intersection

    async def shutdown(self) -> None:
        """
        Stop syncing and close the connection.

        The handler currently running, if any, completes first. Outstanding
        requests are abandoned.

        Raises:
            ConnectionNotOpenError: If the connection was already closed.
        """
        connection = self.context.connection
        if self._state.is_terminal or not connection.is_open:
            raise ConnectionNotOpenError()

        self.logger.info("Shutting down chain sync client...")
        self._transition(ChainSyncState.SHUTTING_DOWN)
        self._pipeline.stop()
        await self._dispatcher.stop()
        connection.remove_listener(self._dispatcher.on_message)

        await connection.close()
        if self._state is not ChainSyncState.CLOSED:
            self._transition(ChainSyncState.CLOSED)
        self.logger.info("Chain sync client closed")

    def _on_close(self) -> None:
        """Transport closed, by us or by the peer. Terminal either way."""
        self._pipeline.stop()
        self._dispatcher.halt()
        self.context.connection.remove_listener(self._dispatcher.on_message)
        self.context.connection.remove_close_listener(self._on_close)
        if self._state is not ChainSyncState.CLOSED:
            if self._state is not ChainSyncState.SHUTTING_DOWN:
                self.logger.warning("Connection closed while %s", self._state.name)
            self._transition(ChainSyncState.CLOSED)

    def _transition(self, target: ChainSyncState) -> None:
        if not self._state.can_transition_to(target):
            raise RuntimeError(f"Invalid transition {self._state.name} -> {target.name}")
        self.logger.debug("Chain sync state %s -> %s", self._state.name, target.name)
        self._state = target


async def create_chain_sync_client(
    context: InteractionContext,
    handlers: ChainSyncMessageHandlers,
    *,
    sequential: bool = True,
    logger: logging.Logger | None = None,
) -> ChainSyncClient:
    """
    Create a chain-sync client on an open connection.

    Args:
        context: Open connection to the remote node.
        handlers: Consumer callbacks for instructions.
        sequential: Run handlers one at a time in chain order. Pass False
            only for consumers that do not depend on instruction order.
        logger: Logger for the client and its components.

    Returns:
        A client in the CREATED state.

    Raises:
        ConnectionNotOpenError: If the connection is closed.
    """
    if not context.connection.is_open:
        raise ConnectionNotOpenError()
    options = {} if logger is None else {"logger": logger}
    client = ChainSyncClient(context=context, handlers=handlers, sequential=sequential, **options)
    client.logger.debug("Chain sync client created")
    return client
