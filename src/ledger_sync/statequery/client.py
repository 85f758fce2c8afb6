"""
Ledger state queries.

Each query is a single `Query` request answered once. The answer depends on
the ledger era the remote is in: a query the current era does not support
comes back as an era mismatch rather than a result, which is reported as an
unknown result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final

from pydantic import ValidationError

from ledger_sync.config import DEFAULT_QUERY_TIMEOUT
from ledger_sync.connection import InteractionContext, close_context, ensure_open
from ledger_sync.query import Query
from ledger_sync.types import (
    ORIGIN,
    Origin,
    PointOrOrigin,
    TipOrOrigin,
    UnknownResultError,
    parse_point,
    parse_tip,
)

logger = logging.getLogger(__name__)

QUERY_METHOD: Final = "Query"
"""Method carrying every state query."""

UNAVAILABLE_IN_ERA: Final = "QueryUnavailableInCurrentEra"
"""Answer to a query the current era does not support."""


@dataclass(slots=True)
class StateQueryClient:
    """Answers questions about the remote's ledger state."""

    context: InteractionContext
    """Connection to query on."""

    timeout: float | None = field(default=DEFAULT_QUERY_TIMEOUT)
    """Seconds to wait for each answer."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Destination for diagnostics."""

    _query: Query = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._query = Query(self.context, timeout=self.timeout, logger=self.logger)

    async def query(self, name: str, args: Any = None) -> Any:
        """
        Run a state query by name.

        Args:
            name: Query name, e.g. "chainTip".
            args: Query arguments, for queries that take them.

        Returns:
            The raw result.

        Raises:
            ConnectionNotOpenError: If the connection is closed.
            UnknownResultError: If the query is unavailable in the current era.
        """
        ensure_open(self.context.connection)
        payload = name if args is None else {name: args}
        result = await self._query.request(QUERY_METHOD, {"query": payload})
        if result == UNAVAILABLE_IN_ERA or (isinstance(result, dict) and "eraMismatch" in result):
            raise UnknownResultError(result)
        return result

    async def chain_tip(self) -> TipOrOrigin:
        """Tip of the remote's chain."""
        result = await self.query("chainTip")
        try:
            return parse_tip(result)
        except ValidationError as exc:
            raise UnknownResultError(result) from exc

    async def ledger_tip(self) -> PointOrOrigin:
        """Point of the most recent block applied to the remote's ledger."""
        result = await self.query("ledgerTip")
        try:
            return parse_point(result)
        except ValidationError as exc:
            raise UnknownResultError(result) from exc

    async def block_height(self) -> int | Origin:
        """Height of the remote's chain tip."""
        result = await self.query("blockHeight")
        if result == ORIGIN or (isinstance(result, int) and not isinstance(result, bool)):
            return result
        raise UnknownResultError(result)

    async def current_epoch(self) -> int:
        """Epoch the remote's ledger is in."""
        result = await self.query("currentEpoch")
        if isinstance(result, int) and not isinstance(result, bool):
            return result
        raise UnknownResultError(result)

    async def system_start(self) -> datetime:
        """Wall-clock time of the chain's first slot."""
        result = await self.query("systemStart")
        try:
            return datetime.fromisoformat(result)
        except (TypeError, ValueError) as exc:
            raise UnknownResultError(result) from exc

    async def shutdown(self) -> None:
        """
        Close the connection.

        Raises:
            ConnectionNotOpenError: If the connection was already closed.
        """
        await close_context(self.context, "StateQueryClient")


async def create_state_query_client(
    context: InteractionContext,
    *,
    timeout: float | None = DEFAULT_QUERY_TIMEOUT,
    logger: logging.Logger | None = None,
) -> StateQueryClient:
    """
    Create a state query client on an open connection.

    Raises:
        ConnectionNotOpenError: If the connection is closed.
    """
    ensure_open(context.connection)
    options = {} if logger is None else {"logger": logger}
    return StateQueryClient(context=context, timeout=timeout, **options)
