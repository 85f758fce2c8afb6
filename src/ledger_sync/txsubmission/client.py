"""Transaction submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final

from ledger_sync.config import DEFAULT_QUERY_TIMEOUT
from ledger_sync.connection import InteractionContext, close_context, ensure_open
from ledger_sync.query import Query
from ledger_sync.types import SubmitTxError, UnknownResultError

logger = logging.getLogger(__name__)

SUBMIT_TX: Final = "SubmitTx"
"""Method submitting a serialized transaction."""


@dataclass(slots=True)
class TxSubmissionClient:
    """Submits signed transactions to the remote's mempool."""

    context: InteractionContext
    """Connection to submit on."""

    timeout: float | None = field(default=DEFAULT_QUERY_TIMEOUT)
    """Seconds to wait for the verdict."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Destination for diagnostics."""

    _query: Query = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._query = Query(self.context, timeout=self.timeout, logger=self.logger)

    async def submit_tx(self, cbor_hex: str) -> str:
        """
        Submit a transaction.

        Args:
            cbor_hex: The signed transaction, CBOR-serialized and hex-encoded.

        Returns:
            The transaction id.

        Raises:
            ConnectionNotOpenError: If the connection is closed.
            SubmitTxError: If the remote rejects the transaction.
            UnknownResultError: If the verdict has an unexpected shape.
        """
        ensure_open(self.context.connection)
        self.logger.debug("Submitting transaction (%d hex chars)", len(cbor_hex))

        result = await self._query.request(SUBMIT_TX, {"submit": cbor_hex})
        match result:
            case {"SubmitSuccess": {"txId": str() as tx_id}}:
                self.logger.info("Transaction %s accepted", tx_id)
                return tx_id
            case {"SubmitFail": list() as failures}:
                raise SubmitTxError(failures)
            case _:
                raise UnknownResultError(result)

    async def shutdown(self) -> None:
        """
        Close the connection.

        Raises:
            ConnectionNotOpenError: If the connection was already closed.
        """
        await close_context(self.context, "TxSubmissionClient")


async def create_tx_submission_client(
    context: InteractionContext,
    *,
    timeout: float | None = DEFAULT_QUERY_TIMEOUT,
    logger: logging.Logger | None = None,
) -> TxSubmissionClient:
    """
    Create a transaction submission client on an open connection.

    Raises:
        ConnectionNotOpenError: If the connection is closed.
    """
    ensure_open(context.connection)
    options = {} if logger is None else {"logger": logger}
    return TxSubmissionClient(context=context, timeout=timeout, **options)
