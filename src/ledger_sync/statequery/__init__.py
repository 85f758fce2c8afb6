"""One-shot queries about the remote's ledger state."""

from .client import QUERY_METHOD, StateQueryClient, create_state_query_client

__all__ = ["QUERY_METHOD", "StateQueryClient", "create_state_query_client"]
