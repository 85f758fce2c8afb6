"""Snapshot of chain-sync progress for monitoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ledger_sync.types import Tip, TipOrOrigin

from .states import ChainSyncState


@dataclass(frozen=True, slots=True)
class SyncProgress:
    """
    Current synchronization progress.

    Provides a snapshot of sync state for monitoring and logging.
    """

    state: ChainSyncState
    """Lifecycle state of the client."""

    tip: TipOrOrigin | None = None
    """Remote tip reported by the latest instruction."""

    instructions_dispatched: int = 0
    """Instructions handed to handlers this session."""

    messages_dropped: int = 0
    """RequestNext responses that could not be classified."""

    requests_in_flight: int = 0
    """RequestNext messages sent and not yet answered."""

    def to_json(self) -> dict[str, Any]:
        """Render as a JSON-compatible dict with camelCase keys."""
        tip: Any = self.tip
        if isinstance(self.tip, Tip):
            tip = self.tip.model_dump(by_alias=True)
        return {
            "state": self.state.name,
            "tip": tip,
            "instructionsDispatched": self.instructions_dispatched,
            "messagesDropped": self.messages_dropped,
            "requestsInFlight": self.requests_in_flight,
        }
