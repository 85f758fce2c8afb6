"""Chain-sync client state machine."""

from __future__ import annotations

from enum import Enum, auto


class ChainSyncState(Enum):
    """
    Lifecycle of a chain-sync client.

    State Machine Diagram
    ---------------------
    ::

        CREATED --> NEGOTIATING --> SYNCING --> SHUTTING_DOWN --> CLOSED
           ^  |          |                           ^
           |  +----------|---------------------------+
           +-------------+

    Any state except CLOSED may jump to CLOSED when the peer closes the
    connection.

    Transitions
    -----------
    CREATED -> NEGOTIATING
        - Triggered when: start_sync() is called
        - Action: Run the intersection handshake

    NEGOTIATING -> SYNCING
        - Triggered when: The remote accepts a candidate point
        - Action: Open the pipeline and start dispatching instructions

    NEGOTIATING -> CREATED
        - Triggered when: The handshake fails
        - Action: None. The caller may retry with other points

    CREATED, NEGOTIATING, SYNCING -> SHUTTING_DOWN
        - Triggered when: shutdown() is called
        - Action: Stop replenishing, let the current handler finish

    SHUTTING_DOWN -> CLOSED
        - Triggered when: The transport acknowledges the close
    """

    CREATED = auto()
    """Connection open, no chain-sync request sent."""

    NEGOTIATING = auto()
    """Waiting for the FindIntersect answer."""

    SYNCING = auto()
    """Pipeline open; instructions flow to the handlers."""

    SHUTTING_DOWN = auto()
    """Close requested; waiting for the transport."""

    CLOSED = auto()
    """Terminal. The connection is gone."""

    def can_transition_to(self, target: ChainSyncState) -> bool:
        """
        Check if transition to target state is valid.

        Args:
            target: The proposed target state.

        Returns:
            True if the transition is allowed by the state machine rules.
        """
        return target in _VALID_TRANSITIONS.get(self, set())

    @property
    def is_active(self) -> bool:
        """Whether start_sync() has been called and shutdown has not begun."""
        return self in {ChainSyncState.NEGOTIATING, ChainSyncState.SYNCING}

    @property
    def is_terminal(self) -> bool:
        """Whether the client can no longer be used."""
        return self in {ChainSyncState.SHUTTING_DOWN, ChainSyncState.CLOSED}


_VALID_TRANSITIONS: dict[ChainSyncState, set[ChainSyncState]] = {
    ChainSyncState.CREATED: {
        ChainSyncState.NEGOTIATING,
        ChainSyncState.SHUTTING_DOWN,
        ChainSyncState.CLOSED,
    },
    ChainSyncState.NEGOTIATING: {
        ChainSyncState.SYNCING,
        ChainSyncState.CREATED,
        ChainSyncState.SHUTTING_DOWN,
        ChainSyncState.CLOSED,
    },
    ChainSyncState.SYNCING: {ChainSyncState.SHUTTING_DOWN, ChainSyncState.CLOSED},
    ChainSyncState.SHUTTING_DOWN: {ChainSyncState.CLOSED},
    ChainSyncState.CLOSED: set(),
}
"""Valid state transitions for the chain-sync state machine."""
