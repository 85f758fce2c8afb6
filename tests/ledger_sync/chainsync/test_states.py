"""Tests for the chain-sync client state machine."""

from __future__ import annotations

import pytest

from ledger_sync.chainsync import ChainSyncState


class TestChainSyncStateValues:
    """Tests for ChainSyncState enum values."""

    def test_state_count(self) -> None:
        """Exactly five lifecycle states exist."""
        assert len(ChainSyncState) == 5

    def test_states_are_unique(self) -> None:
        """Each state has a unique value."""
        values = [state.value for state in ChainSyncState]
        assert len(values) == len(set(values))


class TestChainSyncStateTransitions:
    """Tests for state transition validation."""

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (ChainSyncState.CREATED, ChainSyncState.NEGOTIATING),
            (ChainSyncState.NEGOTIATING, ChainSyncState.SYNCING),
            (ChainSyncState.NEGOTIATING, ChainSyncState.CREATED),
            (ChainSyncState.SYNCING, ChainSyncState.SHUTTING_DOWN),
            (ChainSyncState.SHUTTING_DOWN, ChainSyncState.CLOSED),
            (ChainSyncState.CREATED, ChainSyncState.SHUTTING_DOWN),
            (ChainSyncState.NEGOTIATING, ChainSyncState.SHUTTING_DOWN),
        ],
    )
    def test_valid_transitions(self, source: ChainSyncState, target: ChainSyncState) -> None:
        """Lifecycle steps are allowed."""
        assert source.can_transition_to(target)

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (ChainSyncState.CREATED, ChainSyncState.SYNCING),
            (ChainSyncState.SYNCING, ChainSyncState.NEGOTIATING),
            (ChainSyncState.SYNCING, ChainSyncState.CREATED),
            (ChainSyncState.SHUTTING_DOWN, ChainSyncState.SYNCING),
        ],
    )
    def test_invalid_transitions(self, source: ChainSyncState, target: ChainSyncState) -> None:
        """Skipping or reversing lifecycle steps is rejected."""
        assert not source.can_transition_to(target)

    def test_every_live_state_can_close(self) -> None:
        """A peer close may end the session from any live state."""
        for state in ChainSyncState:
            if state is not ChainSyncState.CLOSED:
                assert state.can_transition_to(ChainSyncState.CLOSED)

    def test_closed_is_terminal(self) -> None:
        """CLOSED has no way out."""
        for state in ChainSyncState:
            assert not ChainSyncState.CLOSED.can_transition_to(state)

    def test_no_self_transitions(self) -> None:
        """No state transitions to itself."""
        for state in ChainSyncState:
            assert not state.can_transition_to(state)


class TestChainSyncStateProperties:
    """Tests for is_active and is_terminal."""

    def test_active_states(self) -> None:
        """Only NEGOTIATING and SYNCING are active."""
        active = {state for state in ChainSyncState if state.is_active}
        assert active == {ChainSyncState.NEGOTIATING, ChainSyncState.SYNCING}

    def test_terminal_states(self) -> None:
        """Only SHUTTING_DOWN and CLOSED are terminal."""
        terminal = {state for state in ChainSyncState if state.is_terminal}
        assert terminal == {ChainSyncState.SHUTTING_DOWN, ChainSyncState.CLOSED}
