"""
Chain-sync client for the remote node's chain-follower interface.

How It Works
------------
1. **Intersection**: agree with the remote on a starting point.
2. **Pipelining**: keep a window of RequestNext messages in flight.
3. **Dispatch**: route each RollBackward / RollForward answer to the
   consumer's handler, in chain order unless concurrency is requested.
4. **Replenish**: each handler's continuation sends one more request.
"""

from __future__ import annotations

__all__ = [
    # Client
    "ChainSyncClient",
    "create_chain_sync_client",
    "ChainSyncState",
    "SyncProgress",
    # Handlers
    "ChainSyncMessageHandlers",
    "RequestNext",
    "RequestNextFn",
    # Components
    "InstructionDispatcher",
    "IntersectionNegotiator",
    "PipelineController",
    "classify_intersection",
    "validate_window_size",
    # Messages
    "Block",
    "Instruction",
    "RollBackward",
    "RollForward",
    "parse_instruction",
    "FIND_INTERSECT",
    "REQUEST_NEXT",
    "SEQUENCE_KEY",
]

from .client import ChainSyncClient, create_chain_sync_client
from .dispatcher import (
    ChainSyncMessageHandlers,
    InstructionDispatcher,
    RequestNext,
    RequestNextFn,
)
from .intersection import IntersectionNegotiator, classify_intersection
from .messages import (
    FIND_INTERSECT,
    REQUEST_NEXT,
    SEQUENCE_KEY,
    Block,
    Instruction,
    RollBackward,
    RollForward,
    parse_instruction,
)
from .pipeline import PipelineController, validate_window_size
from .progress import SyncProgress
from .states import ChainSyncState
