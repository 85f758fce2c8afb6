"""Test helpers for ledger_sync unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import TypeVar

from ledger_sync.connection import InteractionContext

from .builders import (
    fault,
    intersect_responder,
    intersection_found,
    intersection_not_found,
    make_block,
    make_hash,
    make_point,
    make_tip,
    reply_to,
    response,
    roll_backward,
    roll_forward,
    tip_json,
)
from .mocks import MockConnection

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until the predicate holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


def make_context(connection: MockConnection | None = None) -> InteractionContext:
    """An interaction context over a mock connection."""
    return InteractionContext(connection=connection or MockConnection())


__all__ = [
    # Builders
    "fault",
    "intersect_responder",
    "intersection_found",
    "intersection_not_found",
    "make_block",
    "make_hash",
    "make_point",
    "make_tip",
    "reply_to",
    "response",
    "roll_backward",
    "roll_forward",
    "tip_json",
    # Mocks
    "MockConnection",
    "make_context",
    # Async utilities
    "run_async",
    "wait_until",
]
