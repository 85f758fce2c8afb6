"""
Routing of chain-sync instructions to consumer handlers.

Every inbound message on the connection reaches the dispatcher. Only
RequestNext responses concern it; everything else belongs to other clients
sharing the connection and is ignored.

Dispatch Disciplines
--------------------
**Sequential** (default): one worker task drains a FIFO queue, so handler
N+1 starts only after handler N has returned. Handlers may await storage
writes and still observe instructions in chain order, which any stateful
projection of the chain requires.

**Concurrent**: each instruction runs in its own task as soon as it arrives.
Completion order is unspecified, so this suits stateless consumers only.

Ordering
--------
The transport delivers responses in the order the remote sent them, and the
remote answers RequestNext in request order. Responses also reflect the
sequence number of their request. In sequential mode the dispatcher admits
instructions strictly by that number, holding early arrivals back until the
gap fills. Responses without a reflection are admitted in arrival order.
When the only requests still in flight are the missing ones, or the buffer
overflows, the gap is given up on and the window is settled for it, so a
lost response never stalls the session. Duplicates are ignored.

Faults
------
A message that cannot be classified, or a fault answering a request, is
logged and dropped. It still answered
a request, so the window is replenished for it. A handler that raises is
logged and not retried. One bad message never ends a long-lived session.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ledger_sync import metrics
from ledger_sync.config import DEFAULT_IN_FLIGHT
from ledger_sync.connection import decode_response
from ledger_sync.types import ProtocolError, Tip, TipOrOrigin

from .messages import (
    REQUEST_NEXT,
    SEQUENCE_KEY,
    Instruction,
    RollBackward,
    RollForward,
    parse_instruction,
)

logger = logging.getLogger(__name__)

RequestNextFn = Callable[[], None]
"""Continuation a handler calls when it is ready for more instructions."""

RollBackwardHandler = Callable[[RollBackward, RequestNextFn], Awaitable[None] | None]
"""Consumer callback for rollbacks."""

RollForwardHandler = Callable[[RollForward, RequestNextFn], Awaitable[None] | None]
"""Consumer callback for new blocks."""


@dataclass(frozen=True, slots=True)
class ChainSyncMessageHandlers:
    """
    The consumer's instruction callbacks.

    Each receives the instruction and a `request_next` continuation. Calling
    the continuation asks the remote for one more instruction; a handler may
    defer the call, for example until a batch is flushed. Handlers may be
    coroutine functions or plain functions.
    """

    roll_backward: RollBackwardHandler
    """Called once per RollBackward."""

    roll_forward: RollForwardHandler
    """Called once per RollForward."""


class RequestNext:
    """
    Single-use continuation handed to a handler.

    The first call replenishes the window; later calls do nothing, so each
    instruction triggers at most one replenishing request.
    """

    __slots__ = ("_replenish", "_called")

    def __init__(self, replenish: Callable[[], Any]) -> None:
        self._replenish = replenish
        self._called = False

    @property
    def called(self) -> bool:
        """Whether the continuation has fired."""
        return self._called

    def __call__(self) -> None:
        if self._called:
            return
        self._called = True
        self._replenish()


@dataclass(frozen=True, slots=True)
class _Delivery:
    """One classified response, ready for dispatch."""

    seq: int | None
    """Reflected sequence number, if the remote echoed one."""

    instruction: Instruction | None
    """The instruction. None for a dropped message that only advances order."""


def _noop() -> None:
    """Default response hook."""


@dataclass(slots=True)
class InstructionDispatcher:
    """
    Classifies RequestNext responses and invokes the matching handler.

    Register `on_message` as a connection listener, call `start()` before the
    first request goes out and `stop()` on shutdown.
    """

    handlers: ChainSyncMessageHandlers
    """Consumer callbacks."""

    on_consumed: Callable[[], Any]
    """Replenishes the window. Invoked through each handler's continuation."""

    on_response: Callable[[], None] = field(default=_noop)
    """Invoked once per RequestNext response, before classification."""

    sequential: bool = field(default=True)
    """Serialize handlers in chain order. False dispatches concurrently."""

    reorder_limit: int = field(default=DEFAULT_IN_FLIGHT)
    """Most out-of-order responses held back while waiting for a gap to fill."""

    in_flight: Callable[[], int] | None = field(default=None, repr=False)
    """Requests still unanswered. Lets a lost response be skipped early."""

    logger: logging.Logger = field(default=logger, repr=False)
    """Fault sink and diagnostics."""

    _queue: asyncio.Queue[_Delivery | None] = field(default_factory=asyncio.Queue, repr=False)
    """Admitted deliveries for the sequential worker. None wakes it to exit."""

    _worker: asyncio.Task[None] | None = field(default=None, repr=False)
    """Sequential worker task."""

    _tasks: set[asyncio.Task[None]] = field(default_factory=set, repr=False)
    """Handler tasks running in concurrent mode."""

    _held: dict[int, _Delivery] = field(default_factory=dict, repr=False)
    """Early arrivals waiting for a missing sequence number."""

    _expected_seq: int = field(default=0)
    """Next sequence number to admit."""

    _running: bool = field(default=False)
    """Whether inbound messages are processed."""

    _dispatched: int = field(default=0)
    """Instructions handed to handlers."""

    _dropped: int = field(default=0)
    """RequestNext responses that could not be classified."""

    _last_tip: TipOrOrigin | None = field(default=None)
    """Remote tip carried by the most recent dispatched instruction."""

    @property
    def is_running(self) -> bool:
        """Whether inbound messages are processed."""
        return self._running

    @property
    def dispatched(self) -> int:
        """Instructions handed to handlers since creation."""
        return self._dispatched

    @property
    def dropped(self) -> int:
        """RequestNext responses dropped since creation."""
        return self._dropped

    @property
    def last_tip(self) -> TipOrOrigin | None:
        """Remote tip seen on the most recent instruction, if any."""
        return self._last_tip

    def start(self) -> None:
        """Begin processing inbound messages."""
        if self._running:
            return
        self._running = True
        if self.sequential:
            self._worker = asyncio.get_running_loop().create_task(self._run_worker())

    def halt(self) -> None:
        """
        Stop admitting messages without waiting.

        Safe to call from a close listener. Queued instructions are discarded;
        the handler currently running (if any) is not interrupted.
        """
        if not self._running:
            return
        self._running = False
        self._held.clear()
        if self._worker is not None:
            self._queue.put_nowait(None)

    async def stop(self) -> None:
        """
        Stop admitting messages and wait for running handlers to finish.

        A handler that calls stop() on its own dispatcher does not wait for
        itself.
        """
        self.halt()
        current = asyncio.current_task()

        worker = self._worker
        if worker is not None and worker is not current and not worker.done():
            await asyncio.gather(worker, return_exceptions=True)

        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def on_message(self, raw: str) -> None:
        """
        Connection listener: classify one message and admit it for dispatch.

        Never raises. Messages for other methods are ignored. A fault that
        reflects a sequence number answered one of our requests even when it
        names no method.
        """
        if not self._running:
            return

        try:
            response = decode_response(raw)
        except ProtocolError as e:
            # An undecodable message may belong to anyone; it answered no
            # request we can identify.
            self.logger.warning("Ignoring undecodable message: %s", e)
            return

        seq = (response.reflection or {}).get(SEQUENCE_KEY)
        if not isinstance(seq, int) or isinstance(seq, bool):
            seq = None

        answers_us = response.methodname == REQUEST_NEXT or (
            response.methodname is None and seq is not None
        )
        if not answers_us:
            return

        if self._is_stale(seq):
            # Already answered or given up on; the window was settled then.
            self.logger.warning(
                "Dropping stale RequestNext response seq=%d (expected %d)",
                seq,
                self._expected_seq,
            )
            return

        self.on_response()

        instruction: Instruction | None = None
        if response.is_fault:
            detail = response.fault.string if response.fault is not None else response.result
            self.logger.error("RequestNext failed (seq=%s): %s", seq, detail)
        else:
            try:
                instruction = parse_instruction(response.result)
            except ProtocolError as e:
                self.logger.error("Dropping RequestNext response: %s", e)

        if instruction is None:
            self._dropped += 1
            metrics.messages_dropped.inc()

        self._admit(_Delivery(seq=seq, instruction=instruction))

    def _is_stale(self, seq: int | None) -> bool:
        """Whether a sequence number was already seen or given up on."""
        if not self.sequential or seq is None:
            return False
        return seq < self._expected_seq or seq in self._held

    def _admit(self, delivery: _Delivery) -> None:
        """Pass a delivery on, in sequence order when running sequentially."""
        if not self.sequential:
            self._spawn(delivery)
            return

        if delivery.seq is None:
            self._queue.put_nowait(delivery)
            return

        self._held[delivery.seq] = delivery
        if self._gap_is_lost():
            self._skip_gap()

        while self._expected_seq in self._held:
            self._queue.put_nowait(self._held.pop(self._expected_seq))
            self._expected_seq += 1

    def _gap_is_lost(self) -> bool:
        """
        Whether the responses missing before the held ones will never come.

        True once the buffer is full, or once every request still in flight
        is one of the missing ones: the remote answers in request order, so
        a later answer means the earlier ones were lost.
        """
        if not self._held or self._expected_seq in self._held:
            return False
        if len(self._held) > self.reorder_limit:
            return True
        if self.in_flight is None:
            return False
        missing = max(self._held) + 1 - self._expected_seq - len(self._held)
        return self.in_flight() <= missing

    def _skip_gap(self) -> None:
        """Give up on the missing responses and settle the window for them."""
        first = self._expected_seq
        skipped_to = min(self._held)
        self.logger.error(
            "Missing RequestNext responses seq=%d..%d; skipping", first, skipped_to - 1
        )
        for seq in range(first, skipped_to):
            self.on_response()
            self._queue.put_nowait(_Delivery(seq=seq, instruction=None))
        self._expected_seq = skipped_to

    def _spawn(self, delivery: _Delivery) -> None:
        task = asyncio.get_running_loop().create_task(self._process(delivery))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_worker(self) -> None:
        """Process admitted deliveries one at a time, in order."""
        while True:
            delivery = await self._queue.get()
            if delivery is None or not self._running:
                return
            await self._process(delivery)

    async def _process(self, delivery: _Delivery) -> None:
        """Invoke the handler for one delivery. Never raises."""
        instruction = delivery.instruction
        if instruction is None:
            self._replenish()
            return

        request_next = RequestNext(self._replenish)
        kind = type(instruction).__name__
        started = time.perf_counter()

        try:
            match instruction:
                case RollBackward():
                    self.logger.debug(
                        "RollBackward to %s (tip %s)", instruction.point, instruction.tip
                    )
                    outcome = self.handlers.roll_backward(instruction, request_next)
                case RollForward():
                    self.logger.debug("RollForward (tip %s)", instruction.tip)
                    outcome = self.handlers.roll_forward(instruction, request_next)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            self.logger.exception("%s handler failed", kind)
            metrics.handler_errors.labels(kind=kind).inc()
        finally:
            self._dispatched += 1
            self._last_tip = instruction.tip
            metrics.instructions_dispatched.labels(kind=kind).inc()
            metrics.handler_duration_seconds.labels(kind=kind).observe(
                time.perf_counter() - started
            )
            if isinstance(instruction.tip, Tip):
                metrics.tip_slot.set(instruction.tip.slot)
                metrics.tip_block_no.set(instruction.tip.block_no)

    def _replenish(self) -> None:
        try:
            self.on_consumed()
        except Exception:
            self.logger.exception("Failed to request next instruction")
