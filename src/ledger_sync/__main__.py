"""
Chain follower CLI entry point.

Connects to a remote node, replays its chain from the given points (or from
its current tip) and logs every instruction until interrupted.

Usage::

    python -m ledger_sync
    python -m ledger_sync --host node.example --port 1337 --tls
    python -m ledger_sync --point 4492799:f8084c61b6a238acec985b59310b6ecec49c0ab8352249afd7268da5cff2a457
    python -m ledger_sync --point origin --in-flight 50 --metrics-port 9100

Options:
    --host          Remote node host (default: $LEDGER_SYNC_HOST or 127.0.0.1)
    --port          Remote node port (default: $LEDGER_SYNC_PORT or 1337)
    --tls           Use wss:// and https://
    --point         Starting point as SLOT:HASH or 'origin' (can be repeated)
    --in-flight     RequestNext messages kept in flight (default: 100)
    --concurrent    Dispatch instructions concurrently instead of in order
    --metrics-port  Serve /health, /status and /metrics on this port
    --verbose       Enable debug logging
    --no-color      Disable colored log output
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from ledger_sync.api import ApiServer, ApiServerConfig
from ledger_sync.chainsync import (
    ChainSyncMessageHandlers,
    RequestNextFn,
    RollBackward,
    RollForward,
    create_chain_sync_client,
)
from ledger_sync.config import DEFAULT_IN_FLIGHT
from ledger_sync.connection import ConnectionConfig, create_interaction_context, get_server_health
from ledger_sync.types import LedgerSyncError, PointOrOrigin, parse_point_arg

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        message = record.getMessage()

        # Keep tracebacks from logger.exception() calls.
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{timestamp} {levelname} {name}: {message}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the follower with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def make_logging_handlers() -> ChainSyncMessageHandlers:
    """Handlers that log each instruction and immediately ask for the next."""

    async def roll_backward(event: RollBackward, request_next: RequestNextFn) -> None:
        logger.info("Roll backward to %s (tip %s)", event.point, event.tip)
        request_next()

    async def roll_forward(event: RollForward, request_next: RequestNextFn) -> None:
        # Blocks are keyed by their era, e.g. {"babbage": {...}}.
        era = next(iter(event.block), "unknown")
        logger.info("Roll forward: %s block (tip %s)", era, event.tip)
        request_next()

    return ChainSyncMessageHandlers(roll_backward=roll_backward, roll_forward=roll_forward)


async def run_follower(
    config: ConnectionConfig,
    points: list[PointOrOrigin],
    in_flight: int = DEFAULT_IN_FLIGHT,
    sequential: bool = True,
    metrics_port: int | None = None,
    install_signal_handlers: bool = True,
) -> None:
    """
    Follow the remote chain until interrupted or disconnected.

    Args:
        config: Where the remote node lives.
        points: Candidate starting points. Empty starts at the remote tip.
        in_flight: RequestNext messages kept in flight.
        sequential: Dispatch instructions in order.
        metrics_port: Port for the API server. None disables it.
        install_signal_handlers: Whether to handle SIGINT/SIGTERM.
    """
    # Health is informative only.
    #
    # Some deployments put the WebSocket behind a proxy that does not route
    # /health, so a failed probe must not prevent the session.
    try:
        health = await get_server_health(config)
        logger.info(
            "Remote node health: era=%s, synchronization=%s, tip=%s",
            health.current_era,
            health.network_synchronization,
            health.last_known_tip,
        )
    except LedgerSyncError as e:
        logger.warning("Could not read remote node health: %s", e)

    context = await create_interaction_context(config, check_health=False)
    client = await create_chain_sync_client(
        context,
        make_logging_handlers(),
        sequential=sequential,
    )

    api_server: ApiServer | None = None
    stop = asyncio.Event()
    try:
        if metrics_port is not None:
            api_server = ApiServer(
                config=ApiServerConfig(port=metrics_port),
                progress_getter=client.progress,
            )
            await api_server.start()

        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)

        intersection = await client.start_sync(points or None, in_flight)
        logger.info("Following chain from %s", intersection.point)

        # Run until asked to stop or the remote goes away.
        waiters = [
            asyncio.create_task(stop.wait()),
            asyncio.create_task(context.connection.wait_closed()),
        ]
        _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()

    finally:
        if context.connection.is_open:
            await client.shutdown()
        if api_server is not None:
            await api_server.stop()


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run the follower. Returns the process exit code."""
    parser = argparse.ArgumentParser(
        prog="ledger_sync",
        description="Follow a remote ledger node's chain and log every instruction.",
    )
    defaults = ConnectionConfig()
    parser.add_argument("--host", default=defaults.host, help="Remote node host")
    parser.add_argument("--port", type=int, default=defaults.port, help="Remote node port")
    parser.add_argument("--tls", action="store_true", default=defaults.tls, help="Use TLS")
    parser.add_argument(
        "--point",
        dest="points",
        action="append",
        default=[],
        type=parse_point_arg,
        help="Starting point as SLOT:HASH or 'origin' (repeatable, preferred first)",
    )
    parser.add_argument(
        "--in-flight",
        type=int,
        default=DEFAULT_IN_FLIGHT,
        help="RequestNext messages kept in flight",
    )
    parser.add_argument(
        "--concurrent",
        action="store_true",
        help="Dispatch instructions concurrently (order not preserved)",
    )
    parser.add_argument("--metrics-port", type=int, default=None, help="Serve metrics here")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    args = parser.parse_args(argv)
    if args.in_flight < 1:
        parser.error("--in-flight must be a positive integer")

    setup_logging(verbose=args.verbose, no_color=args.no_color)

    try:
        config = ConnectionConfig(host=args.host, port=args.port, tls=args.tls)
    except ValueError as e:
        parser.error(str(e))

    try:
        asyncio.run(
            run_follower(
                config=config,
                points=args.points,
                in_flight=args.in_flight,
                sequential=not args.concurrent,
                metrics_port=args.metrics_port,
            )
        )
    except LedgerSyncError as e:
        logger.error("Chain sync failed: %s", e)
        return 1
    except OSError as e:
        logger.error("Could not connect to %s: %s", config.address.websocket, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
