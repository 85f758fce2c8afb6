"""
Global configuration for the ledger sync client.

Environment-specific defaults that apply across all clients. Values are read
once at import time and validated immediately so a bad deployment fails fast.
"""

import os

_TRUE_VALUES: list[str] = ["1", "true", "yes", "on"]
_FALSE_VALUES: list[str] = ["0", "false", "no", "off"]

DEFAULT_HOST = os.environ.get("LEDGER_SYNC_HOST", "127.0.0.1")
"""Host of the remote node. Defaults to the local machine."""

_port = os.environ.get("LEDGER_SYNC_PORT", "1337")
if not _port.isdigit() or not 0 < int(_port) < 65536:
    raise ValueError(
        f"Invalid LEDGER_SYNC_PORT environment variable: '{_port}'. "
        "Expected an integer between 1 and 65535"
    )

DEFAULT_PORT = int(_port)
"""Port of the remote node's WebSocket and HTTP interface."""

_tls = os.environ.get("LEDGER_SYNC_TLS", "false").lower()
if _tls not in _TRUE_VALUES + _FALSE_VALUES:
    raise ValueError(
        f"Invalid LEDGER_SYNC_TLS environment variable: '{_tls}'. "
        f"Supported values: {_TRUE_VALUES + _FALSE_VALUES}"
    )

DEFAULT_TLS = _tls in _TRUE_VALUES
"""Whether to use wss:// and https:// when talking to the remote node."""

DEFAULT_MAX_PAYLOAD = 128 * 1024 * 1024
"""Largest inbound frame accepted, in bytes. Blocks can be large."""

DEFAULT_IN_FLIGHT = 100
"""Number of RequestNext messages kept in flight by the chain-sync pipeline."""

DEFAULT_QUERY_TIMEOUT = 30.0
"""Seconds a one-shot request waits for its response."""
