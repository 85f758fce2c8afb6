"""Connection settings."""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_sync.config import DEFAULT_HOST, DEFAULT_MAX_PAYLOAD, DEFAULT_PORT, DEFAULT_TLS


@dataclass(frozen=True, slots=True)
class Address:
    """URLs derived from a connection config."""

    websocket: str
    """Endpoint of the JSON/WebSocket interface."""

    http: str
    """Base URL of the HTTP interface (health checks)."""


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """
    Where and how to reach the remote node.

    Defaults come from the LEDGER_SYNC_* environment variables.
    """

    host: str = field(default=DEFAULT_HOST)
    """Hostname or IP address."""

    port: int = field(default=DEFAULT_PORT)
    """TCP port shared by the WebSocket and HTTP interfaces."""

    tls: bool = field(default=DEFAULT_TLS)
    """Use wss:// and https:// instead of ws:// and http://."""

    max_payload: int = field(default=DEFAULT_MAX_PAYLOAD)
    """Largest inbound frame accepted, in bytes."""

    heartbeat: float | None = field(default=None)
    """Seconds between WebSocket pings. None disables keep-alive pings."""

    def __post_init__(self) -> None:
        """Reject configurations that can never connect."""
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port {self.port}")
        if self.max_payload <= 0:
            raise ValueError(f"max_payload must be positive, got {self.max_payload}")

    @property
    def address(self) -> Address:
        """WebSocket and HTTP URLs for this config."""
        secure = "s" if self.tls else ""
        authority = f"{self.host}:{self.port}"
        return Address(
            websocket=f"ws{secure}://{authority}",
            http=f"http{secure}://{authority}",
        )
