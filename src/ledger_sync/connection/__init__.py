"""Transport layer: the duplex connection, its envelopes and health probe."""

from .config import Address, ConnectionConfig
from .context import InteractionContext, close_context, create_interaction_context, ensure_open
from .envelope import Fault, Request, Response, decode_response, encode_request
from .health import ServerHealth, ensure_server_ready, get_server_health
from .types import CloseListener, Connection, MessageListener
from .websocket import WebSocketConnection

__all__ = [
    "Address",
    "CloseListener",
    "Connection",
    "ConnectionConfig",
    "Fault",
    "InteractionContext",
    "MessageListener",
    "Request",
    "Response",
    "ServerHealth",
    "WebSocketConnection",
    "close_context",
    "create_interaction_context",
    "decode_response",
    "encode_request",
    "ensure_open",
    "ensure_server_ready",
    "get_server_health",
]
