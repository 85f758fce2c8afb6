"""Reusable type definitions for the ledger sync client."""

from .base import CamelModel, LenientBaseModel, StrictBaseModel
from .chain import (
    ORIGIN,
    Intersection,
    Origin,
    Point,
    PointOrOrigin,
    Tip,
    TipOrOrigin,
    dump_point,
    parse_point,
    parse_point_arg,
    parse_tip,
    point_from_tip,
)
from .exceptions import (
    AlreadySyncingError,
    ConnectionNotOpenError,
    IntersectionNotFoundError,
    LedgerSyncError,
    ProtocolError,
    RequestTimeoutError,
    ServerFaultError,
    ServerNotReadyError,
    SubmitTxError,
    UnknownInstructionError,
    UnknownResultError,
)

__all__ = [
    # Models
    "CamelModel",
    "LenientBaseModel",
    "StrictBaseModel",
    # Chain positions
    "ORIGIN",
    "Origin",
    "Point",
    "PointOrOrigin",
    "Tip",
    "TipOrOrigin",
    "Intersection",
    "dump_point",
    "parse_point",
    "parse_point_arg",
    "parse_tip",
    "point_from_tip",
    # Exceptions
    "LedgerSyncError",
    "ConnectionNotOpenError",
    "ProtocolError",
    "UnknownInstructionError",
    "UnknownResultError",
    "ServerFaultError",
    "RequestTimeoutError",
    "IntersectionNotFoundError",
    "AlreadySyncingError",
    "SubmitTxError",
    "ServerNotReadyError",
]
