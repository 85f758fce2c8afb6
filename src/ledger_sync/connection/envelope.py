"""
JSON-WSP envelopes exchanged with the remote node.

Every request names a method and may carry arguments plus a `mirror`
object. The remote echoes the mirror back as `reflection` on the matching
response, which is how responses are correlated to requests::

    -> {"type": "jsonwsp/request", "version": "1.0", "servicename": "ogmios",
        "methodname": "FindIntersect", "args": {...}, "mirror": {"requestId": "..."}}
    <- {"type": "jsonwsp/response", "version": "1.0", "servicename": "ogmios",
        "methodname": "FindIntersect", "result": {...}, "reflection": {"requestId": "..."}}

Failures come back as faults instead of responses::

    <- {"type": "jsonwsp/fault", "fault": {"code": "client", "string": "..."}}
"""

from __future__ import annotations

from typing import Any, Final, Literal

from pydantic import ValidationError

from ledger_sync.types import LenientBaseModel, ProtocolError, StrictBaseModel

SERVICE_NAME: Final = "ogmios"
"""Service name stamped on every request."""

PROTOCOL_VERSION: Final = "1.0"
"""JSON-WSP protocol version."""

REQUEST_TYPE: Final = "jsonwsp/request"
RESPONSE_TYPE: Final = "jsonwsp/response"
FAULT_TYPE: Final = "jsonwsp/fault"


class Request(StrictBaseModel):
    """An outbound request envelope."""

    type: Literal["jsonwsp/request"] = REQUEST_TYPE
    version: str = PROTOCOL_VERSION
    servicename: str = SERVICE_NAME
    methodname: str
    args: dict[str, Any] | None = None
    mirror: dict[str, Any] | None = None

    def to_json(self) -> str:
        """Serialize for the wire, omitting absent arguments and mirror."""
        return self.model_dump_json(exclude_none=True)


class Fault(LenientBaseModel):
    """Error details of a fault envelope."""

    code: str
    string: str


class Response(LenientBaseModel):
    """
    An inbound envelope: either a response or a fault.

    Unknown fields are ignored so newer remotes stay compatible.
    """

    type: str | None = None
    methodname: str | None = None
    result: Any = None
    fault: Fault | None = None
    reflection: dict[str, Any] | None = None

    @property
    def is_fault(self) -> bool:
        """Whether this envelope reports a failure."""
        return self.type == FAULT_TYPE or self.fault is not None


def encode_request(
    methodname: str,
    args: dict[str, Any] | None = None,
    mirror: dict[str, Any] | None = None,
) -> str:
    """Build and serialize a request envelope."""
    return Request(methodname=methodname, args=args, mirror=mirror).to_json()


def decode_response(raw: str | bytes) -> Response:
    """
    Parse an inbound message.

    Raises:
        ProtocolError: If the message is not JSON or not an object.
    """
    try:
        return Response.model_validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError("Malformed envelope", raw) from exc
