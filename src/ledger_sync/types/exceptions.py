"""Exception hierarchy for the ledger sync client."""

from __future__ import annotations

from typing import Any

from .chain import TipOrOrigin


def _preview(value: Any, limit: int = 200) -> str:
    """Render a value for an error message, truncated to `limit` characters."""
    text = repr(value)
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text


class LedgerSyncError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConnectionNotOpenError(LedgerSyncError):
    """
    Raised when an operation needs a transport that is closed or closing.

    Fatal to the operation, not to the process.
    """

    def __init__(self, message: str = "Connection is not open") -> None:
        super().__init__(message)


class ProtocolError(LedgerSyncError):
    """
    Raised when a message violates the expected envelope.

    Attributes:
        payload: The offending message (decoded if possible, raw otherwise).
    """

    def __init__(self, detail: str, payload: Any = None) -> None:
        self.payload = payload
        msg = detail if payload is None else f"{detail}: {_preview(payload)}"
        super().__init__(msg)


class UnknownInstructionError(ProtocolError):
    """Raised when a RequestNext result is neither a rollback nor a roll-forward."""

    def __init__(self, result: Any) -> None:
        super().__init__("Unknown chain-sync instruction", result)


class UnknownResultError(ProtocolError):
    """Raised when a one-shot request returns a result of unexpected shape."""

    def __init__(self, result: Any) -> None:
        super().__init__("Unknown result", result)


class ServerFaultError(LedgerSyncError):
    """
    Raised when the remote answers with a fault envelope.

    Attributes:
        code: Fault code reported by the remote ("client" or "server").
        detail: Fault description reported by the remote.
    """

    def __init__(self, code: str, detail: str) -> None:
        self.code = code
        self.detail = detail
        super().__init__(f"Remote fault ({code}): {detail}")


class RequestTimeoutError(LedgerSyncError):
    """
    Raised when a one-shot request receives no response in time.

    Attributes:
        methodname: The request method that timed out.
        timeout: The timeout that elapsed, in seconds.
    """

    def __init__(self, methodname: str, timeout: float) -> None:
        self.methodname = methodname
        self.timeout = timeout
        super().__init__(f"{methodname} timed out after {timeout:g}s")


class IntersectionNotFoundError(LedgerSyncError):
    """
    Raised when none of the candidate points exist on the remote chain.

    No retry is attempted; the caller chooses other candidate points.

    Attributes:
        tip: The remote's head when the search failed.
    """

    def __init__(self, tip: TipOrOrigin) -> None:
        self.tip = tip
        super().__init__(f"Intersection not found (remote tip: {tip})")


class AlreadySyncingError(LedgerSyncError):
    """Raised when sync is started twice on the same client."""

    def __init__(self) -> None:
        super().__init__("Chain sync already started on this client")


class SubmitTxError(LedgerSyncError):
    """
    Raised when the remote rejects a transaction.

    Attributes:
        failures: The list of failure reasons reported by the remote.
    """

    def __init__(self, failures: list[Any]) -> None:
        self.failures = failures
        super().__init__(f"Transaction rejected: {_preview(failures)}")


class ServerNotReadyError(LedgerSyncError):
    """
    Raised when the remote's health probe fails or reports it is not ready.

    Attributes:
        health: The health report, if one was received.
    """

    def __init__(self, detail: str, health: Any = None) -> None:
        self.health = health
        super().__init__(detail)
