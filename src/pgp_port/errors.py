"""Error types for the port layer.

Errors fall into four groups:
- Usage errors: raised synchronously at the call site (bad event names, bad handlers)
- Transport errors: the channel could not be opened or went away
- Handler errors: raised by application handlers, marshalled across the channel
- Remote errors: the reduced form of a handler error, as seen by the requester

Only ``message`` and ``code`` survive the trip across a channel.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Well-known error codes carried in marshalled errors."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    TIMEOUT = "TIMEOUT"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Application codes callers commonly branch on
    PWD_DIALOG_CANCEL = "PWD_DIALOG_CANCEL"
    NO_KEY_FOUND = "NO_KEY_FOUND"


DEFAULT_ERROR_CODE = ErrorCode.INTERNAL_ERROR.value


class PortError(Exception):
    """Base class for errors raised by this package."""

    code: str = DEFAULT_ERROR_CODE

    def __init__(self, message: str, code: str | ErrorCode | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code.value if isinstance(code, ErrorCode) else code


class InvalidEventError(PortError, ValueError):
    """Event name is empty, not a string, or reserved."""


class InvalidHandlerError(PortError, ValueError):
    """Handler registration with a bad event name or a non-callable handler."""


class InvalidPayloadError(PortError):
    """Incoming payload failed schema validation."""

    code = ErrorCode.INVALID_PAYLOAD.value


class PermissionDeniedError(PortError):
    """A channel is not allowed to create or join a controller."""

    code = ErrorCode.PERMISSION_DENIED.value


class CodedError(PortError):
    """Application error with an explicit code.

    Raise from a handler to give the requester something to branch on:

        raise CodedError("No key found", ErrorCode.NO_KEY_FOUND)
    """


class RemoteError(PortError):
    """Rejection of a ``send()``: the remote handler failed.

    Carries the marshalled ``message`` and ``code`` only.
    """

    @classmethod
    def from_wire(cls, error: Any) -> RemoteError:
        if isinstance(error, dict):
            return cls(
                str(error.get("message", "")),
                error.get("code") or DEFAULT_ERROR_CODE,
            )
        return cls(str(error), DEFAULT_ERROR_CODE)

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "code": self.code}

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return self.to_dict() == other
        if isinstance(other, RemoteError):
            return self.to_dict() == other.to_dict()
        return NotImplemented

    __hash__ = Exception.__hash__

    def __repr__(self) -> str:
        return f"RemoteError(message={self.message!r}, code={self.code!r})"


class TransportClosedError(PortError, ConnectionError):
    """The transport went away while requests were outstanding."""

    code = ErrorCode.TRANSPORT_CLOSED.value


class ReplyTimeoutError(PortError, TimeoutError):
    """No reply arrived within the configured reply timeout."""

    code = ErrorCode.TIMEOUT.value


def map_error(error: BaseException) -> dict[str, str]:
    """Reduce an exception to the ``{message, code}`` wire form."""
    message = getattr(error, "message", None)
    if not isinstance(message, str):
        message = str(error)
    code = getattr(error, "code", None)
    if isinstance(code, ErrorCode):
        code = code.value
    if not isinstance(code, str) or not code:
        code = DEFAULT_ERROR_CODE
    return {"message": message, "code": code}
