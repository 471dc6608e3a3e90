"""Normalized error hierarchy for resilient_store."""

from __future__ import annotations

import enum
from typing import ClassVar, Optional


class FailureKind(enum.Enum):
    """Category of a failure raised by a single transport attempt."""

    UNKNOWN = "unknown"
    RPC_FAILED = "rpc_failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    IO = "io"
    SOCKET_TIMEOUT = "socket_timeout"
    INTERRUPTED = "interrupted"
    NOT_FOUND = "not_found"
    MALFORMED_ADDRESS = "malformed_address"
    CLOSED_BY_INTERRUPT = "closed_by_interrupt"
    CHANNEL_CLOSED = "channel_closed"


class ObjectStoreError(OSError):
    """Base class for all resilient_store errors.

    Every error is I/O-class. A bare ``ObjectStoreError`` is a generic,
    transient I/O failure.

    :param message: Human-readable error description.
    :param path: The object involved in the error, if any.
    :param transport: The transport name involved, if any.
    """

    kind: ClassVar[FailureKind] = FailureKind.IO

    def __init__(self, message: str = "", *, path: Optional[str] = None, transport: Optional[str] = None) -> None:
        self.path = path
        self.transport = transport
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.transport is not None:
            parts.append(f"transport={self.transport!r}")
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.args[0] if self.args else "")]
        if self.path is not None:
            args.append(f"path={self.path!r}")
        if self.transport is not None:
            args.append(f"transport={self.transport!r}")
        return f"{cls}({', '.join(args)})"


class NotFound(ObjectStoreError):
    """Raised when an object or upload session does not exist."""

    kind = FailureKind.NOT_FOUND


class InvalidObjectName(ObjectStoreError):
    """Raised for a malformed bucket or object name."""

    kind = FailureKind.MALFORMED_ADDRESS


class UnknownFailure(ObjectStoreError):
    """Raised when the transport reports a failure it cannot explain."""

    kind = FailureKind.UNKNOWN


class RPCFailed(ObjectStoreError):
    """Raised when the remote call itself failed (connection, endpoint, protocol)."""

    kind = FailureKind.RPC_FAILED


class DeadlineExceeded(ObjectStoreError):
    """Raised when a single attempt ran past its timeout."""

    kind = FailureKind.DEADLINE_EXCEEDED


class ClosedByInterrupt(ObjectStoreError):
    """Raised when an operation was cancelled while blocked in an attempt or a retry wait."""

    kind = FailureKind.CLOSED_BY_INTERRUPT


class ChannelClosed(ObjectStoreError):
    """Raised when a channel is used after it was closed or torn down."""

    kind = FailureKind.CHANNEL_CLOSED
