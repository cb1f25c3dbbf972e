"""Errors raised by a traceroute run."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ._models import Hop


class TraceError(Exception):
    """Fatal run-level error.

    ``hops`` holds the hops collected before the run was aborted.
    """

    def __init__(self, message: str, hops: Optional[list[Hop]] = None):
        super().__init__(message)
        self.hops: list[Hop] = list(hops) if hops else []


class ResolveError(TraceError):
    """Raised when the remote host cannot be resolved."""


class NoRemoteAddressError(TraceError):
    """Raised when the remote host has no IPv4 address."""


class SocketSetupError(TraceError):
    """Raised when the raw socket cannot be created, bound or configured."""


class RawSocketPermissionError(SocketSetupError, PermissionError):
    """Raised when raw socket creation fails due to missing privileges."""


class MarshalError(TraceError):
    """Raised when an ICMP message cannot be encoded."""


class SendError(TraceError):
    """Raised when a probe cannot be sent."""


class ReceiveError(TraceError):
    """Raised when receiving fails for a reason other than a timeout."""


class ParseError(TraceError, ValueError):
    """Raised when received bytes are not a valid ICMP message."""
