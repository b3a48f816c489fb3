"""
Uniform error channel for everything that crosses the network boundary.

Every failure the transport client sees ends up as an ApiError with one of
four kinds:

  TRANSPORT: no connectivity, timeout, non-2xx status without a payload
  DECODE: malformed JSON or a payload of the wrong shape
  SERVER: structured error payload from the server (reason text kept)
  CANCELLED: the request's CancellationToken fired; never shown to users

asyncio.CancelledError is never wrapped; task cancellation keeps
propagating the way asyncio expects.
"""

from __future__ import annotations
from enum import Enum


class ErrorKind(Enum):
    TRANSPORT = "transport"
    DECODE = "decode"
    SERVER = "server"
    CANCELLED = "cancelled"


class ApiError(Exception):
    """Raised by PredictorApiClient for every request failure."""

    def __init__(
        self,
        kind: ErrorKind,
        reason: str,
        *,
        status: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(reason)
        self.kind = kind
        self.reason = reason
        self.status = status
        self.path = path

    @classmethod
    def transport(cls, reason: str, *, status: int | None = None, path: str | None = None) -> "ApiError":
        return cls(ErrorKind.TRANSPORT, reason, status=status, path=path)

    @classmethod
    def decode(cls, reason: str, *, path: str | None = None) -> "ApiError":
        return cls(ErrorKind.DECODE, reason, path=path)

    @classmethod
    def server(cls, reason: str, *, status: int | None = None, path: str | None = None) -> "ApiError":
        return cls(ErrorKind.SERVER, reason, status=status, path=path)

    @classmethod
    def cancelled(cls, reason: str = "cancelled", *, path: str | None = None) -> "ApiError":
        return cls(ErrorKind.CANCELLED, reason, path=path)

    @property
    def is_cancelled(self) -> bool:
        return self.kind is ErrorKind.CANCELLED

    @property
    def user_message(self) -> str:
        """Text suitable for an inline error label."""
        if self.kind is ErrorKind.SERVER:
            return self.reason
        if self.kind is ErrorKind.DECODE:
            return "The server sent an unexpected response."
        if self.status is not None:
            return f"Request failed with status {self.status}."
        return f"Network error: {self.reason}"

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value}, reason={self.reason!r}, status={self.status}, path={self.path!r})"
