"""
Cooperative cancellation tokens.

States:
  ACTIVE: work may proceed and may touch shared state
  CANCELLED: work was superseded or explicitly cancelled; any completion
             after this point is a no-op

One token is created per unit of work (a resource fetch, a coordinator
action, a batch run) and threaded through every await in that work. Code
resuming after a suspension point checks the token before mutating state.

Usage:
    token = CancellationToken(name="teams-fetch")
    data = await client.fetch_teams(token=token)
    if token.is_cancelled:
        return
    ... publish data ...
"""

from __future__ import annotations
import itertools
from enum import Enum, auto

from api.errors import ApiError

_ids = itertools.count(1)


class _State(Enum):
    ACTIVE = auto()
    CANCELLED = auto()


class CancellationToken:
    __slots__ = ("name", "id", "_state", "_reason")

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.id = next(_ids)
        self._state = _State.ACTIVE
        self._reason: str | None = None

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def is_cancelled(self) -> bool:
        return self._state == _State.CANCELLED

    def cancel(self, reason: str = "cancelled") -> None:
        # First reason wins
        if self._state == _State.CANCELLED:
            return
        self._state = _State.CANCELLED
        self._reason = reason

    def raise_if_cancelled(self, path: str | None = None) -> None:
        if self._state == _State.CANCELLED:
            raise ApiError.cancelled(self._reason or "cancelled", path=path)

    def __repr__(self) -> str:
        return f"CancellationToken({self.name!r}#{self.id}, {self._state.name.lower()})"
