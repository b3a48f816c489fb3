"""
RequestSlot: single-occupancy holder for one screen action.

A screen owns one slot per user-triggered action ("current prediction",
"current roster"). Starting a new action cancels whatever occupies the slot,
so only the most recently started action can ever publish an outcome.
Cancelled actions publish nothing: no value, no error.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from api.errors import ApiError
from bus.event_bus import EventBus
from models.events import ActionOutcome
from utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

T = TypeVar("T")

Action = Callable[[CancellationToken], Awaitable[T]]


class RequestSlot(Generic[T]):
    def __init__(self, name: str, bus: EventBus | None = None) -> None:
        self.name = name
        self._bus = bus
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self._value: T | None = None
        self._error: str | None = None
        self._is_loading = False
        self._outcome_count = 0

    @property
    def value(self) -> T | None:
        return self._value

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def outcome_count(self) -> int:
        return self._outcome_count

    def run(
        self,
        action: Action[T],
        on_success: Callable[[T], None] | None = None,
    ) -> asyncio.Task:
        """
        Cancel the current occupant and start action(token) in its place.
        on_success runs only if this action is still the occupant when it finishes.
        """
        self._supersede("superseded")
        token = CancellationToken(name=self.name)
        self._token = token
        self._is_loading = True
        self._task = asyncio.create_task(
            self._execute(action, token, on_success), name=f"slot-{self.name}"
        )
        return self._task

    def cancel(self) -> None:
        self._supersede("cancelled")
        self._is_loading = False

    async def wait(self) -> None:
        """Wait for the current occupant, whatever its fate."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _supersede(self, reason: str) -> None:
        if self._token is not None:
            self._token.cancel(reason)
        if self._task is not None and not self._task.done():
            log.debug("Slot %s: %s previous action", self.name, reason)
            self._task.cancel()

    async def _execute(
        self,
        action: Action[T],
        token: CancellationToken,
        on_success: Callable[[T], None] | None,
    ) -> None:
        try:
            value = await action(token)
        except asyncio.CancelledError:
            if token.is_cancelled:
                return
            raise
        except ApiError as exc:
            if token.is_cancelled or exc.is_cancelled:
                return
            self._fail(exc.user_message)
            return
        except Exception as exc:
            if token.is_cancelled:
                return
            log.exception("Slot %s action raised: %s", self.name, exc)
            self._fail(str(exc) or type(exc).__name__)
            return
        finally:
            if self._token is token:
                self._is_loading = False

        if token.is_cancelled:
            log.debug("Slot %s: discarding result of superseded action", self.name)
            return

        self._value = value
        self._error = None
        if on_success is not None:
            on_success(value)
        self._publish(value, None)

    def _fail(self, message: str) -> None:
        log.warning("Slot %s action failed: %s", self.name, message)
        self._value = None
        self._error = message
        self._publish(None, message)

    def _publish(self, value: T | None, error: str | None) -> None:
        self._outcome_count += 1
        if self._bus is not None:
            self._bus.publish_action_outcome(ActionOutcome(slot=self.name, value=value, error=error))
