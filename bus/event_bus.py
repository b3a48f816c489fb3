"""
Typed multi-channel event bus.

Services publish state changes here; screens (and tests) subscribe.
Each subscriber gets its own asyncio.Queue so every observer sees every
event. Publishing never blocks: a full subscriber queue drops the event.

Channels:
  resource_updates: DataManager -> screens showing teams / upcoming games
  action_outcomes:  RequestSlot -> the screen owning the slot
  batch_progress:   BatchPredictionRunner -> week prediction screens
"""

from __future__ import annotations
import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.events import ActionOutcome, BatchProgress, ResourceUpdate

log = logging.getLogger(__name__)

# A screen that falls this many events behind only needs the latest anyway
_DEFAULT_MAXSIZE = 100


class EventBus:
    __slots__ = (
        "_resource_subscribers",
        "_outcome_subscribers",
        "_progress_subscribers",
        "_maxsize",
    )

    def __init__(self, maxsize: int = _DEFAULT_MAXSIZE) -> None:
        self._resource_subscribers: list[asyncio.Queue[ResourceUpdate]] = []
        self._outcome_subscribers: list[asyncio.Queue[ActionOutcome]] = []
        self._progress_subscribers: list[asyncio.Queue[BatchProgress]] = []
        self._maxsize = maxsize

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe_resources(self) -> "asyncio.Queue[ResourceUpdate]":
        queue: asyncio.Queue[ResourceUpdate] = asyncio.Queue(maxsize=self._maxsize)
        self._resource_subscribers.append(queue)
        return queue

    def subscribe_outcomes(self) -> "asyncio.Queue[ActionOutcome]":
        queue: asyncio.Queue[ActionOutcome] = asyncio.Queue(maxsize=self._maxsize)
        self._outcome_subscribers.append(queue)
        return queue

    def subscribe_progress(self) -> "asyncio.Queue[BatchProgress]":
        queue: asyncio.Queue[BatchProgress] = asyncio.Queue(maxsize=self._maxsize)
        self._progress_subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        for subscribers in (
            self._resource_subscribers,
            self._outcome_subscribers,
            self._progress_subscribers,
        ):
            if queue in subscribers:
                subscribers.remove(queue)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_resource_update(self, update: "ResourceUpdate") -> None:
        """Non-blocking publish. Drops and logs if a subscriber is full."""
        for queue in self._resource_subscribers:
            try:
                queue.put_nowait(update)
            except asyncio.QueueFull:
                log.warning("resource_updates subscriber full, dropping update for %s", update.kind.value)

    def publish_action_outcome(self, outcome: "ActionOutcome") -> None:
        for queue in self._outcome_subscribers:
            try:
                queue.put_nowait(outcome)
            except asyncio.QueueFull:
                log.warning("action_outcomes subscriber full, dropping outcome for slot=%s", outcome.slot)

    def publish_batch_progress(self, progress: "BatchProgress") -> None:
        for queue in self._progress_subscribers:
            try:
                queue.put_nowait(progress)
            except asyncio.QueueFull:
                log.warning(
                    "batch_progress subscriber full, dropping progress %d/%d for run=%d",
                    progress.completed, progress.total, progress.run_id,
                )
