"""
Events published on the EventBus.
Frozen since they cross component boundaries; observers must never mutate them.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from models.dto import PredictionResult
from models.state import ResourceKind


@dataclass(frozen=True, slots=True)
class ResourceUpdate:
    """
    Published by DataManager after every non-superseded fetch.
    On failure, items is the previous (stale) collection and error is set.
    """
    kind: ResourceKind
    items: tuple[Any, ...]
    error: str | None
    fetched_at: float | None   # Monotonic seconds of the last successful fetch


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """Published by RequestSlot once per non-cancelled action."""
    slot: str
    value: Any
    error: str | None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class BatchProgress:
    """
    Published by BatchPredictionRunner after each game, success or failure.
    prediction is None when that game failed.
    """
    run_id: int
    completed: int
    total: int
    game_id: str
    prediction: PredictionResult | None

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0
