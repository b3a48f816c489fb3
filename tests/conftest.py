from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest

from models.dto import Game, PredictionResult, Team


@dataclass
class Gate:
    """
    A scripted step that blocks until released.
    stubborn=True keeps waiting through task cancellation, simulating a
    response that arrives after the caller gave up on it.
    """
    value: Any
    stubborn: bool = False
    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)
    returned: asyncio.Event = field(default_factory=asyncio.Event)

    async def wait(self) -> Any:
        self.started.set()
        while True:
            try:
                await self.release.wait()
                break
            except asyncio.CancelledError:
                if not self.stubborn:
                    raise
        self.returned.set()
        if isinstance(self.value, BaseException):
            raise self.value
        return self.value


class Scripted:
    """
    Async callable that plays back steps, one per call.
    A step is a value, an exception to raise, or a Gate. The last step repeats.
    """

    def __init__(self, *steps: Any) -> None:
        self.steps = list(steps)
        self.calls: list[tuple] = []

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.calls.append((args, kwargs))
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Gate):
            return await step.wait()
        if isinstance(step, BaseException):
            raise step
        return step

    @property
    def call_count(self) -> int:
        return len(self.calls)


class FakeClient:
    def __init__(self, teams: Any = (), games: Any = (), prediction: Any = None) -> None:
        self.fetch_teams = teams if isinstance(teams, Scripted) else Scripted(list(teams))
        self.fetch_upcoming_games = games if isinstance(games, Scripted) else Scripted(list(games))
        self.make_prediction = prediction if isinstance(prediction, Scripted) else Scripted(prediction)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_team(abbr: str, name: str | None = None) -> Team:
    return Team(name=name or f"{abbr} Team", abbreviation=abbr, conference="AFC", division="West")


def make_game(game_id: str, home: str = "KC", away: str = "BUF", week: int | None = 1) -> Game:
    return Game(
        id=game_id,
        home_team=make_team(home),
        away_team=make_team(away),
        date=datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc),
        week=week,
        season=2025,
    )


def make_prediction(winner: str, confidence: float = 0.7) -> PredictionResult:
    return PredictionResult(predicted_winner=winner, confidence=confidence, reasoning="test")


LEAGUE_ABBREVIATIONS = [
    "ARI", "ATL", "BAL", "BUF", "CAR", "CHI", "CIN", "CLE",
    "DAL", "DEN", "DET", "GB", "HOU", "IND", "JAX", "KC",
    "LV", "LAC", "LAR", "MIA", "MIN", "NE", "NO", "NYG",
    "NYJ", "PHI", "PIT", "SF", "SEA", "TB", "TEN", "WAS",
]


@pytest.fixture
def league_teams() -> list[Team]:
    return [make_team(abbr) for abbr in LEAGUE_ABBREVIATIONS]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
