"""
Wire records received from (or sent to) the prediction server.
All records are frozen; the client never mutates server data.
Attribute names are the snake_case wire names except where noted.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class Team:
    name: str
    abbreviation: str      # Unique key
    conference: str
    division: str

    @property
    def id(self) -> str:
        return self.abbreviation


@dataclass(frozen=True, slots=True)
class TeamRecord:
    wins: int | None = None
    losses: int | None = None
    ties: int | None = None
    win_percentage: float | None = None


@dataclass(frozen=True, slots=True)
class Game:
    """
    A scheduled, live or completed game. Teams are embedded copies and act
    only as a lookup back-reference by abbreviation.
    """
    id: str
    home_team: Team
    away_team: Team
    date: datetime         # Wire name: scheduled_date
    week: int | None = None
    season: int | None = None
    home_score: int | None = None
    away_score: int | None = None
    status: str | None = None
    quarter: int | None = None
    time_remaining: str | None = None
    possession: str | None = None

    @property
    def is_final(self) -> bool:
        status = (self.status or "").lower()
        if status == "final":
            return True
        return self.home_score is not None and self.away_score is not None and status != "in progress"

    def is_live(self, now: datetime) -> bool:
        if (self.status or "").lower() == "in progress":
            return True
        return self.date < now and not self.is_final


@dataclass(frozen=True, slots=True)
class TeamDetail:
    name: str
    abbreviation: str
    conference: str
    division: str
    record: TeamRecord | None = None
    next_game: Game | None = None

    @property
    def id(self) -> str:
        return self.abbreviation


@dataclass(frozen=True, slots=True)
class PredictionResult:
    predicted_winner: str  # Team abbreviation
    confidence: float      # 0.0 - 1.0 inclusive
    reasoning: str | None = None
    model_version: str | None = None


@dataclass(frozen=True, slots=True)
class GameOdds:
    home_team_odds: float | None = None
    away_team_odds: float | None = None
    spread: float | None = None
    over_under: float | None = None
    last_updated: datetime | None = None


@dataclass(frozen=True, slots=True)
class GamePrediction:
    game: Game
    prediction: PredictionResult | None = None
    odds: GameOdds | None = None


@dataclass(frozen=True, slots=True)
class CurrentWeek:
    week: int
    season: int
    games: tuple[GamePrediction, ...] = ()
    last_updated: datetime | None = None


@dataclass(frozen=True, slots=True)
class VegasOdds:
    bookmaker: str
    home_moneyline: int | None = None
    away_moneyline: int | None = None
    spread: float | None = None
    total: float | None = None
    home_implied_probability: float | None = None
    away_implied_probability: float | None = None


@dataclass(frozen=True, slots=True)
class Prediction:
    """Full prediction payload as returned by POST /predictions."""
    game_id: str
    home_team: Team
    away_team: Team
    scheduled_date: datetime
    location: str
    week: int
    season: int
    home_win_probability: float
    away_win_probability: float
    confidence: float
    reasoning: str
    predicted_home_score: int | None = None
    predicted_away_score: int | None = None
    vegas_odds: VegasOdds | None = None


@dataclass(frozen=True, slots=True)
class PredictionRequest:
    home_team_abbreviation: str
    away_team_abbreviation: str
    season: int
    scheduled_date: datetime | None = None
    week: int | None = None

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "home_team_abbreviation": self.home_team_abbreviation,
            "away_team_abbreviation": self.away_team_abbreviation,
            "season": self.season,
        }
        if self.scheduled_date is not None:
            body["scheduled_date"] = self.scheduled_date.isoformat()
        if self.week is not None:
            body["week"] = self.week
        return body


@dataclass(frozen=True, slots=True)
class PlayerStats:
    passing_yards: int | None = None
    passing_touchdowns: int | None = None
    passing_interceptions: int | None = None
    passing_completions: int | None = None
    passing_attempts: int | None = None
    rushing_yards: int | None = None
    rushing_touchdowns: int | None = None
    rushing_attempts: int | None = None
    receiving_yards: int | None = None
    receiving_touchdowns: int | None = None
    receptions: int | None = None
    targets: int | None = None
    tackles: int | None = None
    sacks: float | None = None
    interceptions: int | None = None

    @property
    def completion_percentage(self) -> float | None:
        if not self.passing_attempts or self.passing_completions is None:
            return None
        return self.passing_completions / self.passing_attempts * 100.0

    @property
    def yards_per_carry(self) -> float | None:
        if not self.rushing_attempts or self.rushing_yards is None:
            return None
        return self.rushing_yards / self.rushing_attempts


@dataclass(frozen=True, slots=True)
class Player:
    id: str
    name: str
    position: str
    jersey_number: str | None = None
    photo_url: str | None = None
    stats: PlayerStats | None = None


@dataclass(frozen=True, slots=True)
class TeamRoster:
    team: Team
    players: tuple[Player, ...] = ()
    season: int = 0


@dataclass(frozen=True, slots=True)
class Article:
    title: str
    content: str
    source: str
    published_date: datetime
    team_abbreviations: tuple[str, ...] = field(default_factory=tuple)
    url: str | None = None

    @property
    def id(self) -> str:
        return f"{self.title}-{self.published_date.timestamp()}"


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    error: str
    message: str
    reason: str | None = None

    @property
    def text(self) -> str:
        return self.reason or self.message or self.error
