"""
Mutable client-owned state.
These objects are owned by exactly one service each and are only mutated
from coroutines running on the event loop.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from models.dto import Player, PlayerStats, Team


class ResourceKind(str, Enum):
    TEAMS = "teams"
    UPCOMING_GAMES = "upcoming_games"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


# Seconds before a cached collection is considered stale
DEFAULT_FRESHNESS_S: dict[ResourceKind, float] = {
    ResourceKind.TEAMS: 300.0,
    ResourceKind.UPCOMING_GAMES: 180.0,
}


@dataclass(slots=True)
class ResourceState:
    """
    Cache entry for one resource kind. Owned by DataManager.
    items is replaced wholesale on success, never edited in place.
    """
    kind: ResourceKind
    freshness_s: float
    items: list[Any] = field(default_factory=list)
    last_fetched: float | None = None
    is_loading: bool = False
    error: str | None = None

    def is_fresh(self, now: float) -> bool:
        if self.last_fetched is None:
            return False
        return now - self.last_fetched < self.freshness_s

    def apply_success(self, items: list[Any], now: float) -> None:
        self.items = items
        self.last_fetched = now
        self.is_loading = False
        self.error = None

    def apply_failure(self, message: str) -> None:
        self.is_loading = False
        self.error = message

    def reset(self) -> None:
        self.items = []
        self.last_fetched = None
        self.is_loading = False
        self.error = None


# ---------------------------------------------------------------------------
# Fantasy roster
# ---------------------------------------------------------------------------

# Position -> max players in that slot
POSITION_LIMITS: dict[str, int] = {
    "QB": 2,
    "RB": 3,
    "WR": 3,
    "TE": 2,
    "K": 1,
    "DEF": 1,
}


@dataclass(frozen=True, slots=True)
class FantasyPlayer:
    id: str
    name: str
    position: str
    team_abbreviation: str
    team_name: str
    jersey_number: str | None = None
    photo_url: str | None = None
    stats: PlayerStats | None = None

    @staticmethod
    def make(player: Player, team: Team) -> "FantasyPlayer":
        return FantasyPlayer(
            id=player.id,
            name=player.name,
            position=player.position,
            team_abbreviation=team.abbreviation,
            team_name=team.name,
            jersey_number=player.jersey_number,
            photo_url=player.photo_url,
            stats=player.stats,
        )

    @property
    def projected_points(self) -> float:
        """Standard scoring, half-PPR for pass catchers."""
        s = self.stats
        if s is None:
            return 0.0
        points = 0.0
        if self.position == "QB":
            points += (s.passing_yards or 0) * 0.04      # 1 point per 25 yards
            points += (s.passing_touchdowns or 0) * 4.0
            points -= (s.passing_interceptions or 0) * 2.0
            points += (s.rushing_yards or 0) * 0.1
            points += (s.rushing_touchdowns or 0) * 6.0
        elif self.position == "RB":
            points += (s.rushing_yards or 0) * 0.1
            points += (s.rushing_touchdowns or 0) * 6.0
            points += (s.receiving_yards or 0) * 0.1
            points += (s.receiving_touchdowns or 0) * 6.0
            points += (s.receptions or 0) * 0.5
        elif self.position in ("WR", "TE"):
            points += (s.receiving_yards or 0) * 0.1
            points += (s.receiving_touchdowns or 0) * 6.0
            points += (s.receptions or 0) * 0.5
        return points


@dataclass(slots=True)
class FantasyRoster:
    """
    Position slots -> players. Owned by FantasyTeamManager.
    Invariants: a player id appears in at most one slot and no slot exceeds
    POSITION_LIMITS.
    """
    slots: dict[str, list[FantasyPlayer]] = field(
        default_factory=lambda: {pos: [] for pos in POSITION_LIMITS}
    )

    @property
    def all_players(self) -> list[FantasyPlayer]:
        return [p for pos in POSITION_LIMITS for p in self.slots.get(pos, [])]

    @property
    def total_players(self) -> int:
        return sum(len(players) for players in self.slots.values())

    @property
    def max_players(self) -> int:
        return sum(POSITION_LIMITS.values())

    @property
    def is_full(self) -> bool:
        return self.total_players >= self.max_players

    def count(self, position: str) -> int:
        return len(self.slots.get(position, []))

    def contains(self, player_id: str) -> bool:
        return any(p.id == player_id for p in self.all_players)

    def is_position_full(self, position: str) -> bool:
        limit = POSITION_LIMITS.get(position)
        if limit is None:
            return True   # Unknown positions can never take a player
        return self.count(position) >= limit

    def add(self, player: FantasyPlayer) -> bool:
        if self.is_position_full(player.position) or self.contains(player.id):
            return False
        self.slots.setdefault(player.position, []).append(player)
        return True

    def remove(self, player_id: str) -> bool:
        removed = False
        for pos, players in self.slots.items():
            kept = [p for p in players if p.id != player_id]
            if len(kept) != len(players):
                self.slots[pos] = kept
                removed = True
        return removed
