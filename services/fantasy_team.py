"""
Fantasy roster manager.

Loads the roster once at construction and writes it back to the key-value
store after every successful mutation. Slot limits live in
models.state.POSITION_LIMITS.
"""

from __future__ import annotations
import json
import logging
from dataclasses import asdict
from typing import Any

from api.wire import player_stats_from_json
from models.dto import Player, Team
from models.state import POSITION_LIMITS, FantasyPlayer, FantasyRoster
from storage.kv_store import ROSTER_KEY, KeyValueStore

log = logging.getLogger(__name__)


def roster_to_json(roster: FantasyRoster) -> str:
    return json.dumps({pos: [asdict(p) for p in players] for pos, players in roster.slots.items()})


def _player_from_dict(raw: dict[str, Any]) -> FantasyPlayer:
    stats = raw.get("stats")
    return FantasyPlayer(
        id=str(raw["id"]),
        name=str(raw["name"]),
        position=str(raw["position"]),
        team_abbreviation=str(raw["team_abbreviation"]),
        team_name=str(raw["team_name"]),
        jersey_number=raw.get("jersey_number"),
        photo_url=raw.get("photo_url"),
        stats=player_stats_from_json(stats) if stats is not None else None,
    )


def roster_from_json(blob: str) -> FantasyRoster:
    raw = json.loads(blob)
    roster = FantasyRoster()
    for pos, players in raw.items():
        if pos not in POSITION_LIMITS:
            log.warning("Dropping saved players in unknown position %s", pos)
            continue
        for item in players:
            # add() re-checks limits and duplicates on data we did not write this session
            if not roster.add(_player_from_dict(item)):
                log.warning("Dropping saved player %s: slot %s full or duplicate", item.get("id"), pos)
    return roster


class FantasyTeamManager:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self.roster = self._load()
        self.roster_changes = 0

    def _load(self) -> FantasyRoster:
        blob = self._store.get(ROSTER_KEY)
        if blob is None:
            return FantasyRoster()
        try:
            return roster_from_json(blob)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning("Saved roster unreadable, starting empty: %s", exc)
            return FantasyRoster()

    def _save(self) -> None:
        self.roster_changes += 1
        self._store.set(ROSTER_KEY, roster_to_json(self.roster))

    def add_player(self, player: Player, team: Team) -> bool:
        """False (roster untouched) for unknown positions, full slots and duplicates."""
        if not self.roster.add(FantasyPlayer.make(player, team)):
            log.info("Cannot add %s (%s): slot full or already rostered", player.name, player.position)
            return False
        self._save()
        return True

    def remove_player(self, player_id: str) -> None:
        if self.roster.remove(player_id):
            self._save()

    def is_on_roster(self, player_id: str) -> bool:
        return self.roster.contains(player_id)

    def is_position_full(self, position: str) -> bool:
        return self.roster.is_position_full(position)

    def clear_roster(self) -> None:
        self.roster = FantasyRoster()
        self._save()

    @property
    def projected_points(self) -> float:
        return sum(p.projected_points for p in self.roster.all_players)
