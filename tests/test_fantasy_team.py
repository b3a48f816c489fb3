from __future__ import annotations
import json

import pytest

from models.dto import Player, PlayerStats
from models.state import POSITION_LIMITS, FantasyRoster
from services.fantasy_team import FantasyTeamManager
from storage.kv_store import ROSTER_KEY, KeyValueStore

from conftest import make_team

KC = make_team("KC", "Kansas City Chiefs")


def _player(pid: str, position: str, stats: PlayerStats | None = None) -> Player:
    return Player(id=pid, name=f"Player {pid}", position=position, jersey_number="10", stats=stats)


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(tmp_path / "state.json")


def test_third_quarterback_is_rejected(store):
    manager = FantasyTeamManager(store)

    assert manager.add_player(_player("qb1", "QB"), KC)
    assert manager.add_player(_player("qb2", "QB"), KC)
    assert manager.is_position_full("QB")
    assert not manager.add_player(_player("qb3", "QB"), KC)

    assert manager.roster.count("QB") == 2
    assert not manager.is_on_roster("qb3")
    assert manager.roster_changes == 2


def test_duplicate_and_unknown_position_are_rejected(store):
    manager = FantasyTeamManager(store)

    assert manager.add_player(_player("wr1", "WR"), KC)
    assert not manager.add_player(_player("wr1", "WR"), KC)
    assert not manager.add_player(_player("ol1", "OL"), KC)
    assert manager.roster.total_players == 1


def test_removing_absent_player_is_a_no_op(store):
    manager = FantasyTeamManager(store)
    manager.add_player(_player("rb1", "RB"), KC)

    manager.remove_player("nobody")
    assert manager.roster.total_players == 1
    assert manager.roster_changes == 1

    manager.remove_player("rb1")
    assert manager.roster.total_players == 0
    assert manager.roster_changes == 2


def test_roster_persists_across_instances(tmp_path):
    path = tmp_path / "state.json"
    stats = PlayerStats(receiving_yards=1200, receiving_touchdowns=10, receptions=90)
    manager = FantasyTeamManager(KeyValueStore(path))
    manager.add_player(_player("wr1", "WR", stats), KC)
    manager.add_player(_player("k1", "K"), KC)

    reloaded = FantasyTeamManager(KeyValueStore(path))

    assert reloaded.is_on_roster("wr1")
    assert reloaded.is_on_roster("k1")
    saved = reloaded.roster.slots["WR"][0]
    assert saved.team_abbreviation == "KC"
    assert saved.team_name == "Kansas City Chiefs"
    assert saved.stats == stats


def test_projected_points(store):
    manager = FantasyTeamManager(store)
    qb = PlayerStats(passing_yards=250, passing_touchdowns=2, passing_interceptions=1, rushing_yards=20)
    wr = PlayerStats(receiving_yards=100, receiving_touchdowns=1, receptions=8)
    manager.add_player(_player("qb1", "QB", qb), KC)
    manager.add_player(_player("wr1", "WR", wr), KC)
    manager.add_player(_player("k1", "K"), KC)

    # QB: 10 + 8 - 2 + 2 ; WR: 10 + 6 + 4
    assert manager.projected_points == pytest.approx(38.0)


def test_corrupt_saved_roster_starts_empty(store):
    store.set(ROSTER_KEY, "{not json")
    manager = FantasyTeamManager(store)
    assert manager.roster.total_players == 0


def test_saved_roster_over_limit_is_trimmed(store):
    entry = {"name": "x", "position": "K", "team_abbreviation": "KC", "team_name": "Chiefs"}
    store.set(ROSTER_KEY, json.dumps({
        "K": [{**entry, "id": "k1"}, {**entry, "id": "k2"}],
        "LS": [{**entry, "id": "ls1", "position": "LS"}],
    }))

    manager = FantasyTeamManager(store)

    assert [p.id for p in manager.roster.all_players] == ["k1"]


def test_clear_roster(store):
    manager = FantasyTeamManager(store)
    manager.add_player(_player("te1", "TE"), KC)
    manager.clear_roster()

    assert manager.roster.total_players == 0
    assert FantasyTeamManager(store).roster.total_players == 0


def test_roster_capacity():
    roster = FantasyRoster()
    assert roster.max_players == sum(POSITION_LIMITS.values()) == 12
    assert not roster.is_full
    assert roster.is_position_full("OL")


def test_store_ignores_unreadable_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2, 3]")
    store = KeyValueStore(path)
    assert store.keys() == []

    store.set("a", "1")
    store.set("b", "2")
    store.delete("a")
    assert KeyValueStore(path).keys() == ["b"]
    assert KeyValueStore(path).get("b") == "2"
