from __future__ import annotations
import asyncio

from api.errors import ApiError
from services.data_manager import DataManager
from services.prediction_screen import PredictionScreen

from conftest import FakeClient, Gate, Scripted, make_game, make_prediction


class MatchupPredictor:
    """make_prediction stand-in keyed by (home, away); gated matchups wait."""

    def __init__(self, gates=None, errors=None) -> None:
        self.gates = gates or {}
        self.errors = errors or {}
        self.calls = []

    async def __call__(self, home, away, season=None, token=None):
        self.calls.append((home, away, season))
        if (home, away) in self.gates:
            return await self.gates[(home, away)].wait()
        if (home, away) in self.errors:
            raise self.errors[(home, away)]
        return make_prediction(home)


def _screen(predictor, games=()):
    client = FakeClient(games=games)
    client.make_prediction = predictor
    return PredictionScreen(DataManager(client), batch_delay_s=0)


def test_quick_second_selection_wins():
    async def scenario():
        slow = Gate(make_prediction("KC"), stubborn=True)
        predictor = MatchupPredictor(gates={("KC", "BUF"): slow})
        screen = _screen(predictor)
        game_a = make_game("a", home="KC", away="BUF")
        game_b = make_game("b", home="SF", away="DAL")

        screen.select_game(game_a)
        await slow.started.wait()
        await screen.select_game(game_b)

        slow.release.set()
        await slow.returned.wait()
        await asyncio.sleep(0)

        assert screen.current_prediction.predicted_winner == "SF"
        assert screen.prediction_error is None
        assert screen.prediction_for("b").predicted_winner == "SF"
        assert screen.prediction_for("a") is None
        assert screen.selected_game is game_b
        assert screen.prediction_slot.outcome_count == 1

    asyncio.run(scenario())


def test_selection_uses_game_season():
    async def scenario():
        predictor = MatchupPredictor()
        screen = _screen(predictor)

        await screen.select_game(make_game("a", home="KC", away="BUF"))

        assert predictor.calls == [("KC", "BUF", 2025)]

    asyncio.run(scenario())


def test_server_reason_is_shown_for_failed_prediction():
    async def scenario():
        predictor = MatchupPredictor(errors={("KC", "XYZ"): ApiError.server("Unknown team XYZ", status=400)})
        screen = _screen(predictor)

        await screen.predict("KC", "XYZ", 2025)

        assert screen.current_prediction is None
        assert screen.prediction_error == "Unknown team XYZ"

    asyncio.run(scenario())


def test_predict_week_filters_upcoming_games():
    async def scenario():
        games = [
            make_game("w1-a", home="KC", away="BUF", week=1),
            make_game("w2-a", home="SF", away="DAL", week=2),
            make_game("w1-b", home="PHI", away="NYG", week=1),
        ]
        predictor = MatchupPredictor(errors={("PHI", "NYG"): ApiError.transport("request timed out")})
        screen = _screen(predictor, games)

        task = await screen.predict_week(1)
        await task

        assert set(screen.predictions) == {"w1-a"}
        assert screen.batch.failures == {"w1-b": "Network error: request timed out"}
        assert screen.batch.progress == 1.0
        assert [c[:2] for c in predictor.calls] == [("KC", "BUF"), ("PHI", "NYG")]

    asyncio.run(scenario())


def test_cancel_all_is_silent():
    async def scenario():
        gate = Gate(make_prediction("KC"))
        predictor = MatchupPredictor(gates={("KC", "BUF"): gate})
        screen = _screen(predictor, [make_game("a", home="KC", away="BUF")])

        screen.select_game(make_game("a", home="KC", away="BUF"))
        await gate.started.wait()
        screen.cancel_all()
        await screen.prediction_slot.wait()

        assert screen.current_prediction is None
        assert screen.prediction_error is None
        assert not screen.prediction_slot.is_loading

    asyncio.run(scenario())


def test_games_for_week_uses_cached_games():
    async def scenario():
        client = FakeClient(games=Scripted([make_game("g1", week=3), make_game("g2", week=4)]))
        screen = PredictionScreen(DataManager(client))

        assert [g.id for g in await screen.games_for_week(3)] == ["g1"]
        assert [g.id for g in await screen.games_for_week(4)] == ["g2"]
        assert client.fetch_upcoming_games.call_count == 1

    asyncio.run(scenario())


def test_cancel_all_while_week_games_load_starts_nothing():
    async def scenario():
        gate = Gate([make_game("a", home="KC", away="BUF"), make_game("b", home="SF", away="DAL")])
        predictor = MatchupPredictor()
        screen = _screen(predictor, Scripted(gate))

        pending = asyncio.create_task(screen.predict_week(1))
        await gate.started.wait()
        screen.cancel_all()
        gate.release.set()

        assert await pending is None
        assert predictor.calls == []
        assert screen.predictions == {}
        assert not screen.batch.is_running

    asyncio.run(scenario())


def test_newer_week_request_replaces_one_still_loading():
    async def scenario():
        gate = Gate([make_game("w1", week=1), make_game("w2", home="SF", away="DAL", week=2)])
        predictor = MatchupPredictor()
        screen = _screen(predictor, Scripted(gate))

        first = asyncio.create_task(screen.predict_week(1))
        await gate.started.wait()
        second = asyncio.create_task(screen.predict_week(2))
        await asyncio.sleep(0)
        gate.release.set()

        assert await first is None
        await (await second)
        assert set(screen.predictions) == {"w2"}
        assert [c[:2] for c in predictor.calls] == [("SF", "DAL")]

    asyncio.run(scenario())
