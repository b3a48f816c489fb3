"""
Controller behind the prediction screen.

Owns the screen-scoped predictions dict (game_id -> PredictionResult), one
RequestSlot for "the prediction currently shown" and one batch runner for
"predict the whole week". Both share the DataManager's transport.
"""

from __future__ import annotations
import asyncio
import logging
from datetime import datetime

from bus.event_bus import EventBus
from models.dto import Game, PredictionResult
from services.batch_predictor import DEFAULT_INTER_REQUEST_DELAY_S, BatchPredictionRunner
from services.data_manager import DataManager
from services.request_slot import RequestSlot
from utils.cancellation import CancellationToken

log = logging.getLogger(__name__)


class PredictionScreen:
    def __init__(
        self,
        data: DataManager,
        bus: EventBus | None = None,
        batch_delay_s: float = DEFAULT_INTER_REQUEST_DELAY_S,
    ) -> None:
        self._data = data
        self.predictions: dict[str, PredictionResult] = {}
        self.selected_game: Game | None = None
        self.prediction_slot: RequestSlot[PredictionResult] = RequestSlot("prediction", bus=bus)
        self.batch = BatchPredictionRunner(
            self._predict_game,
            bus=bus,
            inter_request_delay_s=batch_delay_s,
            results=self.predictions,
        )
        self._week_token: CancellationToken | None = None

    @property
    def current_prediction(self) -> PredictionResult | None:
        return self.prediction_slot.value

    @property
    def prediction_error(self) -> str | None:
        return self.prediction_slot.error

    def prediction_for(self, game_id: str) -> PredictionResult | None:
        return self.predictions.get(game_id)

    def select_game(self, game: Game) -> asyncio.Task:
        """User tapped a game: predict it, replacing any pending prediction."""
        self.selected_game = game

        def remember(result: PredictionResult) -> None:
            self.predictions[game.id] = result

        return self.prediction_slot.run(
            lambda token: self._predict_game(game, token),
            on_success=remember,
        )

    def predict(self, home: str, away: str, season: int | None = None) -> asyncio.Task:
        """Ad-hoc matchup picked with the team pickers."""
        self.selected_game = None
        return self.prediction_slot.run(
            lambda token: self._data.make_prediction(home, away, season, token=token)
        )

    async def games_for_week(self, week: int) -> list[Game]:
        games = await self._data.load_upcoming_games()
        return [g for g in games if g.week == week]

    async def predict_week(self, week: int) -> asyncio.Task | None:
        """
        Load the week's games, then start a batch over them.
        Returns None when cancel_all() or a newer predict_week() lands while
        the games are still loading.
        """
        if self._week_token is not None:
            self._week_token.cancel("superseded")
        token = self._week_token = CancellationToken(name=f"week-{week}")
        games = await self.games_for_week(week)
        if token.is_cancelled:
            log.info("Week %d prediction dropped (%s)", week, token.reason)
            return None
        log.info("Predicting %d game(s) for week %d", len(games), week)
        return self.batch.start(games)

    def cancel_all(self) -> None:
        self.prediction_slot.cancel()
        if self._week_token is not None:
            self._week_token.cancel("cancelled")
        self.batch.cancel()

    async def _predict_game(self, game: Game, token: CancellationToken) -> PredictionResult:
        season = game.season if game.season is not None else datetime.now().year
        return await self._data.make_prediction(
            game.home_team.abbreviation,
            game.away_team.abbreviation,
            season,
            token=token,
        )
