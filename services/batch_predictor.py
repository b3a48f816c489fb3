"""
BatchPredictionRunner: predicts every game in a week, one at a time.

Requests are strictly sequential with a fixed pause between them; the
prediction server rate-limits bursts. A failed game is logged, recorded in
failures and skipped; it never aborts the batch. Cancellation is checked at
every item boundary and after every await, and stops the run immediately
with progress left where it was.

Starting a new run cancels the active one (same single-occupancy rule as
RequestSlot).
"""

from __future__ import annotations
import asyncio
import itertools
import logging
from typing import AsyncIterator, Awaitable, Callable, Sequence

from api.errors import ApiError
from bus.event_bus import EventBus
from models.dto import Game, PredictionResult
from models.events import BatchProgress
from utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

PredictFn = Callable[[Game, CancellationToken], Awaitable[PredictionResult]]

DEFAULT_INTER_REQUEST_DELAY_S = 0.1


class BatchPredictionRunner:
    def __init__(
        self,
        predict: PredictFn,
        bus: EventBus | None = None,
        inter_request_delay_s: float = DEFAULT_INTER_REQUEST_DELAY_S,
        results: dict[str, PredictionResult] | None = None,
    ) -> None:
        self._predict = predict
        self._bus = bus
        self._delay_s = inter_request_delay_s
        self._run_ids = itertools.count(1)
        self._run_id = 0
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self._progress = 0.0
        # game_id -> prediction; kept across runs, may be shared with a screen
        self.results: dict[str, PredictionResult] = results if results is not None else {}
        # game_id -> failure message for the current run
        self.failures: dict[str, str] = {}

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, games: Sequence[Game]) -> asyncio.Task:
        self.cancel()
        self._run_id = next(self._run_ids)
        token = CancellationToken(name=f"batch-{self._run_id}")
        self._token = token
        self._progress = 0.0
        self.failures = {}
        log.info("Batch run %d starting: %d game(s)", self._run_id, len(games))
        self._task = asyncio.create_task(
            self._run(list(games), token, self._run_id), name=f"batch-predict-{self._run_id}"
        )
        return self._task

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel("batch cancelled")
        if self._task is not None and not self._task.done():
            log.info("Cancelling batch run %d at progress %.2f", self._run_id, self._progress)
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def predict_all(
        self,
        games: Sequence[Game],
        token: CancellationToken,
    ) -> AsyncIterator[tuple[str, PredictionResult]]:
        """
        Yield (game_id, prediction) for each game that succeeds, in input order.
        progress advances after every game, including failed ones.
        """
        total = len(games)
        if total == 0:
            self._set_progress(1.0)
            return

        for index, game in enumerate(games):
            if token.is_cancelled:
                return
            if index > 0 and self._delay_s > 0:
                await asyncio.sleep(self._delay_s)
                if token.is_cancelled:
                    return

            result: PredictionResult | None = None
            try:
                result = await self._predict(game, token)
            except ApiError as exc:
                if exc.is_cancelled or token.is_cancelled:
                    return
                self._record_failure(game, exc.user_message)
            except Exception as exc:
                if token.is_cancelled:
                    return
                log.exception("Batch prediction for game %s raised: %s", game.id, exc)
                self._record_failure(game, str(exc) or type(exc).__name__)

            if token.is_cancelled:
                return
            self._set_progress((index + 1) / total)
            self._publish(index + 1, total, game.id, result)
            if result is not None:
                yield game.id, result

    async def _run(self, games: list[Game], token: CancellationToken, run_id: int) -> None:
        produced = 0
        try:
            async for game_id, prediction in self.predict_all(games, token):
                self.results[game_id] = prediction
                produced += 1
        except asyncio.CancelledError:
            if token.is_cancelled:
                log.info("Batch run %d stopped after %d prediction(s)", run_id, produced)
                return
            raise
        if token.is_cancelled:
            log.info("Batch run %d stopped after %d prediction(s)", run_id, produced)
        else:
            log.info(
                "Batch run %d finished: %d ok, %d failed",
                run_id, produced, len(self.failures),
            )

    def _record_failure(self, game: Game, message: str) -> None:
        log.warning(
            "Batch prediction failed for %s @ %s (game %s): %s",
            game.away_team.abbreviation, game.home_team.abbreviation, game.id, message,
        )
        self.failures[game.id] = message

    def _set_progress(self, value: float) -> None:
        self._progress = value

    def _publish(self, completed: int, total: int, game_id: str, result: PredictionResult | None) -> None:
        if self._bus is None:
            return
        self._bus.publish_batch_progress(
            BatchProgress(
                run_id=self._run_id,
                completed=completed,
                total=total,
                game_id=game_id,
                prediction=result,
            )
        )
