"""
Prediction server REST client.

Single aiohttp.ClientSession shared by every screen and service.
Decodes JSON into models.dto records and funnels every failure mode into
ApiError (see api.errors). No retries: retrying is a caller decision.

Timeouts:
  30s to first byte (sock_read)
  60s for the whole request (total)
"""

from __future__ import annotations
import asyncio
import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import aiohttp

from api import wire
from api.errors import ApiError
from models.dto import (
    Article,
    CurrentWeek,
    Game,
    PredictionRequest,
    PredictionResult,
    Team,
    TeamDetail,
    TeamRoster,
)
from utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REQUEST_TIMEOUT_S = 30.0
DEFAULT_RESOURCE_TIMEOUT_S = 60.0


class PredictorApiClient:
    """
    Async client for the prediction server's /api/v1 endpoints.

    Call startup() before use and shutdown() when the process exits.
    Every public method accepts an optional CancellationToken; a token that
    fires before the response is decoded turns the call into
    ApiError(CANCELLED) so callers can drop it silently.
    """

    def __init__(
        self,
        base_url: str,
        request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
        resource_timeout_s: float = DEFAULT_RESOURCE_TIMEOUT_S,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._request_timeout_s = request_timeout_s
        self._resource_timeout_s = resource_timeout_s
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def startup(self) -> None:
        """Create the shared session. Must be awaited before any other method."""
        if self._session is not None:
            return
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=10, keepalive_timeout=60),
            timeout=aiohttp.ClientTimeout(
                total=self._resource_timeout_s,
                sock_read=self._request_timeout_s,
            ),
            headers={"Accept": "application/json"},
        )
        log.info("Prediction API client ready base_url=%s", self._base_url)

    async def shutdown(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict | None = None,
        token: CancellationToken | None = None,
    ) -> Any:
        assert self._session, "Call startup() first"
        if token is not None:
            token.raise_if_cancelled(path)

        sent_at = time.monotonic_ns()
        try:
            async with self._session.request(
                method, self._url(path), params=params, json=json_body
            ) as resp:
                status = resp.status
                raw = await resp.read()
        except asyncio.TimeoutError as exc:
            raise ApiError.transport("request timed out", path=path) from exc
        except aiohttp.ClientError as exc:
            raise ApiError.transport(str(exc) or type(exc).__name__, path=path) from exc

        latency_ms = (time.monotonic_ns() - sent_at) / 1_000_000
        log.debug("%s %s -> %d in %.2fms", method, path, status, latency_ms)

        # The response may have arrived after the caller moved on
        if token is not None:
            token.raise_if_cancelled(path)

        ok = 200 <= status < 300
        try:
            body = json.loads(raw.decode("utf-8")) if raw else None
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            if not ok:
                raise ApiError.transport(f"HTTP {status}", status=status, path=path) from exc
            raise ApiError.decode(f"invalid JSON: {exc}", path=path) from exc

        payload = wire.error_payload_from_json(body)
        if payload is not None:
            raise ApiError.server(payload.text, status=status, path=path)
        if not ok:
            raise ApiError.transport(f"HTTP {status}", status=status, path=path)
        return body

    async def _call(
        self,
        context: str,
        method: str,
        path: str,
        parser: Callable[[Any], T],
        *,
        params: dict[str, Any] | None = None,
        json_body: dict | None = None,
        token: CancellationToken | None = None,
    ) -> T:
        try:
            body = await self._request(method, path, params=params, json_body=json_body, token=token)
            try:
                return parser(body)
            except (KeyError, TypeError, ValueError) as exc:
                raise ApiError.decode(f"{type(exc).__name__}: {exc}", path=path) from exc
        except ApiError as exc:
            if exc.is_cancelled:
                log.debug("%s: cancelled (%s)", context, exc.reason)
            else:
                log.warning("%s: %s error on %s: %s", context, exc.kind.value, path, exc.reason)
            raise

    # ------------------------------------------------------------------
    # Public API methods
    # ------------------------------------------------------------------

    async def fetch_teams(self, token: CancellationToken | None = None) -> list[Team]:
        return await self._call(
            "Failed to fetch NFL teams", "GET", "/teams",
            lambda body: wire.list_from_json(body, wire.team_from_json, "teams"),
            token=token,
        )

    async def fetch_team_detail(self, team_id: str, token: CancellationToken | None = None) -> TeamDetail:
        return await self._call(
            f"Failed to fetch team details for {team_id}", "GET", f"/teams/{quote(team_id)}",
            wire.team_detail_from_json,
            token=token,
        )

    async def fetch_upcoming_games(self, token: CancellationToken | None = None) -> list[Game]:
        return await self._call(
            "Failed to fetch upcoming games", "GET", "/upcoming",
            lambda body: wire.list_from_json(body, wire.game_from_json, "upcoming games"),
            token=token,
        )

    async def fetch_current_week(self, token: CancellationToken | None = None) -> CurrentWeek:
        return await self._call(
            "Failed to fetch current week games", "GET", "/current-week",
            wire.current_week_from_json,
            token=token,
        )

    async def make_prediction(
        self,
        home: str,
        away: str,
        season: int | None = None,
        token: CancellationToken | None = None,
    ) -> PredictionResult:
        """
        POST /predictions for (home, away, season).
        season defaults to the current calendar year.
        """
        request = PredictionRequest(
            home_team_abbreviation=home,
            away_team_abbreviation=away,
            season=season if season is not None else datetime.now().year,
        )

        def parse(body: Any) -> PredictionResult:
            # Some deployments answer with the display shape directly
            if isinstance(body, dict) and "predicted_winner" in body:
                return wire.prediction_result_from_json(body)
            return wire.to_prediction_result(wire.prediction_from_json(body), home, away)

        return await self._call(
            f"Failed to make prediction for {away} @ {home}", "POST", "/predictions",
            parse,
            json_body=request.to_json(),
            token=token,
        )

    async def fetch_roster(
        self,
        team: str,
        season: int | None = None,
        token: CancellationToken | None = None,
    ) -> TeamRoster:
        season = season if season is not None else datetime.now().year
        return await self._call(
            f"Failed to fetch roster for {team}", "GET", f"/teams/{quote(team)}/roster",
            wire.roster_from_json,
            params={"season": season},
            token=token,
        )

    async def fetch_news(
        self,
        team: str,
        limit: int = 10,
        token: CancellationToken | None = None,
    ) -> list[Article]:
        return await self._call(
            f"Failed to fetch news for {team}", "GET", "/news",
            lambda body: wire.list_from_json(body, wire.article_from_json, "news"),
            params={"team": team, "limit": limit},
            token=token,
        )
