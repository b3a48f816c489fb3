"""
DataManager: shared resource cache & fetch orchestrator.

One instance per process, built in main.py and handed to every screen that
needs teams or upcoming games. Guarantees, per resource kind:

  - a fresh, non-empty cache is served without touching the network
  - at most one fetch in flight; concurrent callers wait on that same fetch
  - force_reload supersedes the in-flight fetch; the superseded fetch can
    never overwrite newer state or report an error
  - failures keep the previous (stale) collection and record an error for
    that kind only

All state lives on the event loop; only coroutines scheduled on it mutate
ResourceState, so readers never see a half-applied update.
"""

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from api.errors import ApiError
from bus.event_bus import EventBus
from models.dto import Game, PredictionResult, Team
from models.events import ResourceUpdate
from models.state import DEFAULT_FRESHNESS_S, ResourceKind, ResourceState
from utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

Fetcher = Callable[..., Awaitable[list[Any]]]


@dataclass(slots=True)
class _InFlight:
    token: CancellationToken
    task: asyncio.Task


class DataManager:
    """
    Coordinates teams / upcoming-games fetches through the shared client.

    client must provide fetch_teams(token=...), fetch_upcoming_games(token=...)
    and make_prediction(home, away, season, token=...), i.e. PredictorApiClient.
    """

    def __init__(
        self,
        client: Any,
        bus: EventBus | None = None,
        freshness: Mapping[ResourceKind, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._bus = bus
        self._clock = clock
        windows = dict(DEFAULT_FRESHNESS_S)
        if freshness:
            windows.update(freshness)
        self._states: dict[ResourceKind, ResourceState] = {
            kind: ResourceState(kind=kind, freshness_s=windows[kind]) for kind in ResourceKind
        }
        self._fetchers: dict[ResourceKind, Fetcher] = {
            ResourceKind.TEAMS: client.fetch_teams,
            ResourceKind.UPCOMING_GAMES: client.fetch_upcoming_games,
        }
        self._inflight: dict[ResourceKind, _InFlight] = {}

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def teams(self) -> list[Team]:
        return self._states[ResourceKind.TEAMS].items

    @property
    def upcoming_games(self) -> list[Game]:
        return self._states[ResourceKind.UPCOMING_GAMES].items

    def state(self, kind: ResourceKind) -> ResourceState:
        return self._states[kind]

    def error(self, kind: ResourceKind) -> str | None:
        return self._states[kind].error

    def is_loading(self, kind: ResourceKind) -> bool:
        return self._states[kind].is_loading

    def is_fetching(self, kind: ResourceKind) -> bool:
        return kind in self._inflight

    def team_by_abbreviation(self, abbreviation: str) -> Team | None:
        for team in self.teams:
            if team.abbreviation == abbreviation:
                return team
        return None

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def ensure_fresh(self, kind: ResourceKind, force_reload: bool = False) -> list[Any]:
        """
        Return the collection for kind, fetching only when needed.

        Fresh non-empty cache -> returned immediately.
        Fetch already running  -> wait for it (coalesced).
        force_reload           -> supersede any running fetch and start anew.
        """
        state = self._states[kind]
        if not force_reload and state.items and state.is_fresh(self._clock()):
            return state.items

        if force_reload or kind not in self._inflight:
            self._start_fetch(kind)
        else:
            log.debug("Coalescing %s request onto in-flight fetch", kind.value)
        return await self._follow(kind)

    async def load_teams(self, force_reload: bool = False) -> list[Team]:
        return await self.ensure_fresh(ResourceKind.TEAMS, force_reload)

    async def load_upcoming_games(self, force_reload: bool = False) -> list[Game]:
        return await self.ensure_fresh(ResourceKind.UPCOMING_GAMES, force_reload)

    async def make_prediction(
        self,
        home: str,
        away: str,
        season: int | None = None,
        token: CancellationToken | None = None,
    ) -> PredictionResult:
        return await self._client.make_prediction(home, away, season, token=token)

    def clear_cache(self) -> None:
        """Drop every cached collection; the next ensure_fresh refetches."""
        # A fetch started before the clear must not repopulate the cache
        self._cancel_inflight("cache cleared")
        for state in self._states.values():
            state.reset()
        log.info("DataManager cache cleared")

    async def shutdown(self) -> None:
        entries = self._cancel_inflight("shutdown")
        for state in self._states.values():
            state.is_loading = False
        await asyncio.gather(*(e.task for e in entries), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel_inflight(self, reason: str) -> list[_InFlight]:
        entries = list(self._inflight.values())
        self._inflight.clear()
        for entry in entries:
            entry.token.cancel(reason)
            entry.task.cancel()
        return entries

    def _start_fetch(self, kind: ResourceKind) -> None:
        previous = self._inflight.get(kind)
        if previous is not None:
            log.info("Superseding in-flight %s fetch", kind.value)
            previous.token.cancel("superseded")
            previous.task.cancel()

        token = CancellationToken(name=f"fetch-{kind.value}")
        self._states[kind].is_loading = True
        task = asyncio.create_task(self._fetch(kind, token), name=f"fetch-{kind.value}")
        self._inflight[kind] = _InFlight(token=token, task=task)

    async def _follow(self, kind: ResourceKind) -> list[Any]:
        """
        Wait until no fetch for kind is in flight, following supersessions.
        shield() keeps one caller's cancellation from killing the shared fetch.
        """
        while (entry := self._inflight.get(kind)) is not None:
            try:
                await asyncio.shield(entry.task)
            except asyncio.CancelledError:
                me = asyncio.current_task()
                superseded = entry.token.is_cancelled and entry.task.cancelled()
                if not superseded or (me is not None and me.cancelling()):
                    raise
                # Superseded before its first step ran; follow the replacement
            if self._inflight.get(kind) is entry:
                del self._inflight[kind]
        return self._states[kind].items

    async def _fetch(self, kind: ResourceKind, token: CancellationToken) -> None:
        state = self._states[kind]
        fetcher = self._fetchers[kind]
        started = self._clock()
        try:
            items = list(await fetcher(token=token))
        except asyncio.CancelledError:
            if token.is_cancelled:
                log.debug("%s fetch cancelled (%s)", kind.value, token.reason)
                return
            raise
        except ApiError as exc:
            if token.is_cancelled or exc.is_cancelled:
                log.debug("%s fetch dropped after cancellation", kind.value)
                return
            state.apply_failure(f"Failed to load {kind.label}: {exc.user_message}")
            log.warning("%s fetch failed (%s): %s", kind.value, exc.kind.value, exc.reason)
            self._publish(state)
            return
        except Exception as exc:
            if token.is_cancelled:
                log.debug("%s fetch dropped after cancellation", kind.value)
                return
            log.exception("%s fetch raised unexpectedly", kind.value)
            state.apply_failure(f"Failed to load {kind.label}: {exc}")
            self._publish(state)
            return
        finally:
            current = self._inflight.get(kind)
            if current is not None and current.token is token:
                del self._inflight[kind]

        if token.is_cancelled:
            log.debug("%s fetch finished after supersession; result discarded", kind.value)
            return

        now = self._clock()
        state.apply_success(items, now)
        log.info("Loaded %d %s in %.0fms", len(state.items), kind.label, (now - started) * 1000)
        self._publish(state)

    def _publish(self, state: ResourceState) -> None:
        if self._bus is None:
            return
        self._bus.publish_resource_update(
            ResourceUpdate(
                kind=state.kind,
                items=tuple(state.items),
                error=state.error,
                fetched_at=state.last_fetched,
            )
        )
