"""
NFL prediction client: main entrypoint

Boots the asyncio event loop, builds every shared service exactly once,
warms the caches and keeps upcoming games fresh until SIGINT/SIGTERM.

Startup sequence:
  1. Load settings from environment (.env honoured)
  2. Build bus, API client, DataManager, image cache, roster store
  3. Load teams + upcoming games concurrently
  4. Optionally batch-predict PREDICT_WEEK
  5. Refresh upcoming games whenever they go stale

Shutdown sequence:
  1. Cancel screen work and background tasks
  2. Cancel in-flight fetches
  3. Close network sessions
"""

from __future__ import annotations
import asyncio
import logging
import signal
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Load .env before importing settings (settings reads env vars at import time)
load_dotenv()

from api.client import PredictorApiClient
from bus.event_bus import EventBus
from cache.image_cache import ImageCache
from config.settings import settings
from models.state import ResourceKind
from services.data_manager import DataManager
from services.fantasy_team import FantasyTeamManager
from services.prediction_screen import PredictionScreen
from storage.kv_store import KeyValueStore
from utils.logger import setup_logging

log = logging.getLogger(__name__)


def _load_resources_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        log.warning("%s not found; using built-in cache defaults", path)
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _freshness_from_config(cfg: dict[str, Any]) -> dict[ResourceKind, float]:
    windows: dict[ResourceKind, float] = {}
    for name, entry in (cfg.get("resources") or {}).items():
        try:
            kind = ResourceKind(name)
        except ValueError:
            log.warning("Unknown resource %r in resources config", name)
            continue
        windows[kind] = float(entry["freshness_s"])
    return windows


def _image_cache_from_config(cfg: dict[str, Any]) -> ImageCache:
    images = cfg.get("images") or {}
    kwargs: dict[str, Any] = {}
    for key, arg in (
        ("memory_count_limit", "memory_count_limit"),
        ("memory_cost_limit_bytes", "memory_cost_limit"),
        ("disk_size_limit_bytes", "disk_size_limit"),
        ("max_age_s", "max_age_s"),
    ):
        if key in images:
            kwargs[arg] = images[key]
    return ImageCache(
        settings.image_cache_dir,
        request_timeout_s=settings.request_timeout_s,
        resource_timeout_s=settings.resource_timeout_s,
        **kwargs,
    )


async def _log_progress(bus: EventBus) -> None:
    queue = bus.subscribe_progress()
    while True:
        progress = await queue.get()
        log.info(
            "Week predictions %d/%d (%.0f%%) game=%s %s",
            progress.completed, progress.total, progress.fraction * 100, progress.game_id,
            f"winner={progress.prediction.predicted_winner}" if progress.prediction else "failed",
        )


async def _keep_games_fresh(data: DataManager) -> None:
    interval = data.state(ResourceKind.UPCOMING_GAMES).freshness_s
    while True:
        await asyncio.sleep(interval)
        await data.load_upcoming_games()
        if data.error(ResourceKind.UPCOMING_GAMES):
            log.warning("Upcoming games stale: %s", data.error(ResourceKind.UPCOMING_GAMES))


async def run() -> None:
    setup_logging(settings.log_level)
    log.info("NFL prediction client starting (debug=%s base_url=%s)", settings.debug, settings.server_base_url)

    resources_cfg = _load_resources_config(settings.resources_config_path)

    # -----------------------------------------------------------------------
    # Shared services (one instance each, passed by reference)
    # -----------------------------------------------------------------------
    bus = EventBus()

    client = PredictorApiClient(
        base_url=settings.server_base_url,
        request_timeout_s=settings.request_timeout_s,
        resource_timeout_s=settings.resource_timeout_s,
    )
    data = DataManager(client, bus=bus, freshness=_freshness_from_config(resources_cfg))
    images = _image_cache_from_config(resources_cfg)
    fantasy = FantasyTeamManager(KeyValueStore(settings.storage_path))
    screen = PredictionScreen(data, bus=bus, batch_delay_s=settings.batch_delay_s)

    await client.startup()
    await images.startup()
    images.clear_expired_cache()

    # -----------------------------------------------------------------------
    # Warm caches
    # -----------------------------------------------------------------------
    teams, games = await asyncio.gather(data.load_teams(), data.load_upcoming_games())
    log.info("Warm start: %d team(s), %d upcoming game(s)", len(teams), len(games))
    for kind in ResourceKind:
        if data.error(kind):
            log.warning("%s", data.error(kind))

    photo_urls = [p.photo_url for p in fantasy.roster.all_players if p.photo_url]
    if photo_urls:
        await images.preload_images(photo_urls)

    # -----------------------------------------------------------------------
    # Background work
    # -----------------------------------------------------------------------
    shutdown_event = asyncio.Event()

    def _handle_signal(sig: signal.Signals) -> None:
        log.info("Received %s, initiating graceful shutdown", sig.name)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    tasks = [
        asyncio.create_task(_log_progress(bus), name="progress-log"),
        asyncio.create_task(_keep_games_fresh(data), name="games-refresh"),
    ]

    if settings.predict_week is not None:
        await screen.predict_week(settings.predict_week)

    log.info("Client is live.")
    await shutdown_event.wait()

    # -----------------------------------------------------------------------
    # Graceful shutdown
    # -----------------------------------------------------------------------
    log.info("Shutting down...")
    screen.cancel_all()
    await screen.batch.wait()
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    await data.shutdown()
    await images.shutdown()
    await client.shutdown()
    log.info("NFL prediction client stopped cleanly.")


def main() -> None:
    try:
        import uvloop  # type: ignore
        uvloop.run(run())
    except ImportError:
        asyncio.run(run())


if __name__ == "__main__":
    main()
