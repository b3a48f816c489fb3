"""
Environment-based configuration.
Nothing here is secret; every value has a default so the client boots with
an empty environment.

Usage:
    from config.settings import settings
    print(settings.server_base_url)
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

DEBUG_BASE_URL = "http://localhost:8080/api/v1"          # Local Docker container
RELEASE_BASE_URL = "https://statshark-api.azurewebsites.net/api/v1"


def _optional(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _flag(key: str, default: str = "false") -> bool:
    return _optional(key, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    # --- Server ---
    server_base_url: str          # SERVER_BASE_URL, else build-mode default
    debug: bool                   # True = local dev server default
    request_timeout_s: float      # Time to first byte
    resource_timeout_s: float     # Whole-request budget

    # --- Batch predictions ---
    batch_delay_s: float          # Pause between sequential prediction requests
    predict_week: int | None      # Week to batch-predict at startup (None = skip)

    # --- Local files ---
    image_cache_dir: Path
    storage_path: Path            # Key-value store for roster / leagues
    resources_config_path: Path   # Freshness windows and image cache limits

    # --- Logging ---
    log_level: str


def load_settings() -> Settings:
    debug = _flag("NFL_CLIENT_DEBUG")
    default_url = DEBUG_BASE_URL if debug else RELEASE_BASE_URL
    week = _optional("PREDICT_WEEK")

    return Settings(
        server_base_url=_optional("SERVER_BASE_URL") or default_url,
        debug=debug,
        request_timeout_s=float(_optional("REQUEST_TIMEOUT_S", "30")),
        resource_timeout_s=float(_optional("RESOURCE_TIMEOUT_S", "60")),
        batch_delay_s=float(_optional("BATCH_DELAY_S", "0.1")),
        predict_week=int(week) if week else None,
        image_cache_dir=Path(_optional("IMAGE_CACHE_DIR", "data/cache/images")),
        storage_path=Path(_optional("STORAGE_PATH", "data/app_state.json")),
        resources_config_path=Path(_optional("RESOURCES_CONFIG", "config/resources.yaml")),
        log_level=_optional("LOG_LEVEL", "INFO"),
    )


# Module-level singleton: loaded once at startup
settings = load_settings()
