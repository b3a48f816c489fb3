"""
Logging setup for the client.
Call setup_logging() once at startup in main.py; modules only ever do
log = logging.getLogger(__name__).
"""

from __future__ import annotations
import logging
import sys
import time

# Chatty third-party loggers kept at WARNING unless we are debugging
_QUIET_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


class _MonoFormatter(logging.Formatter):
    """Adds a monotonic millisecond timestamp so fetch/predict spans can be lined up."""

    def format(self, record: logging.LogRecord) -> str:
        record.mono_ms = time.monotonic_ns() // 1_000_000
        return super().format(record)


def setup_logging(level: str = "INFO") -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        _MonoFormatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s | mono_ms=%(mono_ms)d | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root = logging.getLogger()
    root.setLevel(numeric)
    root.handlers.clear()
    root.addHandler(handler)
    if numeric > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
