"""
Memory + disk cache for team helmets and player headshots.

Lookup order for load_image(url):
  1. memory: cachetools LRUCache weighted by byte cost, also capped by entry count
  2. disk: one file per URL under cache_dir, ignored once older than max_age_s
  3. network: own aiohttp session; a hit populates both caches

Concurrent loads of the same URL are not coalesced; each may download and
the last write wins in both tiers.
Disk reads and writes run in worker threads; memory state is only touched
on the event loop.
"""

from __future__ import annotations
import asyncio
import hashlib
import logging
import time
from pathlib import Path
from typing import Callable, Iterable

import aiohttp
from cachetools import LRUCache

log = logging.getLogger(__name__)

MEMORY_COUNT_LIMIT = 100
MEMORY_COST_LIMIT = 50 * 1024 * 1024    # 50 MB
DISK_SIZE_LIMIT = 100 * 1024 * 1024     # 100 MB
MAX_AGE_S = 7 * 24 * 60 * 60            # 7 days

_SUFFIX = ".img"


class ImageCacheError(Exception):
    pass


class ImageCache:
    def __init__(
        self,
        cache_dir: Path,
        memory_count_limit: int = MEMORY_COUNT_LIMIT,
        memory_cost_limit: int = MEMORY_COST_LIMIT,
        disk_size_limit: int = DISK_SIZE_LIMIT,
        max_age_s: float = MAX_AGE_S,
        request_timeout_s: float = 30.0,
        resource_timeout_s: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(cache_dir)
        self._memory_count_limit = memory_count_limit
        self._memory_cost_limit = memory_cost_limit
        self._disk_size_limit = disk_size_limit
        self._max_age_s = max_age_s
        self._request_timeout_s = request_timeout_s
        self._resource_timeout_s = resource_timeout_s
        self._clock = clock
        self._memory: LRUCache[str, bytes] = LRUCache(maxsize=memory_cost_limit, getsizeof=len)
        self._session: aiohttp.ClientSession | None = None

    @property
    def memory_count(self) -> int:
        return len(self._memory)

    @property
    def memory_cost(self) -> int:
        return int(self._memory.currsize)

    async def startup(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self._resource_timeout_s,
                    sock_read=self._request_timeout_s,
                ),
                headers={"Accept": "image/png,image/*,*/*;q=0.8"},
            )
        log.info("Image cache ready dir=%s", self._dir)

    async def shutdown(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load_image(self, url: str) -> bytes:
        data = self._memory.get(url)
        if data is not None:
            return data

        path = self._disk_path(url)
        data = await asyncio.to_thread(self._read_disk, path)
        if data is not None:
            self._remember(url, data)
            return data

        data = await self._download(url)
        self._remember(url, data)
        try:
            await asyncio.to_thread(self._write_disk, path, data)
        except OSError as exc:
            log.warning("image_cache: could not write %s: %s", path.name, exc)
        return data

    async def preload_images(self, urls: Iterable[str]) -> int:
        """Load many images concurrently. Returns how many succeeded."""
        unique = list(dict.fromkeys(urls))
        results = await asyncio.gather(*(self.load_image(u) for u in unique), return_exceptions=True)
        loaded = 0
        for url, result in zip(unique, results):
            if isinstance(result, BaseException):
                log.debug("image_cache: preload failed for %s: %s", url, result)
            else:
                loaded += 1
        log.info("image_cache: preloaded %d/%d image(s)", loaded, len(unique))
        return loaded

    def clear_cache(self) -> None:
        self._memory.clear()
        for path in self._disk_files():
            path.unlink(missing_ok=True)

    def clear_expired_cache(self) -> int:
        """Delete disk entries older than max_age_s. Returns how many were removed."""
        cutoff = self._clock() - self._max_age_s
        removed = 0
        for path in self._disk_files():
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink(missing_ok=True)
                    removed += 1
            except FileNotFoundError:
                continue
        if removed:
            log.info("image_cache: removed %d expired file(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Memory tier
    # ------------------------------------------------------------------

    def _remember(self, url: str, data: bytes) -> None:
        # LRUCache raises ValueError for a single value larger than maxsize
        if len(data) > self._memory_cost_limit:
            return
        self._memory[url] = data
        while len(self._memory) > self._memory_count_limit:
            self._memory.popitem()

    # ------------------------------------------------------------------
    # Disk tier (worker threads)
    # ------------------------------------------------------------------

    def _disk_path(self, url: str) -> Path:
        return self._dir / (hashlib.sha256(url.encode("utf-8")).hexdigest() + _SUFFIX)

    def _disk_files(self) -> list[Path]:
        if not self._dir.exists():
            return []
        return [p for p in self._dir.iterdir() if p.suffix == _SUFFIX]

    def _read_disk(self, path: Path) -> bytes | None:
        try:
            age = self._clock() - path.stat().st_mtime
            if age > self._max_age_s:
                path.unlink(missing_ok=True)
                return None
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def _write_disk(self, path: Path, data: bytes) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        self._trim_disk()

    def _trim_disk(self) -> None:
        entries = []
        for p in self._disk_files():
            try:
                st = p.stat()
            except FileNotFoundError:
                continue
            entries.append((st.st_mtime, st.st_size, p))
        total = sum(size for _, size, _ in entries)
        # Oldest first
        for _, size, path in sorted(entries, key=lambda e: e[0]):
            if total <= self._disk_size_limit:
                break
            path.unlink(missing_ok=True)
            total -= size

    # ------------------------------------------------------------------
    # Network tier
    # ------------------------------------------------------------------

    async def _download(self, url: str) -> bytes:
        assert self._session, "Call startup() first"
        try:
            async with self._session.get(url) as resp:
                if not 200 <= resp.status < 300:
                    raise ImageCacheError("Invalid server response")
                data = await resp.read()
        except asyncio.TimeoutError as exc:
            raise ImageCacheError(f"Timed out loading {url}") from exc
        except aiohttp.ClientError as exc:
            raise ImageCacheError(f"Network error loading {url}: {exc}") from exc
        if not data:
            raise ImageCacheError("Unable to decode image data")
        return data
