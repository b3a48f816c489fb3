"""
Local key-value storage, persisted to a single JSON file.

Values are JSON-encoded blobs stored under fixed keys, e.g.:

    store = KeyValueStore(Path("data/app_state.json"))
    store.set(ROSTER_KEY, json.dumps(roster_dict))
    blob = store.get(ROSTER_KEY)

Every set() and delete() writes through to disk.
"""

from __future__ import annotations
import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)

ROSTER_KEY = "fantasy_roster"


class KeyValueStore:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Ignoring unreadable store %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            log.warning("Ignoring store %s: expected an object", self._path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()

    def keys(self) -> list[str]:
        return sorted(self._data)
