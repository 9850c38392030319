"""JSON file cache - one file per key, used as offline fallback and history backup"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from domain.repositories import LocalCache

logger = logging.getLogger(__name__)


class JsonFileCache(LocalCache):
    """Durable LocalCache; writes go to a temp file that replaces the old one"""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Cache entry %s unreadable: %s", key, e)
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False)
            os.replace(tmp, path)
        except OSError as e:
            logger.warning("Could not write cache entry %s: %s", key, e)

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
