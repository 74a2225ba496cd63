"""Durable key/value cache with per-entry expiry.

Each entry is a small JSON document on disk holding the payload and the
time it was stored, so cached results survive process restarts. Entries
are validated lazily: a stale or unreadable entry is deleted on read and
reported as a miss. There is no background eviction.
"""

import hashlib
import json
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from cryptoflow.domain.interfaces.cache import CacheService
from cryptoflow.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 2 * 60 * 60  # 2 hours
DEFAULT_CACHE_DIR = Path.home() / ".cryptoflow" / "cache"
ENTRY_SUFFIX = ".json"


class PersistentCache(CacheService):
    """File-backed cache. One JSON file per key: {key, payload, stored_at (epoch ms)}."""

    def __init__(
        self,
        cache_dir: Path = DEFAULT_CACHE_DIR,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the cache.

        Args:
            cache_dir: Directory holding the entry files (created if missing).
            ttl_seconds: Maximum age at which an entry is still returned.
            clock: Returns the current time in seconds since the epoch.
        """
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._setup_cache_dir()
        logger.info(f"PersistentCache initialized. dir={self.cache_dir}, ttl={ttl_seconds}s")

    def _setup_cache_dir(self) -> None:
        """Creates the cache directory if it doesn't exist."""
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create cache directory {self.cache_dir}: {e}")
            raise

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _get_filepath(self, key: CacheKey) -> Path:
        """Generates a safe file path for a cache key."""
        hashed_key = hashlib.sha256(str(key).encode('utf-8')).hexdigest()
        return self.cache_dir / f"{hashed_key}{ENTRY_SUFFIX}"

    def _is_valid(self, entry: Dict[str, Any]) -> bool:
        age_ms = self._now_ms() - int(entry["stored_at"])
        return age_ms <= self.ttl_seconds * 1000

    def _remove(self, filepath: Path) -> None:
        try:
            filepath.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete cache file {filepath}: {e}")

    async def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the payload for key if present and not older than the TTL."""
        filepath = self._get_filepath(key)
        if not filepath.exists():
            logger.debug(f"Cache miss for key: {key}")
            return None

        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                entry = json.load(f)
            if not isinstance(entry, dict) or "payload" not in entry:
                raise ValueError("entry is not a {payload, stored_at} object")
            valid = self._is_valid(entry)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to read or parse cache file {filepath}: {e}. Removing.")
            self._remove(filepath)
            return None

        if not valid:
            logger.debug(f"Cache expired for key: {key}. Removing file.")
            self._remove(filepath)
            return None

        logger.debug(f"Cache hit for key: {key}")
        return entry["payload"]

    async def set(self, key: CacheKey, value: Any) -> None:
        """Stores value under key with stored_at = now, replacing any previous entry."""
        filepath = self._get_filepath(key)
        temp_filepath = filepath.with_suffix('.tmp')
        entry = {"key": str(key), "payload": value, "stored_at": self._now_ms()}
        try:
            with open(temp_filepath, 'w', encoding='utf-8') as f:
                json.dump(entry, f, ensure_ascii=False)
            # os.replace is atomic on both POSIX and Windows
            os.replace(temp_filepath, filepath)
            logger.debug(f"Stored item in cache: key={key}, file={filepath}")
        except (TypeError, ValueError, OSError) as e:
            logger.error(f"Failed to write cache file {filepath}: {e}")
            self._remove(temp_filepath)

    async def delete(self, key: CacheKey) -> None:
        """Deletes the entry for key, if any."""
        filepath = self._get_filepath(key)
        if filepath.exists():
            self._remove(filepath)
            logger.debug(f"Deleted item from cache: key={key}")

    async def clear(self) -> None:
        """Removes every entry."""
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir, ignore_errors=True)
        self._setup_cache_dir()
        logger.info(f"Cleared cache at: {self.cache_dir}")
