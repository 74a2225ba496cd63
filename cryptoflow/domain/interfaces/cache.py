"""Contract of the durable result cache used by the request orchestrators.

Entries expire after a fixed TTL. Expiry is checked when an entry is read,
so an implementation needs no background sweeper.
"""

import abc
from typing import Any, Optional

from ..models.common import CacheKey


class CacheService(abc.ABC):
    """Key/value store for normalized results, keyed by versioned request keys."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the payload stored under key, or None.

        None is returned for a missing, expired or unreadable entry; the
        last two are removed as a side effect. Never raises for bad data.
        """

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any) -> None:
        """Stores a JSON-compatible value with the current time, overwriting key."""

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> None:
        pass

    @abc.abstractmethod
    async def clear(self) -> None:
        """Drops every entry (used by the clear-cache command)."""
