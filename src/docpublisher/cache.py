"""In-process cache for lookups that stay valid for the duration of a publishing run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

SPACE_MAPPING_CACHE_KEY = 'space_mapping'
FOLDER_PAGE_CACHE_KEY = 'folder_page'

# seconds; None keeps the entry until the cache is cleared
DEFAULT_TTLS: dict[str, int | None] = {
    SPACE_MAPPING_CACHE_KEY: None,
    FOLDER_PAGE_CACHE_KEY: None,
}


@dataclass
class CacheEntry:
    data: Any
    ttl_seconds: int | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def is_expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        return datetime.now() > self.created_at + timedelta(seconds=self.ttl_seconds)


class ApplicationCache:
    """Keeps values per cache type and optional identifier.

    Identifiers may be made of several parts, e.g. `(space_key, parent_id, title)` for folder pages; `None` parts are
    kept so that a folder at the root of a space does not collide with one under a page.
    """

    def __init__(self, default_ttls: dict[str, int | None] | None = None):
        self._entries: dict[tuple, CacheEntry] = {}
        self._default_ttls = DEFAULT_TTLS if default_ttls is None else default_ttls

    @staticmethod
    def _key(cache_type: str, identifier: str | tuple | None) -> tuple:
        if identifier is None:
            return (cache_type,)
        if isinstance(identifier, tuple):
            return (cache_type, *identifier)
        return (cache_type, identifier)

    def get(self, cache_type: str, identifier: str | tuple | None = None) -> Any | None:
        key = self._key(cache_type, identifier)
        if (entry := self._entries.get(key)) is None:
            return None
        if entry.is_expired():
            del self._entries[key]
            return None
        return entry.data

    def set(
        self,
        cache_type: str,
        data: Any,
        identifier: str | tuple | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        if ttl_seconds is None:
            ttl_seconds = self._default_ttls.get(cache_type)
        self._entries[self._key(cache_type, identifier)] = CacheEntry(data, ttl_seconds)

    def invalidate(self, cache_type: str, identifier: str | tuple | None = None) -> None:
        self._entries.pop(self._key(cache_type, identifier), None)

    def clear(self, cache_type: str | None = None) -> None:
        """Drops every entry, or only the entries of one cache type."""
        if cache_type is None:
            self._entries.clear()
            return
        for key in [key for key in self._entries if key[0] == cache_type]:
            del self._entries[key]


_global_cache: ApplicationCache | None = None


def get_cache() -> ApplicationCache:
    global _global_cache
    if _global_cache is None:
        _global_cache = ApplicationCache()
    return _global_cache


def reset_cache() -> None:
    """Drops the process-wide entries, i.e. the space mapping loaded from the configuration."""
    get_cache().clear()
