"""
In-process TTL cache for find() results.
Entries expire passively: an expired entry is dropped when it is next read.
"""
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
import copy
import json
import logging
import time

from .errors import SheetFlowQueryError

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60
DEFAULT_MAX_ENTRIES = 100


@dataclass
class CacheEntry():
    key: str
    value: list[dict]
    expires_at: float


def _json_default(value: Any) -> Any:
    # datetimes are tagged so they never collide with the same text as a string
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise SheetFlowQueryError(f"Cannot use {type(value).__name__} in a query: {value!r}")


def make_key(table: str, query: Mapping[str, Any]|None) -> str:
    """
    Deterministic cache key for a table query.
    Keys are sorted at every level so reordered but equivalent queries
    map to the same entry.
    """
    body = json.dumps(dict(query or {}), sort_keys=True, default=_json_default, separators=(",", ":"))
    return f"{key_prefix(table)}{body[1:]}"


def key_prefix(table: str) -> str:
    """Every key of table starts with this, and no key of another table does."""
    return f"{table}:{{"


class Cache():
    """
    Key/value memoization of record lists with a per instance time to live.
    max_entries is advisory, once exceeded the oldest inserted entry goes.
    """
    def __init__(self, ttl: int|float = DEFAULT_TTL,
                 max_entries: int = DEFAULT_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError(f"Cache ttl must be positive: {ttl}")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __str__(self) -> str:
        return f"ttl={self.ttl}s:{len(self)}/{self.max_entries}"

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    def get(self, key: str) -> list[dict]|None:
        """
        Cached value or None on a miss.
        Callers get a copy so mutating the result can't poison the cache.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            logger.debug("cache entry expired: %s", key)
            del self._entries[key]
            return None
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: list[dict], ttl: int|float|None = None) -> None:
        expires = self._clock() + (self.ttl if ttl is None else ttl)
        # re-setting counts as a fresh insert for eviction order
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key, copy.deepcopy(value), expires)
        while self.max_entries and len(self._entries) > self.max_entries:
            old, _ = self._entries.popitem(last=False)
            logger.debug("cache full, evicted: %s", old)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix, returning how many went."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        return len(keys)
