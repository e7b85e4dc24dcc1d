"""Bounded in-memory TTL cache with LRU eviction for product lookups."""

import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

from utils.logger import logger

DEFAULT_TTL = timedelta(minutes=30)

_TTL_PATTERN = re.compile(r"^(\d+)([mh])$")
_TTL_UNITS = {"m": 60, "h": 60 * 60}


class InvalidTTLError(ValueError):
    """TTL value that cannot be turned into a positive duration."""


@dataclass
class CacheEntry:
    value: Any
    expires_at: float
    last_accessed: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    capacity: int | None
    keys: list[str]
    oldest_key: str | None
    newest_key: str | None


def make_key(identifier: Any) -> str:
    """
    Build the canonical cache key for an entity identifier.

    42, "42" and " 42 " all map to "42".

    Raises:
        ValueError: for booleans and empty identifiers
    """
    if isinstance(identifier, bool):
        raise ValueError(f"Invalid cache key: {identifier!r}")
    if isinstance(identifier, int):
        return str(identifier)
    key = str(identifier).strip()
    if not key:
        raise ValueError("Cache key must not be empty")
    return key


def _seconds_to_timedelta(seconds: int | float) -> timedelta:
    # inf, nan and values beyond timedelta.max
    try:
        return timedelta(seconds=seconds)
    except (OverflowError, ValueError) as e:
        raise InvalidTTLError(f"TTL out of range: {seconds!r}") from e


def parse_ttl(ttl: timedelta | int | float | str | None) -> timedelta | None:
    """
    Convert a TTL argument to a timedelta.

    Args:
        ttl: None (use default), seconds, timedelta or "<N>m" / "<N>h"

    Returns:
        Positive timedelta, or None when the default should apply

    Raises:
        InvalidTTLError: malformed string, wrong type or non-positive duration
    """
    if ttl is None:
        return None

    if isinstance(ttl, timedelta):
        duration = ttl
    elif isinstance(ttl, bool):
        raise InvalidTTLError(f"Unsupported TTL type: {type(ttl).__name__}")
    elif isinstance(ttl, (int, float)):
        duration = _seconds_to_timedelta(ttl)
    elif isinstance(ttl, str):
        match = _TTL_PATTERN.match(ttl.strip())
        if not match:
            raise InvalidTTLError(
                f"Malformed TTL {ttl!r}: expected '<N>m' or '<N>h'"
            )
        amount, unit = match.groups()
        duration = _seconds_to_timedelta(int(amount) * _TTL_UNITS[unit])
    else:
        raise InvalidTTLError(f"Unsupported TTL type: {type(ttl).__name__}")

    if duration.total_seconds() <= 0:
        raise InvalidTTLError(f"TTL must be positive, got {ttl!r}")
    return duration


class BoundedTtlCache:
    """
    LRU cache with per-entry expiry.

    Entries are kept in an OrderedDict ordered from least to most recently
    used. Expiry is checked lazily on get(); cleanup() purges the rest and
    is meant to be called periodically by the owner. All operations hold a
    single lock and never perform I/O.

    delete() and clear() advance an invalidation counter. A caller that
    fetches a value outside the lock takes generation() first and stores
    the result with set_if_unchanged(), which refuses to write it back if
    the key was invalidated in the meantime.
    """

    def __init__(
        self,
        capacity: int | None = 50,
        default_ttl: timedelta | int | float | str = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            capacity: Maximum number of entries, None for unbounded
            default_ttl: TTL applied when set() gets none (default: 30 min)
            clock: Monotonic time source in seconds
        """
        if capacity is not None and capacity <= 0:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")

        default = parse_ttl(default_ttl)
        if default is None:
            raise InvalidTTLError("Default TTL is required")

        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._capacity = capacity
        self._default_ttl = default
        self._clock = clock
        self._lock = threading.RLock()
        self._generation = 0
        self._cleared_at = 0
        self._invalidated_at: dict[str, int] = {}

        limit = capacity if capacity is not None else "unbounded"
        logger.info(
            f"Product cache initialized: capacity={limit}, "
            f"default_ttl={int(default.total_seconds())}s"
        )

    @property
    def capacity(self) -> int | None:
        return self._capacity

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, identifier: Any) -> Any | None:
        """
        Get value by key if present and not expired.

        A hit moves the entry to the most recently used position.

        Args:
            identifier: Entity id or key

        Returns:
            Cached value or None if missing/expired
        """
        key = make_key(identifier)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache MISS for key: {key}")
                return None

            now = self._clock()
            if now > entry.expires_at:
                del self._entries[key]
                logger.debug(f"Cache EXPIRED for key: {key}")
                return None

            entry.last_accessed = now
            self._entries.move_to_end(key)
            logger.debug(f"Cache HIT for key: {key}")
            return entry.value

    def set(
        self,
        identifier: Any,
        value: Any,
        ttl: timedelta | int | float | str | None = None,
    ) -> None:
        """
        Store value, evicting least recently used entries when full.

        Args:
            identifier: Entity id or key
            value: Value to cache
            ttl: Seconds, timedelta or "<N>m" / "<N>h" (uses default if None)

        Raises:
            InvalidTTLError: if ttl cannot be parsed or is not positive
        """
        key = make_key(identifier)
        duration = parse_ttl(ttl) or self._default_ttl

        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)

            if self._capacity is not None:
                while len(self._entries) >= self._capacity:
                    self._evict_least_recently_used()

            self._entries[key] = CacheEntry(
                value=value,
                expires_at=now + duration.total_seconds(),
                last_accessed=now,
            )
            logger.debug(
                f"Cache SET for key: {key}, ttl: {int(duration.total_seconds())}s, "
                f"cache size: {len(self._entries)}"
            )

    def generation(self) -> int:
        """Current invalidation counter, to pass to set_if_unchanged()."""
        with self._lock:
            return self._generation

    def set_if_unchanged(
        self,
        identifier: Any,
        value: Any,
        generation: int,
        ttl: timedelta | int | float | str | None = None,
    ) -> bool:
        """
        Store value unless the key was deleted or the cache cleared after
        generation was taken.

        Returns:
            True if the value was stored
        """
        key = make_key(identifier)
        with self._lock:
            if self._cleared_at > generation or self._invalidated_at.get(key, 0) > generation:
                logger.debug(f"Cache SET skipped for key: {key}, invalidated during fetch")
                return False
            self.set(key, value, ttl)
            return True

    def _evict_least_recently_used(self) -> None:
        key, _ = self._entries.popitem(last=False)
        logger.debug(f"Cache EVICTED LRU key: {key}")

    def delete(self, identifier: Any) -> bool:
        """
        Remove key from cache. Missing keys are ignored.

        Returns:
            True if an entry was removed
        """
        key = make_key(identifier)
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            self._generation += 1
            self._invalidated_at[key] = self._generation
        logger.debug(f"Cache DELETE for key: {key}, removed: {removed}")
        return removed

    def clear(self) -> int:
        """Clear entire cache and return the number of removed entries."""
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
            self._generation += 1
            self._cleared_at = self._generation
            self._invalidated_at.clear()
        logger.info(f"Cache CLEARED, removed {size} items")
        return size

    def cleanup(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of removed entries
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if now > entry.expires_at
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info(f"Cache CLEANUP: removed {len(expired)} expired items")
        return len(expired)

    def get_stats(self) -> CacheStats:
        """Snapshot of size and key order (least to most recently used)."""
        with self._lock:
            keys = list(self._entries.keys())
        return CacheStats(
            size=len(keys),
            capacity=self._capacity,
            keys=keys,
            oldest_key=keys[0] if keys else None,
            newest_key=keys[-1] if keys else None,
        )
