import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Cache keys, one per kind of data.
USER_PROFILE = "user-profile"
REPOSITORIES = "repositories"
DEPLOYMENTS = "deployments"
COMPUTED_STATS = "computed-stats"
PROJECTS = "projects"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the moment it was fetched."""

    value: T
    fetched_at: datetime

    def age(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def is_fresh(self, ttl: float, now: datetime) -> bool:
        return self.age(now) < ttl


class TTLCache:
    """
    In-memory, time-boxed memoization of upstream fetches.

    Staleness is evaluated lazily on read; there are no background timers.
    Concurrent misses on the same key may each trigger a fetch, and the last
    one to complete wins.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}

    async def get_or_fetch(self, key: str, ttl: float, fetch_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Returns the cached value for `key` if it is younger than `ttl` seconds,
        otherwise awaits `fetch_fn()` and stores the result.

        Errors raised by `fetch_fn` propagate unchanged; a stale entry is never
        returned in their place.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(ttl, self.clock()):
            logger.debug(f"Cache hit for '{key}' (age {entry.age(self.clock()):.0f}s, ttl {ttl:.0f}s).")
            return entry.value

        logger.debug(f"Cache miss for '{key}'. Fetching.")
        value = await fetch_fn()
        self.set(key, value)
        return value

    def set(self, key: str, value: T) -> CacheEntry[T]:
        entry = CacheEntry(value=value, fetched_at=self.clock())
        self._entries[key] = entry
        return entry

    def peek(self, key: str) -> Optional[CacheEntry[Any]]:
        """Returns the entry for `key` regardless of freshness."""
        return self._entries.get(key)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
