"""In-memory, time-expiring cache for search results and banner sets."""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from bannerscout.banners.models import SearchResultEntry, VerifiedImage

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_CHECK_PERIOD_SECONDS = 120


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float


def search_key(provider: str, query: str) -> str:
    """Cache key for a search query, case-folded and trimmed."""
    return f"search:{provider}:{query.strip().casefold()}"


def title_key(provider: str, title_id: str, media_type: Optional[str] = None) -> str:
    """
    Cache key for a title's banner set.

    The provider is part of the key so that IMDb and TMDB ids never collide.
    """
    if media_type:
        return f"banners:{provider}:{media_type}:{title_id}"
    return f"banners:{provider}:{title_id}"


class ResultCache:
    """
    Process-wide cache with a fixed TTL per entry.

    Expired entries are reported absent on read and removed by a periodic
    sweep. Values are stored by reference; callers must not mutate what
    they get back.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        check_period_seconds: float = DEFAULT_CHECK_PERIOD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of each entry from insertion
            check_period_seconds: Interval of the background sweep
            clock: Monotonic time source
        """
        self.ttl_seconds = ttl_seconds
        self.check_period_seconds = check_period_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    # Generic operations

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for key, or None."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= now:
                del self._entries[key]
                logger.debug(f"⏰ Cache entry expired: {key}")
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> bool:
        """
        Store value under key, replacing any existing entry.

        Empty values are refused so that failed resolutions can be retried.

        Returns:
            True if stored
        """
        if not value:
            logger.debug(f"Not caching empty value for: {key}")
            return False
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=now + self.ttl_seconds)
        return True

    def delete(self, key: str) -> bool:
        """Remove a single key. Returns True if it existed."""
        with self._lock:
            deleted = self._entries.pop(key, None) is not None
        if deleted:
            logger.info(f"🗑️ Removed from cache: {key}")
        return deleted

    def keys(self) -> List[str]:
        """List live keys."""
        now = self._clock()
        with self._lock:
            return [key for key, entry in self._entries.items() if entry.expires_at > now]

    def flush_all(self) -> None:
        """Clear all entries and counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("🗑️ Cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Key count and hit/miss counters."""
        keys = self.keys()
        with self._lock:
            return {
                'keys': len(keys),
                'hits': self._hits,
                'misses': self._misses,
                'ttl': self.ttl_seconds,
                'checkperiod': self.check_period_seconds,
            }

    # Typed accessors

    def get_search(self, provider: str, query: str) -> Optional[Sequence[SearchResultEntry]]:
        cached = self.get(search_key(provider, query))
        if cached is not None:
            logger.info(f"✅ Search results from cache: \"{query}\" ({len(cached)} results)")
        return cached

    def put_search(self, provider: str, query: str, entries: Sequence[SearchResultEntry]) -> bool:
        stored = self.set(search_key(provider, query), tuple(entries))
        if stored:
            logger.info(f"💾 Cached search: \"{query}\" ({len(entries)} results)")
        return stored

    def get_image_set(self, key: str) -> Optional[Sequence[VerifiedImage]]:
        cached = self.get(key)
        if cached is not None:
            logger.info(f"✅ Banners from cache: {key} ({len(cached)} images)")
        return cached

    def put_image_set(self, key: str, images: Sequence[VerifiedImage]) -> bool:
        stored = self.set(key, tuple(images))
        if stored:
            logger.info(f"💾 Cached banners: {key} ({len(images)} images)")
        return stored

    # Expiry

    def sweep(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
        for key in expired:
            logger.debug(f"⏰ Cache entry expired: {key}")
        return len(expired)

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self.check_period_seconds):
            try:
                removed = self.sweep()
                if removed:
                    logger.info(f"⏰ Cache sweep removed {removed} expired entries")
            except Exception as e:
                logger.error(f"Error in cache sweep: {e}", exc_info=True)

    def start_sweeper(self) -> None:
        """Start the background expiry sweep (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(target=self._run_sweeper, daemon=True, name="CacheSweeper")
        self._sweeper.start()
        logger.info(f"Started cache sweeper (every {self.check_period_seconds}s, ttl {self.ttl_seconds}s)")

    def stop_sweeper(self) -> None:
        """Stop the background sweep."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None

    def size(self) -> int:
        """Get the number of stored entries, expired or not."""
        with self._lock:
            return len(self._entries)
