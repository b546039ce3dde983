"""
In-process player details cache with database persistence.

Entries live for PLAYER_CACHE_TTL_DAYS (7 by default). When the cache is
full, the entry with the oldest cached_at is evicted to make room. The
cache is loaded from the player_cache table before an enrichment run and
written back after it, so hits survive restarts.

CachedPlayerClient puts the cache in front of a PlayerSource: a hit skips
the network call and is recorded on the rate limiter as a cache hit.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from app.core import metrics
from app.core.logging import get_logger
from app.repositories.database_service import CachedPlayer, DatabaseService
from app.services.enrichment.player_client import PlayerSource
from app.services.sync.rate_limiter import ApiRateLimiter
from app.utils.timezone import utc_now

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(days=7)
DEFAULT_MAX_SIZE = 10000


@dataclass
class _Entry:
    data: Dict[str, Any]
    statistics: List[Dict[str, Any]]
    cached_at: datetime
    hit_count: int = 0


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0
    expired: int = 0
    evictions: int = 0
    hit_rate: float = field(default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
            "expired": self.expired,
            "evictions": self.evictions,
            "hit_rate": self.hit_rate,
        }


class PlayerCache:
    """
    TTL cache keyed by API-Football player id.

    Values are /players response entries: {"player": {...}, "statistics": [...]}.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[int, _Entry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: _Entry, now: datetime) -> bool:
        return now - entry.cached_at > self.ttl

    def get(self, player_id: int) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(player_id)
        if entry is None:
            self._misses += 1
            metrics.player_cache_lookups_total.labels(result="miss").inc()
            return None

        if self._is_expired(entry, self._clock()):
            del self._entries[player_id]
            self._misses += 1
            metrics.player_cache_lookups_total.labels(result="expired").inc()
            return None

        entry.hit_count += 1
        self._hits += 1
        metrics.player_cache_lookups_total.labels(result="hit").inc()
        return {"player": entry.data, "statistics": entry.statistics}

    def set(
        self,
        player_id: int,
        data: Dict[str, Any],
        statistics: Optional[List[Dict[str, Any]]] = None,
        cached_at: Optional[datetime] = None,
    ) -> None:
        if player_id not in self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()

        self._entries[player_id] = _Entry(
            data=data,
            statistics=list(statistics or []),
            cached_at=cached_at or self._clock(),
        )

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda pid: self._entries[pid].cached_at)
        del self._entries[oldest]
        self._evictions += 1
        logger.debug(f"Evicted player {oldest} from cache (max size {self.max_size})")

    def has(self, player_id: int) -> bool:
        """True if the player is cached, expired or not."""
        return player_id in self._entries

    def delete(self, player_id: int) -> bool:
        return self._entries.pop(player_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [pid for pid, entry in self._entries.items() if self._is_expired(entry, now)]
        for pid in expired:
            del self._entries[pid]
        if expired:
            logger.info(f"Cleared {len(expired)} expired player cache entries")
        return len(expired)

    def stats(self) -> CacheStats:
        now = self._clock()
        lookups = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._entries),
            expired=sum(1 for entry in self._entries.values() if self._is_expired(entry, now)),
            evictions=self._evictions,
            hit_rate=round(self._hits / lookups * 100, 2) if lookups else 0.0,
        )

    def entries(self) -> List[CachedPlayer]:
        return [
            CachedPlayer(
                player_id=pid,
                data=entry.data,
                statistics=entry.statistics,
                cached_at=entry.cached_at,
                expires_at=entry.cached_at + self.ttl,
                hit_count=entry.hit_count,
            )
            for pid, entry in self._entries.items()
        ]

    # ========================================================================
    # Persistence
    # ========================================================================

    def load_from_database(self, db: DatabaseService) -> int:
        """Load live rows from the player_cache table. Returns the number loaded."""
        now = self._clock()
        loaded = 0
        for row in db.load_player_cache(now):
            if now - row.cached_at > self.ttl:
                continue
            self.set(row.player_id, row.data, row.statistics, cached_at=row.cached_at)
            self._entries[row.player_id].hit_count = row.hit_count
            loaded += 1

        logger.info(f"Loaded {loaded} player cache entries from database")
        return loaded

    def persist_to_database(self, db: DatabaseService) -> int:
        entries = self.entries()
        if not entries:
            logger.info("No player cache entries to persist")
            return 0

        saved = db.save_player_cache(entries)
        logger.info(f"Persisted {saved} player cache entries to database")
        return saved


class CachedPlayerClient(PlayerSource):
    """PlayerSource that answers from PlayerCache before calling the provider."""

    def __init__(self, client: PlayerSource, cache: PlayerCache, rate_limiter: ApiRateLimiter):
        self.client = client
        self.cache = cache
        self.rate_limiter = rate_limiter

    async def fetch_player(self, player_id: int, season: int) -> Dict[str, Any]:
        cached = self.cache.get(player_id)
        if cached is not None:
            self.rate_limiter.record_cache_hit()
            logger.debug(f"Player {player_id} served from cache")
            return cached

        response = await self.client.fetch_player(player_id, season)
        self.cache.set(player_id, response.get("player") or {}, response.get("statistics"))
        return response
