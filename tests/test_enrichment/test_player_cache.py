"""Tests for the TTL player cache and its database persistence."""
from datetime import timedelta

import pytest

from app.repositories.database_service import SqlAlchemyDatabaseService
from app.services.enrichment.player_cache import CachedPlayerClient, PlayerCache
from app.services.sync.rate_limiter import ApiRateLimiter
from conftest import FakePlayerSource, make_player_response


# ─── PlayerCache ────────────────────────────────────────────────────────────────

class TestPlayerCache:
    """Lookups, expiry and eviction."""

    def test_hit_and_miss(self, clock):
        """Should return cached entries and count hits and misses."""
        cache = PlayerCache(clock=clock)
        cache.set(1, {"id": 1}, [{"games": {"position": "Defender"}}])

        assert cache.get(1) == {"player": {"id": 1}, "statistics": [{"games": {"position": "Defender"}}]}
        assert cache.get(2) is None

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 50.0

    def test_expired_entry_is_a_miss(self, clock):
        """Should drop entries older than the TTL on read."""
        cache = PlayerCache(ttl=timedelta(days=7), clock=clock)
        cache.set(1, {"id": 1})

        clock.advance(days=7, seconds=1)

        assert cache.get(1) is None
        assert cache.has(1) is False
        assert cache.stats().misses == 1

    def test_entry_valid_until_ttl(self, clock):
        """Should still serve an entry exactly at the TTL boundary."""
        cache = PlayerCache(ttl=timedelta(days=7), clock=clock)
        cache.set(1, {"id": 1})

        clock.advance(days=7)

        assert cache.get(1) is not None

    def test_evicts_oldest_when_full(self, clock):
        """Should evict the entry with the oldest cached_at when at capacity."""
        cache = PlayerCache(max_size=2, clock=clock)
        cache.set(1, {"id": 1})
        clock.advance(minutes=1)
        cache.set(2, {"id": 2})
        clock.advance(minutes=1)
        cache.set(3, {"id": 3})

        assert len(cache) == 2
        assert cache.has(1) is False
        assert cache.has(3) is True
        assert cache.stats().evictions == 1

    def test_overwrite_does_not_evict(self, clock):
        """Should replace an existing key without evicting others."""
        cache = PlayerCache(max_size=2, clock=clock)
        cache.set(1, {"id": 1})
        cache.set(2, {"id": 2})
        cache.set(2, {"id": 2, "name": "updated"})

        assert len(cache) == 2
        assert cache.stats().evictions == 0

    def test_clear_expired(self, clock):
        """Should remove only expired entries and report how many."""
        cache = PlayerCache(ttl=timedelta(days=1), clock=clock)
        cache.set(1, {"id": 1})
        clock.advance(days=2)
        cache.set(2, {"id": 2})

        assert cache.clear_expired() == 1
        assert cache.has(2) is True

    def test_delete_and_clear(self, clock):
        """Should delete single entries and clear everything."""
        cache = PlayerCache(clock=clock)
        cache.set(1, {"id": 1})
        cache.set(2, {"id": 2})

        assert cache.delete(1) is True
        assert cache.delete(1) is False
        cache.clear()
        assert len(cache) == 0


# ─── Persistence ────────────────────────────────────────────────────────────────

class TestCachePersistence:
    """Round trips through the player_cache table."""

    def test_persist_and_reload(self, db_session, clock):
        """Should restore live entries and hit counts into a fresh cache."""
        db = SqlAlchemyDatabaseService(db_session)
        cache = PlayerCache(clock=clock)
        cache.set(51001, {"id": 51001}, [{"games": {"position": "Midfielder"}}])
        cache.get(51001)

        assert cache.persist_to_database(db) == 1

        restored = PlayerCache(clock=clock)
        assert restored.load_from_database(db) == 1
        assert restored.entries()[0].hit_count == 1
        assert restored.get(51001)["player"] == {"id": 51001}

    def test_expired_rows_are_not_loaded(self, in_memory_db, clock):
        """Should skip rows past their TTL when loading."""
        cache = PlayerCache(clock=clock)
        cache.set(1, {"id": 1})
        cache.persist_to_database(in_memory_db)

        clock.advance(days=8)

        assert PlayerCache(clock=clock).load_from_database(in_memory_db) == 0

    def test_persist_empty_cache(self, in_memory_db, clock):
        """Should write nothing for an empty cache."""
        assert PlayerCache(clock=clock).persist_to_database(in_memory_db) == 0


# ─── CachedPlayerClient ─────────────────────────────────────────────────────────

class TestCachedPlayerClient:
    """Cache in front of the player source."""

    @pytest.mark.asyncio
    async def test_second_lookup_served_from_cache(self, clock):
        """Should call the source once and record the cache hit on the limiter."""
        source = FakePlayerSource({51001: make_player_response(51001)})
        limiter = ApiRateLimiter(daily_limit=100, clock=clock)
        client = CachedPlayerClient(source, PlayerCache(clock=clock), limiter)

        first = await client.fetch_player(51001, 2025)
        second = await client.fetch_player(51001, 2025)

        assert source.calls == [51001]
        assert second["player"] == first["player"]
        assert limiter.status().cache_hits == 1
