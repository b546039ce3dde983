"""
Enrichment failure log and persisted player cache.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_

from app.models.models import EnrichmentLog, PlayerCacheEntry
from app.repositories.base import BaseRepository


class EnrichmentLogRepository(BaseRepository[EnrichmentLog]):

    def __init__(self, db):
        super().__init__(EnrichmentLog, db)

    def unresolved(self, max_retries: int, season: Optional[int] = None) -> List[EnrichmentLog]:
        """Unresolved failures still under the retry budget, oldest first."""
        query = self.query().filter(
            EnrichmentLog.resolved.is_(False),
            EnrichmentLog.retry_count < max_retries,
        )
        if season is not None:
            query = query.filter(or_(EnrichmentLog.season == season, EnrichmentLog.season.is_(None)))
        return query.order_by(EnrichmentLog.timestamp, EnrichmentLog.id).all()

    def count_unresolved(self, season: Optional[int] = None) -> int:
        criterion = [EnrichmentLog.resolved.is_(False)]
        if season is not None:
            criterion.append(EnrichmentLog.season == season)
        return self.count(*criterion)


class PlayerCacheRepository(BaseRepository[PlayerCacheEntry]):

    def __init__(self, db):
        super().__init__(PlayerCacheEntry, db)

    def find_by_player_id(self, player_id: int) -> Optional[PlayerCacheEntry]:
        return self.where_first(PlayerCacheEntry.player_id == player_id)

    def live_entries(self, now: datetime) -> List[PlayerCacheEntry]:
        return self.where(PlayerCacheEntry.expires_at > now)
