"""
Sync log data access.
"""
from typing import List

from app.models.models import SyncLog
from app.repositories.base import BaseRepository


class SyncLogRepository(BaseRepository[SyncLog]):

    def __init__(self, db):
        super().__init__(SyncLog, db)

    def recent(self, limit: int = 10) -> List[SyncLog]:
        return self.latest("timestamp", limit)
