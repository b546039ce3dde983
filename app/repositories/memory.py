"""
In-memory DatabaseService.

Dict-backed and fully transactional for transfers: begin_transaction()
snapshots the transfer rows and rollback() restores the snapshot. Rows are
handed out as SimpleNamespace copies so callers cannot mutate the store
behind its back.
"""
import copy
import uuid
from datetime import datetime
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.core.exceptions import RecordProcessingError
from app.repositories.database_service import (
    CachedPlayer,
    DatabaseService,
    EnrichmentError,
    SyncLogEntry,
    Transaction,
    enrichment_stats,
)
from app.repositories.transfer_repository import UNKNOWN_NATIONALITY
from app.services.sync.adapters.transfer_transformer import TransferRecord
from app.utils.timezone import utc_now


def _is_under_enriched(row: Dict[str, Any]) -> bool:
    return (
        row.get("position") is None
        or row.get("age") is None
        or row.get("nationality") in (None, UNKNOWN_NATIONALITY)
    )


class InMemoryTransaction(Transaction):

    def __init__(self, service: "InMemoryDatabaseService"):
        self._service = service
        self._snapshot = copy.deepcopy(service._transfers)
        self.committed = False
        self.rolled_back = False

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self._service._transfers = self._snapshot
        self.rolled_back = True


class InMemoryDatabaseService(DatabaseService):

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._transfers: Dict[str, Dict[str, Any]] = {}
        self._enrichment_errors: Dict[str, Dict[str, Any]] = {}
        self._sync_logs: List[SyncLogEntry] = []
        self._player_cache: Dict[int, CachedPlayer] = {}
        self.transactions: List[InMemoryTransaction] = []

    # Transfers

    def begin_transaction(self) -> Transaction:
        transaction = InMemoryTransaction(self)
        self.transactions.append(transaction)
        return transaction

    def _find_row(self, api_transfer_id: int) -> Optional[Dict[str, Any]]:
        for row in self._transfers.values():
            if row["api_transfer_id"] == api_transfer_id:
                return row
        return None

    def find_by_external_id(self, api_transfer_id: int):
        row = self._find_row(api_transfer_id)
        return SimpleNamespace(**row) if row else None

    def insert(self, record: TransferRecord):
        if self._find_row(record.api_transfer_id) is not None:
            raise RecordProcessingError(f"Duplicate api_transfer_id {record.api_transfer_id}")
        now = self._clock()
        row = {
            **record.to_dict(),
            "id": str(uuid.uuid4()),
            "player_photo_url": None,
            "created_at": now,
            "updated_at": now,
        }
        self._transfers[row["id"]] = row
        return SimpleNamespace(**row)

    def update(self, id: str, patch: Dict[str, Any]):
        row = self._transfers.get(id)
        if row is None:
            raise RecordProcessingError(f"Transfer {id} not found")
        row.update(patch)
        row["updated_at"] = self._clock()
        return SimpleNamespace(**row)

    def get_transfer(self, id: str):
        row = self._transfers.get(id)
        return SimpleNamespace(**row) if row else None

    def all_transfers(self) -> List[SimpleNamespace]:
        return [SimpleNamespace(**row) for row in self._transfers.values()]

    # Enrichment

    def get_under_enriched(self, season: int, after_cursor: Optional[str] = None, limit: int = 1000):
        rows = sorted(
            (r for r in self._transfers.values() if r["season"] == season and _is_under_enriched(r)),
            key=lambda r: (r["created_at"], r["id"]),
        )
        cursor = self._transfers.get(after_cursor) if after_cursor else None
        if cursor is not None:
            key = (cursor["created_at"], cursor["id"])
            rows = [r for r in rows if (r["created_at"], r["id"]) > key]
        return [SimpleNamespace(**r) for r in rows[:limit]]

    def update_enrichment(self, id: str, patch: Dict[str, Any]) -> None:
        self.update(id, patch)

    def append_enrichment_error(self, error: EnrichmentError) -> EnrichmentError:
        error.id = error.id or str(uuid.uuid4())
        self._enrichment_errors[error.id] = {"error": copy.copy(error), "resolved": False}
        return error

    def get_unresolved_enrichment_errors(self, max_retries: int, season: Optional[int] = None) -> List[EnrichmentError]:
        return [
            copy.copy(entry["error"])
            for entry in self._enrichment_errors.values()
            if not entry["resolved"]
            and entry["error"].retry_count < max_retries
            and (season is None or entry["error"].season in (None, season))
        ]

    def _entry(self, id: str) -> Dict[str, Any]:
        if id not in self._enrichment_errors:
            raise RecordProcessingError(f"Enrichment log {id} not found")
        return self._enrichment_errors[id]

    def resolve_enrichment_error(self, id: str) -> None:
        self._entry(id)["resolved"] = True

    def increment_enrichment_retry(self, id: str) -> None:
        self._entry(id)["error"].retry_count += 1

    def enrichment_error_state(self, id: str) -> Dict[str, Any]:
        entry = self._entry(id)
        return {"resolved": entry["resolved"], "retry_count": entry["error"].retry_count}

    def get_enrichment_stats(self, season: int) -> Dict[str, Any]:
        rows = [r for r in self._transfers.values() if r["season"] == season]
        unresolved = sum(
            1 for e in self._enrichment_errors.values()
            if not e["resolved"] and e["error"].season == season
        )
        return enrichment_stats(
            total=len(rows),
            under_enriched=sum(1 for r in rows if _is_under_enriched(r)),
            unresolved_errors=unresolved,
        )

    # Sync logs

    def record_sync_log(self, entry: SyncLogEntry) -> None:
        self._sync_logs.append(entry)

    def get_recent_sync_logs(self, limit: int = 10) -> List[SyncLogEntry]:
        return sorted(self._sync_logs, key=lambda e: e.timestamp, reverse=True)[:limit]

    # Player cache

    def load_player_cache(self, now: datetime) -> List[CachedPlayer]:
        return [entry for entry in self._player_cache.values() if entry.expires_at > now]

    def save_player_cache(self, entries: Iterable[CachedPlayer]) -> int:
        saved = 0
        for entry in entries:
            self._player_cache[entry.player_id] = entry
            saved += 1
        return saved
