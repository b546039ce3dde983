"""
DatabaseService: the persistence contract used by the sync orchestrator
and the enrichment pipeline.

Two implementations share the contract:
- SqlAlchemyDatabaseService: the real store (one Session per service)
- InMemoryDatabaseService (app.repositories.memory): dict-backed fake with
  snapshot rollback, used in tests and local dry runs

Transactions are best-effort. On the SQLAlchemy store, commit/rollback map
to the session's transaction, and each transfer insert/update runs in its
own savepoint. Sync logs and enrichment writes commit on their own (and
roll the session back when they fail) so they survive a rolled-back sync.
"""
import functools
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import DatabaseUnavailableError, RecordProcessingError
from app.core.logging import get_logger
from app.models.models import EnrichmentLog, SyncLog
from app.repositories.enrichment_repository import EnrichmentLogRepository, PlayerCacheRepository
from app.repositories.sync_log_repository import SyncLogRepository
from app.repositories.transfer_repository import TransferRepository
from app.services.sync.adapters.transfer_transformer import TransferRecord
from app.utils.timezone import ensure_utc, to_iso, utc_now

logger = get_logger(__name__)


# ============================================================================
# Value objects exchanged through the contract
# ============================================================================

@dataclass
class EnrichmentError:
    """A failed enrichment attempt for one transfer."""
    record_id: str
    external_id: Optional[int]
    message: str
    timestamp: datetime
    retry_count: int = 0
    season: Optional[int] = None
    id: Optional[str] = None  # durable log row id, set once appended

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = to_iso(self.timestamp)
        return data


@dataclass(frozen=True)
class SyncLogEntry:
    id: str
    timestamp: datetime
    strategy: str
    season: int
    trigger: str  # "cron" or "manual"
    success: bool
    result: Dict[str, Any]
    rate_limit_status: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = to_iso(self.timestamp)
        return data


@dataclass(frozen=True)
class CachedPlayer:
    player_id: int
    data: Dict[str, Any]
    statistics: List[Dict[str, Any]]
    cached_at: datetime
    expires_at: datetime
    hit_count: int = 0


# ============================================================================
# Contract
# ============================================================================

class Transaction(ABC):

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class DatabaseService(ABC):
    """Persistence operations needed by sync and enrichment."""

    # Transfers

    @abstractmethod
    def begin_transaction(self) -> Transaction:
        ...

    @abstractmethod
    def find_by_external_id(self, api_transfer_id: int) -> Optional[Any]:
        ...

    @abstractmethod
    def insert(self, record: TransferRecord) -> Any:
        ...

    @abstractmethod
    def update(self, id: str, patch: Dict[str, Any]) -> Any:
        """Apply ``patch`` and advance ``updated_at``. Raises RecordProcessingError if missing."""

    @abstractmethod
    def get_transfer(self, id: str) -> Optional[Any]:
        ...

    # Enrichment

    @abstractmethod
    def get_under_enriched(self, season: int, after_cursor: Optional[str] = None, limit: int = 1000) -> List[Any]:
        ...

    @abstractmethod
    def update_enrichment(self, id: str, patch: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def append_enrichment_error(self, error: EnrichmentError) -> EnrichmentError:
        ...

    @abstractmethod
    def get_unresolved_enrichment_errors(self, max_retries: int, season: Optional[int] = None) -> List[EnrichmentError]:
        ...

    @abstractmethod
    def resolve_enrichment_error(self, id: str) -> None:
        ...

    @abstractmethod
    def increment_enrichment_retry(self, id: str) -> None:
        ...

    @abstractmethod
    def get_enrichment_stats(self, season: int) -> Dict[str, Any]:
        ...

    # Sync logs

    @abstractmethod
    def record_sync_log(self, entry: SyncLogEntry) -> None:
        ...

    @abstractmethod
    def get_recent_sync_logs(self, limit: int = 10) -> List[SyncLogEntry]:
        ...

    # Player cache

    @abstractmethod
    def load_player_cache(self, now: datetime) -> List[CachedPlayer]:
        ...

    @abstractmethod
    def save_player_cache(self, entries: Iterable[CachedPlayer]) -> int:
        ...


def enrichment_stats(total: int, under_enriched: int, unresolved_errors: int) -> Dict[str, Any]:
    enriched = total - under_enriched
    return {
        "total": total,
        "enriched": enriched,
        "under_enriched": under_enriched,
        "unresolved_errors": unresolved_errors,
        "completion_percentage": round(enriched / total * 100, 2) if total else 100.0,
    }


# ============================================================================
# SQLAlchemy implementation
# ============================================================================

def _translate_errors(method):
    """Map connection-level SQLAlchemy errors to DatabaseUnavailableError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (OperationalError, InterfaceError) as e:
            raise DatabaseUnavailableError(f"Database unavailable: {e.orig or e}") from e

    return wrapper


class SqlAlchemyTransaction(Transaction):

    def __init__(self, session: Session):
        self.session = session

    @_translate_errors
    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SqlAlchemyDatabaseService(DatabaseService):
    """DatabaseService over a single SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self.transfers = TransferRepository(db)
        self.sync_logs = SyncLogRepository(db)
        self.enrichment_logs = EnrichmentLogRepository(db)
        self.player_cache = PlayerCacheRepository(db)

    @contextmanager
    def _committing(self):
        """Commit the writes made in the block; roll the session back if any of them fail."""
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # Transfers

    def begin_transaction(self) -> Transaction:
        return SqlAlchemyTransaction(self.db)

    @_translate_errors
    def find_by_external_id(self, api_transfer_id: int):
        return self.transfers.find_by_api_transfer_id(api_transfer_id)

    # insert/update run inside a savepoint so a failed flush only discards
    # that record and the surrounding sync transaction stays usable

    @_translate_errors
    def insert(self, record: TransferRecord):
        with self.db.begin_nested():
            return self.transfers.create(**record.to_dict())

    @_translate_errors
    def update(self, id: str, patch: Dict[str, Any]):
        transfer = self.transfers.find_by_id(id)
        if transfer is None:
            raise RecordProcessingError(f"Transfer {id} not found")
        with self.db.begin_nested():
            return self.transfers.update(transfer, **patch)

    @_translate_errors
    def get_transfer(self, id: str):
        return self.transfers.find_by_id(id)

    # Enrichment

    @_translate_errors
    def get_under_enriched(self, season: int, after_cursor: Optional[str] = None, limit: int = 1000):
        return self.transfers.get_under_enriched(season, after_id=after_cursor, limit=limit)

    @_translate_errors
    def update_enrichment(self, id: str, patch: Dict[str, Any]) -> None:
        transfer = self.transfers.find_by_id(id)
        if transfer is None:
            raise RecordProcessingError(f"Transfer {id} not found")
        with self._committing():
            self.transfers.update(transfer, **patch)

    @_translate_errors
    def append_enrichment_error(self, error: EnrichmentError) -> EnrichmentError:
        with self._committing():
            row = self.enrichment_logs.create(
                transfer_id=error.record_id,
                player_id=error.external_id,
                season=error.season,
                error=error.message,
                timestamp=error.timestamp,
                retry_count=error.retry_count,
                resolved=False,
            )
            error.id = row.id
        return error

    @_translate_errors
    def get_unresolved_enrichment_errors(self, max_retries: int, season: Optional[int] = None) -> List[EnrichmentError]:
        return [
            EnrichmentError(
                id=row.id,
                record_id=row.transfer_id,
                external_id=row.player_id,
                message=row.error,
                timestamp=ensure_utc(row.timestamp),
                retry_count=row.retry_count,
                season=row.season,
            )
            for row in self.enrichment_logs.unresolved(max_retries, season)
        ]

    def _get_log(self, id: str) -> EnrichmentLog:
        row = self.enrichment_logs.find_by_id(id)
        if row is None:
            raise RecordProcessingError(f"Enrichment log {id} not found")
        return row

    @_translate_errors
    def resolve_enrichment_error(self, id: str) -> None:
        row = self._get_log(id)
        with self._committing():
            self.enrichment_logs.update(row, resolved=True)

    @_translate_errors
    def increment_enrichment_retry(self, id: str) -> None:
        row = self._get_log(id)
        with self._committing():
            self.enrichment_logs.update(row, retry_count=row.retry_count + 1, timestamp=utc_now())

    @_translate_errors
    def get_enrichment_stats(self, season: int) -> Dict[str, Any]:
        return enrichment_stats(
            total=self.transfers.count_for_season(season),
            under_enriched=self.transfers.count_for_season(season, under_enriched_only=True),
            unresolved_errors=self.enrichment_logs.count_unresolved(season),
        )

    # Sync logs

    @_translate_errors
    def record_sync_log(self, entry: SyncLogEntry) -> None:
        result = entry.result
        with self._committing():
            self.sync_logs.create(
                id=entry.id,
                timestamp=entry.timestamp,
                strategy=entry.strategy,
                season=entry.season,
                trigger_source=entry.trigger,
                success=entry.success,
                total_processed=result.get("total_processed", 0),
                successful=result.get("successful", 0),
                failed=result.get("failed", 0),
                duration_ms=result.get("duration_ms", 0),
                groups_processed=result.get("groups_processed", 0),
                api_calls_used=result.get("api_calls_used", 0),
                errors=list(result.get("errors", [])),
                rate_limit_status=entry.rate_limit_status,
                context=entry.context,
            )

    @_translate_errors
    def get_recent_sync_logs(self, limit: int = 10) -> List[SyncLogEntry]:
        return [_sync_log_entry(row) for row in self.sync_logs.recent(limit)]

    # Player cache

    @_translate_errors
    def load_player_cache(self, now: datetime) -> List[CachedPlayer]:
        return [
            CachedPlayer(
                player_id=row.player_id,
                data=row.data,
                statistics=row.statistics or [],
                cached_at=ensure_utc(row.cached_at),
                expires_at=ensure_utc(row.expires_at),
                hit_count=row.hit_count,
            )
            for row in self.player_cache.live_entries(now)
        ]

    @_translate_errors
    def save_player_cache(self, entries: Iterable[CachedPlayer]) -> int:
        saved = 0
        with self._committing():
            for entry in entries:
                fields = dict(
                    data=entry.data,
                    statistics=entry.statistics,
                    cached_at=entry.cached_at,
                    expires_at=entry.expires_at,
                    hit_count=entry.hit_count,
                )
                existing = self.player_cache.find_by_player_id(entry.player_id)
                if existing is None:
                    self.player_cache.create(id=str(uuid.uuid4()), player_id=entry.player_id, **fields)
                else:
                    self.player_cache.update(existing, **fields)
                saved += 1
        return saved


def _sync_log_entry(row: SyncLog) -> SyncLogEntry:
    return SyncLogEntry(
        id=row.id,
        timestamp=ensure_utc(row.timestamp),
        strategy=row.strategy,
        season=row.season,
        trigger=row.trigger_source,
        success=row.success,
        result={
            "strategy": row.strategy,
            "total_processed": row.total_processed,
            "successful": row.successful,
            "failed": row.failed,
            "duration_ms": row.duration_ms,
            "groups_processed": row.groups_processed,
            "api_calls_used": row.api_calls_used,
            "errors": list(row.errors or []),
        },
        rate_limit_status=row.rate_limit_status or {},
        context=row.context or {},
    )
