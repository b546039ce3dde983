"""Sync orchestrator for API-Football transfers.

Coordinates one sync run:
1. Resolve the leagues included under the run's strategy
2. Open a best-effort transaction
3. Per league (sequentially): fetch raw rows, transform, upsert by api_transfer_id
4. Commit, or roll back and mark the whole run failed on a catastrophic error
5. Persist a sync log and update metrics

Failure isolation:
- A league whose fetch fails is recorded in errors and skipped.
- A record that fails to persist is recorded in errors and skipped.
- DatabaseUnavailableError (or a failed commit) rolls back the run and
  reclassifies every processed row as failed.

A run always returns a SyncResult; success means nothing failed and the
run was not rolled back.
"""
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.core import metrics
from app.core.exceptions import DatabaseUnavailableError, SourceFetchError
from app.core.logging import get_logger, sync_run_context
from app.repositories.database_service import DatabaseService, SyncLogEntry
from app.services.sync.adapters.api_football_adapter import FetchTransfersParams, TransferSource
from app.services.sync.adapters.transfer_transformer import TransferRecord, transform_batch
from app.services.sync.league_config import DEFAULT_LEAGUE_CONFIGS, LeagueConfig, leagues_for_strategy
from app.services.sync.rate_limiter import ApiRateLimiter
from app.services.sync.strategy import SyncStrategy
from app.utils.timezone import to_iso, utc_now

logger = get_logger(__name__)

STALE_AFTER = timedelta(hours=24)


@dataclass(frozen=True)
class SyncResult:
    strategy: SyncStrategy
    total_processed: int
    successful: int
    failed: int
    duration_ms: int
    groups_processed: int
    api_calls_used: int
    errors: tuple[str, ...] = ()
    rolled_back: bool = False

    @property
    def success(self) -> bool:
        return not self.rolled_back and self.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["strategy"] = self.strategy.value
        data["errors"] = list(self.errors)
        data["success"] = self.success
        return data


@dataclass
class _RunTally:
    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    rolled_back: bool = False
    errors: List[str] = field(default_factory=list)


class SyncOrchestrator:
    """
    Orchestrates transfer sync runs.

    Example:
        orchestrator = SyncOrchestrator(
            SqlAlchemyDatabaseService(db), transfer_client, rate_limiter
        )
        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2026)
    """

    def __init__(
        self,
        db_service: DatabaseService,
        source_client: TransferSource,
        rate_limiter: ApiRateLimiter,
        league_configs: Sequence[LeagueConfig] = DEFAULT_LEAGUE_CONFIGS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db_service
        self.source_client = source_client
        self.rate_limiter = rate_limiter
        self.league_configs = tuple(league_configs)
        self._clock = clock

    def get_leagues_for_strategy(self, strategy: SyncStrategy) -> List[LeagueConfig]:
        return leagues_for_strategy(strategy, self.league_configs)

    async def execute(
        self,
        strategy: SyncStrategy,
        season: int,
        trigger: str = "manual",
        context: Optional[Dict[str, Any]] = None,
    ) -> SyncResult:
        """
        Run one sync.

        Args:
            strategy: Strategy governing which leagues run
            season: Season year, e.g. 2026
            trigger: "cron" or "manual", recorded on the sync log
            context: Extra request context stored with the sync log

        Returns:
            Immutable SyncResult (also persisted as a sync log)
        """
        strategy = SyncStrategy(strategy)
        run_id = str(uuid.uuid4())
        start_time = self._clock()
        leagues = self.get_leagues_for_strategy(strategy)
        tally = _RunTally()

        with sync_run_context(run_id):
            logger.info(
                f"Starting {strategy.value} sync for season {season}: {len(leagues)} leagues ({trigger})"
            )

            transaction = None
            try:
                transaction = self.db.begin_transaction()

                for league in leagues:
                    await self._process_league(league, season, tally)

                transaction.commit()
            except Exception as e:
                logger.error(f"Sync failed, rolling back: {e}", exc_info=True)
                if transaction is not None:
                    try:
                        transaction.rollback()
                    except Exception as rollback_error:
                        logger.error(f"Rollback failed: {rollback_error}")

                tally.errors.append(f"Sync failed: {e}")
                tally.successful = 0
                tally.failed = tally.total_processed
                tally.rolled_back = True

            duration_ms = int((self._clock() - start_time).total_seconds() * 1000)
            result = SyncResult(
                strategy=strategy,
                total_processed=tally.total_processed,
                successful=tally.successful,
                failed=tally.failed,
                duration_ms=duration_ms,
                groups_processed=len(leagues),
                api_calls_used=self.rate_limiter.status().used,
                errors=tuple(tally.errors),
                rolled_back=tally.rolled_back,
            )

            self._persist_log(run_id, start_time, result, season, trigger, context)
            metrics.record_sync_run(strategy.value, trigger, result.successful, result.failed, duration_ms)

            logger.info(
                f"Sync {'completed' if result.success else 'finished with errors'}: "
                f"{result.successful}/{result.total_processed} successful, {result.failed} failed "
                f"({duration_ms}ms)",
                extra={
                    "inserted": tally.inserted,
                    "updated": tally.updated,
                    "unchanged": tally.unchanged,
                    "api_calls_used": result.api_calls_used,
                },
            )

        return result

    async def _process_league(self, league: LeagueConfig, season: int, tally: _RunTally) -> None:
        logger.info(f"Processing {league.name} (ID: {league.api_league_id})")

        try:
            rows = await self.source_client.fetch(
                FetchTransfersParams(season=season, league_id=league.api_league_id)
            )
        except SourceFetchError as e:
            message = f"Failed to process league {league.name}: {e}"
            logger.error(message)
            tally.errors.append(message)
            tally.failed += 1
            return

        tally.total_processed += len(rows)
        records = transform_batch(rows, season)

        for record in records:
            try:
                outcome = self._upsert(record)
            except DatabaseUnavailableError:
                raise
            except Exception as e:
                message = f"Failed to process transfer {record.api_transfer_id}: {e}"
                logger.warning(message)
                tally.errors.append(message)
                tally.failed += 1
                continue

            tally.successful += 1
            setattr(tally, outcome, getattr(tally, outcome) + 1)

        logger.info(
            f"{league.name}: {len(records)} transfers processed"
            + (f", {len(rows) - len(records)} invalid rows dropped" if len(rows) > len(records) else "")
        )

    def _upsert(self, record: TransferRecord) -> str:
        """Insert or update by api_transfer_id. Returns inserted, updated or unchanged."""
        existing = self.db.find_by_external_id(record.api_transfer_id)
        if existing is None:
            self.db.insert(record)
            return "inserted"

        patch = record.diff(existing)
        if not patch:
            return "unchanged"

        self.db.update(existing.id, patch)
        return "updated"

    def _persist_log(
        self,
        run_id: str,
        timestamp: datetime,
        result: SyncResult,
        season: int,
        trigger: str,
        context: Optional[Dict[str, Any]],
    ) -> None:
        entry = SyncLogEntry(
            id=run_id,
            timestamp=timestamp,
            strategy=result.strategy.value,
            season=season,
            trigger=trigger,
            success=result.success,
            result=result.to_dict(),
            rate_limit_status=self.rate_limiter.status().to_dict(),
            context=dict(context or {}),
        )
        try:
            self.db.record_sync_log(entry)
        except Exception as e:
            logger.error(f"Failed to persist sync log {run_id}: {e}")

    # ========================================================================
    # Status
    # ========================================================================

    def get_sync_status(self, limit: int = 10) -> Dict[str, Any]:
        """
        Sync health dashboard.

        Health is derived from the latest run: healthy when it succeeded,
        degraded when it was partial, unhealthy when it failed or is older
        than 24h. With no runs at all the health is unknown.
        """
        logs = self.db.get_recent_sync_logs(limit=100)
        last = logs[0] if logs else None

        if last is None:
            health = "unknown"
        elif self._clock() - last.timestamp > STALE_AFTER:
            health = "unhealthy"
        elif last.success:
            health = "healthy"
        elif last.result.get("successful", 0) > 0:
            health = "degraded"
        else:
            health = "unhealthy"

        return {
            "health_status": health,
            "last_sync": to_iso(last.timestamp) if last else None,
            "rate_limit": self.rate_limiter.status().to_dict(),
            "league_configs": [league.to_dict() for league in self.league_configs],
            "metrics": summarize_sync_logs(logs),
            "recent_logs": [log.to_dict() for log in logs[:limit]],
        }


def summarize_sync_logs(logs: Sequence[SyncLogEntry]) -> Dict[str, Any]:
    """Aggregate performance metrics over a window of sync logs."""
    total = len(logs)
    if total == 0:
        return {
            "total_syncs": 0,
            "successful_syncs": 0,
            "success_rate": 0.0,
            "average_duration_ms": 0,
            "total_transfers_processed": 0,
            "transfers_per_second": 0.0,
            "api_calls_per_transfer": 0.0,
            "by_strategy": {},
            "by_trigger": {},
        }

    successful = sum(1 for log in logs if log.success)
    durations = [log.result.get("duration_ms", 0) for log in logs]
    processed = sum(log.result.get("total_processed", 0) for log in logs)
    api_calls = sum(log.result.get("api_calls_used", 0) for log in logs)
    total_seconds = sum(durations) / 1000

    by_strategy: Dict[str, int] = {}
    by_trigger: Dict[str, int] = {}
    for log in logs:
        by_strategy[log.strategy] = by_strategy.get(log.strategy, 0) + 1
        by_trigger[log.trigger] = by_trigger.get(log.trigger, 0) + 1

    return {
        "total_syncs": total,
        "successful_syncs": successful,
        "success_rate": round(successful / total * 100, 2),
        "average_duration_ms": round(sum(durations) / total),
        "total_transfers_processed": processed,
        "transfers_per_second": round(processed / total_seconds, 2) if total_seconds else 0.0,
        "api_calls_per_transfer": round(api_calls / processed, 3) if processed else 0.0,
        "by_strategy": by_strategy,
        "by_trigger": by_trigger,
    }
