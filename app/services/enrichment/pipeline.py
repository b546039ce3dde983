"""
Player enrichment pipeline.

Fills position, age, nationality and photo URL on transfers that the
/transfers endpoint leaves incomplete:

1. Load under-enriched transfers for a season, resuming after a cursor
2. Process them in batches, one record at a time, with delays between
   records and between batches to stay inside the provider quota
3. Per record: fetch /players, normalize, persist
4. Failures are logged durably (enrichment_logs) and never abort the run

retry_failed() replays unresolved enrichment logs with exponential backoff.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core import metrics
from app.core.logging import get_logger
from app.repositories.database_service import DatabaseService, EnrichmentError
from app.repositories.transfer_repository import UNKNOWN_NATIONALITY
from app.services.core.retry import RetryPolicy
from app.services.enrichment.normalization import enrich_player_data
from app.services.enrichment.player_client import PlayerSource
from app.utils.timezone import to_iso, utc_now

logger = get_logger(__name__)

DEFAULT_VALUES = {
    "position": None,
    "age": None,
    "nationality": UNKNOWN_NATIONALITY,
}


@dataclass
class EnrichmentProgress:
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    last_processed_id: Optional[str] = None
    started_at: datetime = field(default_factory=utc_now)
    errors: List[EnrichmentError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "last_processed_id": self.last_processed_id,
            "started_at": to_iso(self.started_at),
            "errors": [error.to_dict() for error in self.errors],
        }


def is_fully_enriched(transfer: Any) -> bool:
    return bool(
        transfer.position
        and transfer.age
        and transfer.nationality
        and transfer.nationality != UNKNOWN_NATIONALITY
    )


class EnrichmentPipeline:
    """
    Enriches transfers with player details.

    Example:
        pipeline = EnrichmentPipeline(db_service, CachedPlayerClient(client, cache, limiter))
        progress = await pipeline.enrich_batch(season=2026)
    """

    def __init__(
        self,
        db_service: DatabaseService,
        player_client: PlayerSource,
        batch_size: int = 50,
        record_delay: float = 0.1,
        batch_delay: float = 1.0,
        max_records: int = 1000,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db_service
        self.player_client = player_client
        self.batch_size = max(1, batch_size)
        self.record_delay = record_delay
        self.batch_delay = batch_delay
        self.max_records = max_records
        self.retry_policy = retry_policy or RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=60.0)
        self._sleep = sleep
        self._clock = clock

    async def enrich_batch(self, season: int, resume_cursor: Optional[str] = None) -> EnrichmentProgress:
        """
        Enrich under-enriched transfers for a season.

        Args:
            season: Season year used for the /players lookup
            resume_cursor: Transfer id to resume after (progress.last_processed_id of a previous run)

        Returns:
            EnrichmentProgress with per-record errors
        """
        progress = EnrichmentProgress(started_at=self._clock())
        transfers = self.db.get_under_enriched(season, after_cursor=resume_cursor, limit=self.max_records)
        progress.total = len(transfers)

        logger.info(f"Found {len(transfers)} under-enriched transfers for season {season}")
        if not transfers:
            return progress

        batch_count = (len(transfers) + self.batch_size - 1) // self.batch_size

        for batch_number, start in enumerate(range(0, len(transfers), self.batch_size), start=1):
            batch = transfers[start:start + self.batch_size]
            logger.info(f"Processing batch {batch_number}/{batch_count} ({len(batch)} transfers)")

            for index, transfer in enumerate(batch):
                await self._process_transfer(transfer, season, progress)
                if index < len(batch) - 1 and self.record_delay > 0:
                    await self._sleep(self.record_delay)

            if batch_number < batch_count and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        logger.info(
            f"Enrichment finished: {progress.succeeded}/{progress.total} succeeded, {progress.failed} failed"
        )
        return progress

    async def _enrich_transfer(self, transfer: Any, season: int) -> bool:
        """
        Fetch, normalize and persist one transfer.

        Returns:
            False if the transfer was already fully enriched (no fetch made)
        """
        if is_fully_enriched(transfer):
            return False

        response = await self.player_client.fetch_player(transfer.player_id, season)
        enriched = enrich_player_data(response, today=self._clock().date())

        patch = {
            "position": enriched["position"] if enriched["position"] is not None else DEFAULT_VALUES["position"],
            "age": enriched["age"] if enriched["age"] is not None else DEFAULT_VALUES["age"],
            "nationality": enriched["nationality"] or DEFAULT_VALUES["nationality"],
            "player_photo_url": enriched["player_photo_url"],
        }
        self.db.update_enrichment(transfer.id, patch)
        return True

    async def _process_transfer(self, transfer: Any, season: int, progress: EnrichmentProgress) -> None:
        # A failed write rolls the session back and expires ORM rows
        transfer_id, player_id = transfer.id, transfer.player_id
        try:
            fetched = await self._enrich_transfer(transfer, season)
        except Exception as e:
            logger.warning(f"Failed to enrich transfer {transfer_id} (player {player_id}): {e}")
            error = EnrichmentError(
                record_id=transfer_id,
                external_id=player_id,
                message=str(e),
                timestamp=self._clock(),
                retry_count=0,
                season=season,
            )
            progress.errors.append(error)
            self._log_error(error)
            progress.failed += 1
            metrics.enrichment_records_total.labels(result="failed").inc()
        else:
            progress.succeeded += 1
            metrics.enrichment_records_total.labels(result="enriched" if fetched else "skipped").inc()

        progress.processed += 1
        progress.last_processed_id = transfer_id

    def _log_error(self, error: EnrichmentError) -> None:
        try:
            self.db.append_enrichment_error(error)
        except Exception as log_error:
            logger.error(f"Failed to log enrichment error for transfer {error.record_id}: {log_error}")

    async def retry_failed(self, season: int, max_retries: int = 3) -> EnrichmentProgress:
        """
        Replay unresolved enrichment logs for a season.

        Each entry waits base_delay * 2 ** retry_count before its attempt.
        Success resolves the log; failure bumps its retry_count.
        """
        failed_logs = self.db.get_unresolved_enrichment_errors(max_retries, season=season)
        progress = EnrichmentProgress(total=len(failed_logs), started_at=self._clock())

        if not failed_logs:
            logger.info("No failed enrichments to retry")
            return progress

        logger.info(f"Retrying {len(failed_logs)} failed enrichments (max {max_retries} retries)")

        for log in failed_logs:
            delay = self.retry_policy.delay_for(log.retry_count)
            if delay > 0:
                await self._sleep(delay)

            transfer = self.db.get_transfer(log.record_id)
            if transfer is None:
                logger.warning(f"Transfer {log.record_id} not found for retry, resolving log {log.id}")
                self.db.resolve_enrichment_error(log.id)
                progress.processed += 1
                continue

            try:
                await self._enrich_transfer(transfer, season)
            except Exception as e:
                logger.warning(f"Retry failed for transfer {log.record_id}: {e}")
                self.db.increment_enrichment_retry(log.id)
                progress.errors.append(EnrichmentError(
                    id=log.id,
                    record_id=log.record_id,
                    external_id=log.external_id,
                    message=str(e),
                    timestamp=self._clock(),
                    retry_count=log.retry_count + 1,
                    season=season,
                ))
                progress.failed += 1
                metrics.enrichment_records_total.labels(result="retry_failed").inc()
            else:
                self.db.resolve_enrichment_error(log.id)
                progress.succeeded += 1
                metrics.enrichment_records_total.labels(result="retry_resolved").inc()

            progress.processed += 1
            progress.last_processed_id = log.record_id

        logger.info(f"Retry finished: {progress.succeeded} resolved, {progress.failed} still failing")
        return progress

    def get_enrichment_stats(self, season: int) -> Dict[str, Any]:
        return self.db.get_enrichment_stats(season)
