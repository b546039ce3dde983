"""
Automated task scheduler for the transfer sync API.

This module provides scheduled background jobs for:
- Transfer sync on an adaptive cadence (6h normal, 2h emergency, 30min deadline day)
- Deadline-day sync checks every 30 minutes
- Daily player enrichment and enrichment retries
- Daily player cache cleanup and persistence

Scheduler: APScheduler (lightweight, FastAPI-compatible). All triggers run in UTC.
"""
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.core import metrics
from app.core.database import SessionLocal
from app.core.logging import get_logger
from app.repositories.database_service import SqlAlchemyDatabaseService
from app.services.enrichment.pipeline import EnrichmentProgress
from app.services.registry import ServiceRegistry
from app.services.sync.orchestrator import SyncResult
from app.services.sync.strategy import (
    SyncStrategy,
    next_sync_interval_minutes,
    should_run_deadline_cron,
)
from app.utils.timezone import utc_now

logger = get_logger(__name__)

TRANSFER_SYNC_JOB_ID = "transfer_sync"


class AutomationScheduler:
    """
    Main scheduler for automated background tasks.

    Each job opens its own database session and builds its orchestrator or
    pipeline from the shared service registry, so jobs share the daily quota
    and the player cache with the HTTP endpoints.
    """

    def __init__(
        self,
        services: ServiceRegistry,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.services = services
        self.settings = services.settings
        self._session_factory = session_factory
        self._clock = clock
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.current_interval_minutes: Optional[int] = None

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting automation scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Only one instance of each job
                "misfire_grace_time": 300,  # 5 minutes grace for misfires
            },
        )

        self._schedule_transfer_sync()
        self._schedule_deadline_sync()
        self._schedule_player_enrichment()
        self._schedule_enrichment_retry()
        self._schedule_cache_cleanup()

        self.scheduler.start()
        self.running = True
        metrics.update_scheduler_metrics(True, len(self.scheduler.get_jobs()))

        logger.info(f"Scheduler started with {len(self.scheduler.get_jobs())} jobs")
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        metrics.update_scheduler_metrics(False, 0)
        logger.info("Scheduler stopped")

    # ========================================================================
    # Job bodies (also callable directly, e.g. run_scheduler.py --trigger)
    # ========================================================================

    def current_strategy(self) -> SyncStrategy:
        return self.services.select_strategy(self._clock())

    async def run_transfer_sync(self, strategy: Optional[SyncStrategy] = None) -> Optional[SyncResult]:
        strategy = strategy or self.current_strategy()
        db = self._session_factory()
        try:
            orchestrator = self.services.orchestrator(SqlAlchemyDatabaseService(db))
            result = await orchestrator.execute(
                strategy,
                self.settings.CURRENT_SEASON,
                trigger="cron",
                context={"source": "scheduler", "job": TRANSFER_SYNC_JOB_ID},
            )
            logger.info(
                f"Transfer sync ({strategy.value}): {result.successful}/{result.total_processed} "
                f"successful ({result.duration_ms}ms)"
            )
            return result
        except Exception as e:
            logger.error(f"Transfer sync failed: {e}", exc_info=True)
            return None
        finally:
            db.close()
            self._reschedule_transfer_sync()

    async def run_deadline_sync(self) -> Optional[SyncResult]:
        if not should_run_deadline_cron(
            self._clock(),
            self.services.deadlines,
            self.settings.ENABLE_DEADLINE_CRON,
        ):
            logger.debug("Not a deadline day, skipping deadline sync")
            return None
        if self.current_strategy() == SyncStrategy.DEADLINE_DAY:
            logger.debug("Transfer sync already on the deadline_day cadence, skipping deadline sync")
            return None
        return await self.run_transfer_sync(SyncStrategy.DEADLINE_DAY)

    async def run_player_enrichment(self) -> Optional[EnrichmentProgress]:
        db = self._session_factory()
        try:
            db_service = SqlAlchemyDatabaseService(db)
            cache = self.services.player_cache
            cache.load_from_database(db_service)

            pipeline = self.services.enrichment_pipeline(db_service, use_cache=True)
            progress = await pipeline.enrich_batch(self.settings.CURRENT_SEASON)

            cache.persist_to_database(db_service)
            logger.info(
                f"Player enrichment: {progress.succeeded}/{progress.total} succeeded, "
                f"{progress.failed} failed"
            )
            return progress
        except Exception as e:
            logger.error(f"Player enrichment failed: {e}", exc_info=True)
            return None
        finally:
            db.close()

    async def run_enrichment_retry(self) -> Optional[EnrichmentProgress]:
        db = self._session_factory()
        try:
            pipeline = self.services.enrichment_pipeline(SqlAlchemyDatabaseService(db), use_cache=True)
            progress = await pipeline.retry_failed(
                self.settings.CURRENT_SEASON,
                max_retries=self.settings.ENRICHMENT_MAX_RETRIES,
            )
            logger.info(f"Enrichment retry: {progress.succeeded} resolved, {progress.failed} still failing")
            return progress
        except Exception as e:
            logger.error(f"Enrichment retry failed: {e}", exc_info=True)
            return None
        finally:
            db.close()

    async def run_cache_cleanup(self) -> int:
        cache = self.services.player_cache
        cleared = cache.clear_expired()

        db = self._session_factory()
        try:
            cache.persist_to_database(SqlAlchemyDatabaseService(db))
        except Exception as e:
            logger.error(f"Player cache persistence failed: {e}")
        finally:
            db.close()

        return cleared

    # ========================================================================
    # Schedules
    # ========================================================================

    def _schedule_transfer_sync(self):
        """
        Schedule: Transfer sync.

        Frequency: Adaptive. The interval follows the currently selected
        strategy and is re-evaluated after every run.
        """
        if self.scheduler is None:
            return

        self.current_interval_minutes = next_sync_interval_minutes(self.current_strategy())
        self.scheduler.add_job(
            self.run_transfer_sync,
            trigger=IntervalTrigger(minutes=self.current_interval_minutes, timezone="UTC"),
            id=TRANSFER_SYNC_JOB_ID,
            name="Sync Transfers",
        )

        logger.info(f"Scheduled: Transfer sync (every {self.current_interval_minutes} minutes)")

    def _reschedule_transfer_sync(self) -> None:
        if self.scheduler is None or not self.running:
            return

        interval = next_sync_interval_minutes(self.current_strategy())
        if interval == self.current_interval_minutes:
            return

        logger.info(
            f"Sync cadence changed: every {self.current_interval_minutes} -> {interval} minutes"
        )
        self.current_interval_minutes = interval
        self.scheduler.reschedule_job(
            TRANSFER_SYNC_JOB_ID,
            trigger=IntervalTrigger(minutes=interval, timezone="UTC"),
        )

    def _schedule_deadline_sync(self):
        """
        Schedule: Deadline-day sync.

        Frequency: Every 30 minutes; does nothing outside deadline windows
        unless ENABLE_DEADLINE_CRON is set.
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(minute="*/30", timezone="UTC"),
            id="deadline_sync",
            name="Deadline Day Transfer Sync",
        )
        async def deadline_sync_job():
            await self.run_deadline_sync()

        logger.info("Scheduled: Deadline sync check (every 30 minutes)")

    def _schedule_player_enrichment(self):
        """
        Schedule: Enrich under-enriched transfers with player details.

        Frequency: Daily at 03:00 UTC
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(hour=3, minute=0, timezone="UTC"),
            id="player_enrichment",
            name="Player Enrichment",
            misfire_grace_time=3600,
        )
        async def player_enrichment_job():
            await self.run_player_enrichment()

        logger.info("Scheduled: Player enrichment (daily at 03:00 UTC)")

    def _schedule_enrichment_retry(self):
        """
        Schedule: Retry failed enrichments with exponential backoff.

        Frequency: Daily at 04:00 UTC
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(hour=4, minute=0, timezone="UTC"),
            id="enrichment_retry",
            name="Enrichment Retry",
            misfire_grace_time=3600,
        )
        async def enrichment_retry_job():
            await self.run_enrichment_retry()

        logger.info("Scheduled: Enrichment retry (daily at 04:00 UTC)")

    def _schedule_cache_cleanup(self):
        """
        Schedule: Drop expired player cache entries and persist the rest.

        Frequency: Daily at 05:00 UTC
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(hour=5, minute=0, timezone="UTC"),
            id="player_cache_cleanup",
            name="Player Cache Cleanup",
        )
        async def cache_cleanup_job():
            await self.run_cache_cleanup()

        logger.info("Scheduled: Player cache cleanup (daily at 05:00 UTC)")

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        jobs = self.scheduler.get_jobs()

        logger.info("=" * 60)
        logger.info("SCHEDULED AUTOMATION JOBS")
        logger.info("=" * 60)

        for job in jobs:
            next_run = job.next_run_time
            next_run_str = next_run.strftime("%Y-%m-%d %H:%M UTC") if next_run else "Pending"

            logger.info(f"  - {job.name}")
            logger.info(f"    ID: {job.id}")
            logger.info(f"    Next run: {next_run_str}")

        logger.info("=" * 60)
        logger.info(f"Total jobs scheduled: {len(jobs)}")
        logger.info("=" * 60)

    def job_functions(self) -> dict:
        """Job id -> coroutine function, for manual triggering."""
        return {
            TRANSFER_SYNC_JOB_ID: self.run_transfer_sync,
            "deadline_sync": self.run_deadline_sync,
            "player_enrichment": self.run_player_enrichment,
            "enrichment_retry": self.run_enrichment_retry,
            "player_cache_cleanup": self.run_cache_cleanup,
        }
