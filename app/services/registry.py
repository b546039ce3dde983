"""
Process-wide service registry.

One registry is built at startup and held on ``app.state.services`` (and by
the standalone scheduler runner). It owns the collaborators that must be
shared across requests and jobs: the daily quota, the HTTP client, the
player cache and the manual sync limiter. Per-request objects (orchestrator,
pipeline) are built from it around a request-scoped DatabaseService.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.logging import get_logger
from app.repositories.database_service import DatabaseService
from app.services.core.api_football_client import ApiFootballClient
from app.services.core.retry import RetryPolicy
from app.services.enrichment.pipeline import EnrichmentPipeline
from app.services.enrichment.player_cache import CachedPlayerClient, PlayerCache
from app.services.enrichment.player_client import PlayerEnrichmentClient, PlayerSource
from app.services.sync.adapters.api_football_adapter import ApiFootballTransferClient, TransferSource
from app.services.sync.manual_sync_limiter import ManualSyncLimiter, SqlAlchemyManualSyncStore
from app.services.sync.orchestrator import SyncOrchestrator
from app.services.sync.rate_limiter import ApiRateLimiter
from app.services.sync.strategy import SyncStrategy, select_strategy

logger = get_logger(__name__)


@dataclass
class ServiceRegistry:
    settings: Settings
    rate_limiter: ApiRateLimiter
    transfer_client: TransferSource
    player_client: PlayerSource
    player_cache: PlayerCache
    manual_sync_limiter: ManualSyncLimiter
    api_client: Optional[ApiFootballClient] = None

    @property
    def deadlines(self) -> Optional[List[datetime]]:
        return self.settings.transfer_deadlines

    def select_strategy(
        self,
        now: datetime,
        manual_strategy: Optional[SyncStrategy] = None,
        deadline_hint: bool = False,
    ) -> SyncStrategy:
        return select_strategy(
            now,
            override_flag=self.settings.DEADLINE_DAY_MODE,
            manual_strategy=manual_strategy,
            deadline_hint=deadline_hint,
            limiter_emergency=self.rate_limiter.status().emergency_mode,
            deadlines=self.deadlines,
        )

    def orchestrator(self, db_service: DatabaseService) -> SyncOrchestrator:
        return SyncOrchestrator(db_service, self.transfer_client, self.rate_limiter)

    def enrichment_pipeline(self, db_service: DatabaseService, use_cache: bool = True) -> EnrichmentPipeline:
        player_client = self.player_client
        if use_cache:
            player_client = CachedPlayerClient(self.player_client, self.player_cache, self.rate_limiter)

        return EnrichmentPipeline(
            db_service,
            player_client,
            batch_size=self.settings.ENRICHMENT_BATCH_SIZE,
            record_delay=self.settings.ENRICHMENT_RECORD_DELAY,
            batch_delay=self.settings.ENRICHMENT_BATCH_DELAY,
            max_records=self.settings.ENRICHMENT_MAX_RECORDS,
            retry_policy=RetryPolicy(
                base_delay=self.settings.ENRICHMENT_RETRY_BASE_DELAY,
                multiplier=2.0,
                max_delay=60.0,
            ),
        )

    async def close(self) -> None:
        if self.api_client is not None:
            await self.api_client.close()


def build_registry(settings: Settings, session_factory: Callable[[], Session]) -> ServiceRegistry:
    """Wire the production collaborators from settings."""
    rate_limiter = ApiRateLimiter.from_settings(settings)
    api_client = ApiFootballClient(
        api_key=settings.API_FOOTBALL_KEY,
        rate_limiter=rate_limiter,
        base_url=settings.API_FOOTBALL_BASE_URL,
        timeout=settings.API_FOOTBALL_TIMEOUT,
    )

    if settings.MANUAL_SYNC_STORAGE == "database":
        store = SqlAlchemyManualSyncStore(session_factory)
    else:
        store = None

    if not settings.API_FOOTBALL_KEY:
        logger.warning("API_FOOTBALL_KEY not configured - provider requests will be rejected")

    return ServiceRegistry(
        settings=settings,
        rate_limiter=rate_limiter,
        transfer_client=ApiFootballTransferClient(api_client, max_pages=settings.API_FOOTBALL_MAX_PAGES),
        player_client=PlayerEnrichmentClient(api_client),
        player_cache=PlayerCache(
            ttl=timedelta(days=settings.PLAYER_CACHE_TTL_DAYS),
            max_size=settings.PLAYER_CACHE_MAX_SIZE,
        ),
        manual_sync_limiter=ManualSyncLimiter(
            store=store,
            window=timedelta(minutes=settings.MANUAL_SYNC_WINDOW_MINUTES),
        ),
        api_client=api_client,
    )
