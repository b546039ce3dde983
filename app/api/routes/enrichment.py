"""Player enrichment API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from starlette.requests import Request

from app.api.deps import get_database_service, get_services
from app.core.auth import is_trusted_cron_request, validate_manual_token
from app.core.limiter import limiter
from app.core.logging import get_logger
from app.repositories.database_service import DatabaseService
from app.services.registry import ServiceRegistry
from app.utils.timezone import to_iso, utc_now

logger = get_logger(__name__)

router = APIRouter(prefix="/enrich-players", tags=["enrichment"])


class EnrichRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    season: Optional[int] = Field(None, ge=2000, le=2100)
    resume_from_id: Optional[str] = Field(None, alias="resumeFromId")
    use_cache: bool = Field(True, alias="useCache")
    manual_token: Optional[str] = Field(None, alias="manualToken")


class RetryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    season: Optional[int] = Field(None, ge=2000, le=2100)
    max_retries: Optional[int] = Field(None, ge=1, le=10, alias="maxRetries")
    manual_token: Optional[str] = Field(None, alias="manualToken")


def _authorize(request: Request, manual_token: Optional[str]) -> None:
    if not is_trusted_cron_request(request):
        validate_manual_token(manual_token)


@router.post("")
@limiter.limit("10/minute")
async def enrich_players(
    request: Request,
    body: Optional[EnrichRequest] = None,
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
):
    """
    Enrich under-enriched transfers with player details.

    With useCache (default), the player cache is loaded from the database
    before the run and persisted after it.
    """
    body = body or EnrichRequest()
    _authorize(request, body.manual_token)

    season = body.season or services.settings.CURRENT_SEASON
    cache = services.player_cache

    try:
        if body.use_cache:
            cache.load_from_database(db_service)

        pipeline = services.enrichment_pipeline(db_service, use_cache=body.use_cache)
        progress = await pipeline.enrich_batch(season, resume_cursor=body.resume_from_id)

        if body.use_cache:
            cache.persist_to_database(db_service)
    except Exception as e:
        logger.error(f"Player enrichment failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Enrichment failed: {e}")

    return {
        "success": progress.failed == 0,
        "season": season,
        "progress": progress.to_dict(),
        "cacheStats": cache.stats().to_dict() if body.use_cache else None,
        "rateLimitStatus": services.rate_limiter.status().to_dict(),
        "timestamp": to_iso(utc_now()),
    }


@router.post("/retry")
@limiter.limit("10/minute")
async def retry_failed_enrichments(
    request: Request,
    body: Optional[RetryRequest] = None,
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
):
    """Retry unresolved enrichment failures with exponential backoff."""
    body = body or RetryRequest()
    _authorize(request, body.manual_token)

    season = body.season or services.settings.CURRENT_SEASON
    max_retries = body.max_retries or services.settings.ENRICHMENT_MAX_RETRIES

    try:
        pipeline = services.enrichment_pipeline(db_service, use_cache=True)
        progress = await pipeline.retry_failed(season, max_retries=max_retries)
    except Exception as e:
        logger.error(f"Enrichment retry failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Enrichment retry failed: {e}")

    return {
        "success": progress.failed == 0,
        "season": season,
        "progress": progress.to_dict(),
        "timestamp": to_iso(utc_now()),
    }


@router.get("")
async def get_enrichment_status(
    season: Optional[int] = Query(None, description="Season year (defaults to CURRENT_SEASON)"),
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
):
    """Enrichment completion stats for a season plus player cache stats."""
    season = season or services.settings.CURRENT_SEASON
    return {
        "season": season,
        "stats": db_service.get_enrichment_stats(season),
        "cacheStats": services.player_cache.stats().to_dict(),
        "timestamp": to_iso(utc_now()),
    }
