"""Transfer sync API routes.

Provides endpoints for:
- Manual and cron-triggered transfer syncs
- Sync health monitoring
- Deadline-day syncs
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.requests import Request

from app.api.deps import get_database_service, get_orchestrator, get_services
from app.core.auth import is_trusted_cron_request, require_cron_request, validate_manual_token
from app.core.limiter import limiter
from app.core.logging import get_correlation_id, get_logger
from app.repositories.database_service import DatabaseService
from app.services.registry import ServiceRegistry
from app.services.sync.orchestrator import SyncOrchestrator
from app.services.sync.strategy import (
    SyncStrategy,
    is_deadline_day,
    next_deadline,
    should_run_deadline_cron,
)
from app.utils.timezone import to_iso, utc_now

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncRequest(BaseModel):
    """Sync trigger body. Accepts camelCase or snake_case keys."""
    model_config = ConfigDict(populate_by_name=True)

    strategy: Optional[SyncStrategy] = None
    season: Optional[int] = Field(None, ge=2000, le=2100)
    manual_token: Optional[str] = Field(None, alias="manualToken")
    is_cron_trigger: bool = Field(False, alias="isCronTrigger")
    is_deadline_day: bool = Field(False, alias="isDeadlineDay")


async def _run_sync(
    request: Request,
    services: ServiceRegistry,
    db_service: DatabaseService,
    trigger: str,
    manual_strategy: Optional[SyncStrategy] = None,
    deadline_hint: bool = False,
    season: Optional[int] = None,
) -> Dict[str, Any]:
    now = utc_now()
    strategy = services.select_strategy(now, manual_strategy=manual_strategy, deadline_hint=deadline_hint)
    season = season or services.settings.CURRENT_SEASON

    context = {
        "trigger": trigger,
        "is_deadline_day": is_deadline_day(now, services.deadlines),
        "is_manual_override": manual_strategy is not None,
        "emergency_mode": services.rate_limiter.status().emergency_mode,
        "user_agent": request.headers.get("user-agent"),
        "correlation_id": get_correlation_id(),
    }

    try:
        result = await services.orchestrator(db_service).execute(
            strategy, season, trigger=trigger, context=context
        )
    except Exception as e:
        logger.error(f"Transfer sync failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Sync failed: {e}")

    return {
        "success": result.success,
        "strategy": strategy.value,
        "season": season,
        "result": result.to_dict(),
        "rateLimitStatus": services.rate_limiter.status().to_dict(),
        "context": context,
        "timestamp": to_iso(utc_now()),
    }


@router.post("/transfers")
@limiter.limit("10/minute")
async def trigger_transfer_sync(
    request: Request,
    body: Optional[SyncRequest] = None,
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
):
    """
    Trigger a transfer sync.

    Cron requests (Authorization: Bearer CRON_SECRET) skip token checks.
    Manual requests need a valid manualToken and a free manual slot
    (one per token per hour).
    """
    body = body or SyncRequest()
    trusted_cron = is_trusted_cron_request(request)

    if body.is_cron_trigger and not trusted_cron:
        logger.warning("isCronTrigger set without a valid cron header, treating as manual request")

    if not trusted_cron:
        token = validate_manual_token(body.manual_token)
        decision = services.manual_sync_limiter.acquire_slot(token)
        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Manual sync rate limit exceeded. Please wait at least 1 hour between manual syncs.",
                    "nextAllowedAt": to_iso(decision.next_allowed_at),
                    "reason": decision.reason,
                    "source": decision.source,
                    "timestamp": to_iso(utc_now()),
                },
            )

    return await _run_sync(
        request,
        services,
        db_service,
        trigger="cron" if trusted_cron else "manual",
        manual_strategy=body.strategy,
        deadline_hint=body.is_deadline_day,
        season=body.season,
    )


@router.get("/transfers")
async def get_transfer_sync(
    request: Request,
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """
    Cron entry point, or the sync health dashboard for everyone else.

    Returns:
        Sync result for cron requests; otherwise health status, recent
        logs, rate limit status and aggregate metrics
    """
    if is_trusted_cron_request(request):
        return await _run_sync(request, services, db_service, trigger="cron")

    return orchestrator.get_sync_status()


@router.api_route("/transfers/deadline", methods=["GET", "POST"])
async def deadline_transfer_sync(
    request: Request,
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
):
    """Deadline-day cron. Runs a deadline_day sync only inside a deadline window."""
    require_cron_request(request)

    now = utc_now()
    if not should_run_deadline_cron(now, services.deadlines, services.settings.ENABLE_DEADLINE_CRON):
        upcoming = next_deadline(now, services.deadlines)
        return {
            "skipped": True,
            "reason": "Not a transfer deadline day",
            "nextDeadline": to_iso(upcoming),
            "timestamp": to_iso(now),
        }

    return await _run_sync(
        request,
        services,
        db_service,
        trigger="cron",
        manual_strategy=SyncStrategy.DEADLINE_DAY,
    )
