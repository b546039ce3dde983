"""
Request authentication for sync and enrichment endpoints.

Two credentials exist:
- CRON_SECRET, sent by the scheduler as "Authorization: Bearer <secret>".
  A trusted cron request skips manual token checks and manual slots.
- MANUAL_SYNC_TOKEN, sent by humans in the request body (manualToken).

Both are compared with hmac.compare_digest.
"""
import hmac
from typing import Optional

from fastapi import HTTPException, status
from starlette.requests import Request

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):].strip() or None


def is_trusted_cron_request(request: Request, cron_secret: Optional[str] = None) -> bool:
    """
    True when the request carries the configured cron secret.

    Always False when CRON_SECRET is not configured.
    """
    secret = settings.CRON_SECRET if cron_secret is None else cron_secret
    token = _bearer_token(request)
    if not secret or not token:
        return False
    return hmac.compare_digest(token.encode(), secret.encode())


def require_cron_request(request: Request) -> None:
    """Raise 401 unless the request is a trusted cron request."""
    if not is_trusted_cron_request(request):
        logger.warning(
            f"Rejected cron request from {request.client.host if request.client else 'unknown'}"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def validate_manual_token(manual_token: Optional[str], expected: Optional[str] = None) -> str:
    """
    Validate a human-supplied manual sync token.

    Args:
        manual_token: Token from the request body
        expected: Configured token (defaults to MANUAL_SYNC_TOKEN)

    Returns:
        The validated token

    Raises:
        HTTPException: 400 if missing, 401 if invalid or not configured in production
    """
    expected = settings.MANUAL_SYNC_TOKEN if expected is None else expected

    if not manual_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Manual token required for manual sync",
        )

    # Skip the comparison if no token is configured (development mode warning)
    if not expected:
        if settings.is_production():
            logger.warning("MANUAL_SYNC_TOKEN not configured in production - rejecting request")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Manual sync is not configured",
            )
        logger.debug("MANUAL_SYNC_TOKEN not configured - allowing request in development mode")
        return manual_token

    if not hmac.compare_digest(manual_token.encode(), expected.encode()):
        logger.warning("Invalid manual sync token attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid manual token",
        )

    return manual_token
