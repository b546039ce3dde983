"""
API-Football HTTP client.

Every request goes through the shared daily quota:
1. Admission is checked before the request. A denial raises RateLimitExceededError.
2. In emergency mode each request is delayed to slow the burn rate.
3. Transport errors, 429 and 5xx responses are retried by RetryPolicy.
4. The call is recorded against the quota only after a successful response.

Free plan: 100 requests/day. Pro plan: 7,500/day. The configured limit
(API_DAILY_LIMIT) is what the limiter enforces.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.core.exceptions import RateLimitExceededError, SourceFetchError
from app.core.logging import get_logger
from app.core import metrics
from app.services.core.retry import RetryExhausted, RetryPolicy
from app.services.sync.rate_limiter import ApiRateLimiter

logger = get_logger(__name__)

API_FOOTBALL_BASE = "https://v3.football.api-sports.io"
EMERGENCY_DELAY_SECONDS = 1.0


def is_retryable(exc: BaseException) -> bool:
    """Retry transport failures, 429 and 5xx. Never retry quota denials or other 4xx."""
    if isinstance(exc, SourceFetchError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)


class ApiFootballClient:
    """
    Quota-aware async client for API-Football.

    The httpx.AsyncClient is created lazily and reused; call close() on shutdown.
    """

    def __init__(
        self,
        api_key: str,
        rate_limiter: ApiRateLimiter,
        base_url: str = API_FOOTBALL_BASE,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        emergency_delay: float = EMERGENCY_DELAY_SECONDS,
    ):
        """
        Args:
            api_key: API-Football key (x-apisports-key header)
            rate_limiter: Shared daily quota
            base_url: Provider base URL
            timeout: Request timeout in seconds
            retry_policy: Transport retry policy (defaults to 3 attempts, 1s/2s backoff)
            http_client: Pre-built client (tests pass one with a MockTransport)
            sleep: Sleep coroutine used for throttling and backoff
            emergency_delay: Delay before each request while in emergency mode
        """
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0, max_delay=10.0)
        self._client = http_client
        self._sleep = sleep
        self.emergency_delay = emergency_delay

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            )
        return self._client

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-apisports-key": self.api_key,
            "Accept": "application/json",
        }

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = await client.get(url, params=params, headers=self._get_headers())
        except httpx.TransportError as e:
            metrics.source_requests_total.labels(endpoint=endpoint, outcome="transport_error").inc()
            raise SourceFetchError(f"Request to {endpoint} failed: {e}") from e

        if response.status_code >= 400:
            metrics.source_requests_total.labels(endpoint=endpoint, outcome=str(response.status_code)).inc()
            raise SourceFetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                retryable=response.status_code == 429 or response.status_code >= 500,
            )

        data = response.json()

        # API-Football reports plan/token problems inside a 200 response
        errors = data.get("errors")
        if errors:
            metrics.source_requests_total.labels(endpoint=endpoint, outcome="api_error").inc()
            raise SourceFetchError(f"API error: {errors}", status_code=response.status_code, retryable=False)

        metrics.source_requests_total.labels(endpoint=endpoint, outcome="success").inc()
        return data

    async def get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        GET an endpoint under the daily quota.

        Raises:
            RateLimitExceededError: Quota refused admission (no request sent)
            SourceFetchError: Request failed after retries, or with a non-retryable error
        """
        decision = self.rate_limiter.can_admit()
        if not decision.allowed:
            raise RateLimitExceededError(remaining=decision.remaining)

        if decision.emergency_mode:
            logger.warning(
                f"Quota emergency mode: throttling {endpoint} request ({decision.remaining} calls left)"
            )
            await self._sleep(self.emergency_delay)

        outcome = await self.retry_policy.run(
            self._request, endpoint, params, retry_if=is_retryable, sleep=self._sleep
        )

        if isinstance(outcome, RetryExhausted):
            error = outcome.error
            if isinstance(error, SourceFetchError):
                raise error
            raise SourceFetchError(f"Request to {endpoint} failed: {error}") from error

        self.rate_limiter.record_call()
        return outcome.value
