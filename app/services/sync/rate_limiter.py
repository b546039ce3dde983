"""
Daily quota accounting for API-Football.

The provider allows a fixed number of calls per rolling 24h window. The
limiter tracks usage, flips into emergency mode once the remaining quota
falls to the emergency threshold, and resets lazily on the first access
after the window expires.

Denial is reported through RateLimitDecision.allowed, never raised. Callers
check admission before the request and call record_call() only after a
successful response.

Admission and recording are separate calls, so two concurrent runs can
both be admitted before either records its usage. The quota is best-effort.
"""
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, Dict, Any

from app.core.logging import get_logger
from app.core import metrics
from app.utils.timezone import utc_now

logger = get_logger(__name__)

RESET_INTERVAL = timedelta(hours=24)
DEFAULT_DAILY_LIMIT = 3000
DEFAULT_EMERGENCY_THRESHOLD = 0.10


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    emergency_mode: bool
    remaining: int


@dataclass(frozen=True)
class RateLimitStatus:
    used: int
    limit: int
    remaining: int
    emergency_mode: bool
    cache_hits: int
    usage_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ApiRateLimiter:
    """
    Thread-safe daily quota tracker.

    One instance is shared per process (held on ``app.state``) and passed
    to every client, orchestrator and pipeline that spends quota.
    """

    def __init__(
        self,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        emergency_threshold: float = DEFAULT_EMERGENCY_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            daily_limit: Calls allowed per 24h window
            emergency_threshold: Fraction of the limit at which emergency mode starts
            clock: Returns the current aware UTC time (injectable for tests)
        """
        if daily_limit <= 0:
            raise ValueError("daily_limit must be positive")
        if not 0 <= emergency_threshold < 1:
            raise ValueError("emergency_threshold must be in [0, 1)")

        self.daily_limit = daily_limit
        self.emergency_threshold = emergency_threshold
        self._clock = clock
        self._lock = threading.Lock()

        self._current_usage = 0
        self._cache_hits = 0
        self._emergency_mode = False
        self._last_reset_at = clock()

    @classmethod
    def from_settings(cls, settings) -> "ApiRateLimiter":
        return cls(
            daily_limit=settings.API_DAILY_LIMIT,
            emergency_threshold=settings.API_EMERGENCY_THRESHOLD,
        )

    @property
    def last_reset_at(self) -> datetime:
        return self._last_reset_at

    # Internal helpers (caller holds the lock)

    def _reset_if_expired(self) -> None:
        now = self._clock()
        if now - self._last_reset_at >= RESET_INTERVAL:
            logger.info(
                f"Resetting API quota after 24h window "
                f"(used {self._current_usage}/{self.daily_limit}, cache hits {self._cache_hits})"
            )
            self._current_usage = 0
            self._cache_hits = 0
            self._emergency_mode = False
            self._last_reset_at = now

    def _evaluate_emergency(self) -> int:
        remaining = self.daily_limit - self._current_usage
        if not self._emergency_mode and remaining <= self.daily_limit * self.emergency_threshold:
            self._emergency_mode = True
            logger.warning(
                f"API quota emergency mode activated: {remaining} of {self.daily_limit} calls remaining",
                extra={"remaining": remaining, "limit": self.daily_limit},
            )
        return remaining

    # Public API

    def can_admit(self) -> RateLimitDecision:
        """Decide whether one more outbound call may be made."""
        with self._lock:
            self._reset_if_expired()
            remaining = self._evaluate_emergency()
            decision = RateLimitDecision(
                allowed=remaining > 0,
                emergency_mode=self._emergency_mode,
                remaining=remaining,
            )
            used = self._current_usage
        metrics.update_quota_metrics(used, remaining, decision.emergency_mode)
        return decision

    def record_call(self) -> None:
        """Count one successful admitted request against the quota."""
        with self._lock:
            self._current_usage += 1
            used = self._current_usage
        metrics.api_quota_used.set(used)

    def record_cache_hit(self) -> None:
        """Count a request served from cache. Never touches usage."""
        with self._lock:
            self._cache_hits += 1

    def status(self) -> RateLimitStatus:
        with self._lock:
            self._reset_if_expired()
            remaining = self._evaluate_emergency()
            return RateLimitStatus(
                used=self._current_usage,
                limit=self.daily_limit,
                remaining=remaining,
                emergency_mode=self._emergency_mode,
                cache_hits=self._cache_hits,
                usage_percentage=round(self._current_usage / self.daily_limit * 100, 2),
            )
