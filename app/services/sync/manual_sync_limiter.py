"""
Manual sync slots: one human-triggered sync per token per hour.

The durable store (manual_sync_limits table) is used when configured.
Without a store, a process-local per-token map takes over. That map does
not survive restarts and is not shared between workers.

Store errors fail closed: the request is denied rather than letting an
unreachable database allow unlimited manual syncs.

The read-then-write on the store is not atomic. Two requests for the same
token that arrive together can both be allowed. Slots are best-effort.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core import metrics
from app.core.logging import get_logger
from app.models.models import ManualSyncLimit
from app.utils.timezone import ensure_utc, to_iso, utc_now

logger = get_logger(__name__)

DEFAULT_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class ManualSlotDecision:
    allowed: bool
    source: str  # "database" or "memory"
    next_allowed_at: Optional[datetime] = None
    reason: Optional[str] = None  # missing_token, rate_limited, store_error

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "source": self.source,
            "next_allowed_at": to_iso(self.next_allowed_at),
            "reason": self.reason,
        }


class ManualSyncStore(ABC):
    """Durable token -> last_triggered storage."""

    @abstractmethod
    def get_last_triggered(self, token: str) -> Optional[datetime]:
        ...

    @abstractmethod
    def set_last_triggered(self, token: str, triggered_at: datetime) -> None:
        ...


class SqlAlchemyManualSyncStore(ManualSyncStore):
    """Store backed by the manual_sync_limits table. Opens one session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_last_triggered(self, token: str) -> Optional[datetime]:
        with self._session_factory() as session:
            row = session.get(ManualSyncLimit, token)
            return ensure_utc(row.last_triggered) if row else None

    def set_last_triggered(self, token: str, triggered_at: datetime) -> None:
        with self._session_factory() as session:
            row = session.get(ManualSyncLimit, token)
            if row is None:
                session.add(ManualSyncLimit(
                    token=token,
                    last_triggered=triggered_at,
                    created_at=triggered_at,
                    updated_at=triggered_at,
                ))
            else:
                row.last_triggered = triggered_at
                row.updated_at = triggered_at
            session.commit()


class ManualSyncLimiter:
    """
    Token-keyed admission gate for manual syncs.

    Usage:
        decision = limiter.acquire_slot(token)
        if not decision.allowed:
            raise HTTPException(429, ...)
    """

    def __init__(
        self,
        store: Optional[ManualSyncStore] = None,
        window: timedelta = DEFAULT_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.window = window
        self._clock = clock
        self._memory_slots: Dict[str, datetime] = {}
        self._memory_lock = threading.Lock()

        if store is None:
            logger.warning(
                "Manual sync limiter running without a durable store: "
                "slots are per-process and reset on restart"
            )

    def acquire_slot(self, token: Optional[str]) -> ManualSlotDecision:
        source = "database" if self.store is not None else "memory"

        if not token:
            metrics.manual_sync_denied_total.labels(reason="missing_token").inc()
            return ManualSlotDecision(allowed=False, source=source, reason="missing_token")

        if self.store is None:
            return self._acquire_in_memory(token)
        return self._acquire_durable(token)

    def _deny_rate_limited(self, source: str, last_triggered: datetime) -> ManualSlotDecision:
        next_allowed_at = last_triggered + self.window
        metrics.manual_sync_denied_total.labels(reason="rate_limited").inc()
        logger.info(f"Manual sync denied until {next_allowed_at.isoformat()}")
        return ManualSlotDecision(
            allowed=False,
            source=source,
            next_allowed_at=next_allowed_at,
            reason="rate_limited",
        )

    def _acquire_durable(self, token: str) -> ManualSlotDecision:
        now = self._clock()

        try:
            last_triggered = self.store.get_last_triggered(token)
        except Exception as e:
            logger.error(f"Manual sync store read failed, denying request: {e}")
            metrics.manual_sync_denied_total.labels(reason="store_error").inc()
            return ManualSlotDecision(allowed=False, source="database", reason="store_error")

        if last_triggered is not None and now - last_triggered < self.window:
            return self._deny_rate_limited("database", last_triggered)

        try:
            self.store.set_last_triggered(token, now)
        except Exception as e:
            logger.error(f"Manual sync store write failed, denying request: {e}")
            metrics.manual_sync_denied_total.labels(reason="store_error").inc()
            return ManualSlotDecision(allowed=False, source="database", reason="store_error")

        return ManualSlotDecision(allowed=True, source="database", next_allowed_at=now + self.window)

    def _acquire_in_memory(self, token: str) -> ManualSlotDecision:
        now = self._clock()
        with self._memory_lock:
            last_triggered = self._memory_slots.get(token)
            if last_triggered is not None and now - last_triggered < self.window:
                return self._deny_rate_limited("memory", last_triggered)
            self._memory_slots[token] = now

        return ManualSlotDecision(allowed=True, source="memory", next_allowed_at=now + self.window)
