"""
Sync strategy selection.

Pure functions of wall-clock time, configuration flags and rate limiter
state. Nothing here performs I/O, so identical inputs always give the same
strategy.

Strategies and cadence:
- deadline_day: within [deadline - 24h, deadline + 2h], every 30 minutes
- emergency: override flag or quota emergency, every 2 hours
- normal: every 6 hours
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence

# Transfer deadline instants (UTC). Overridable via TRANSFER_DEADLINES.
TRANSFER_DEADLINES: tuple[datetime, ...] = (
    datetime(2025, 2, 3, 23, 0, tzinfo=timezone.utc),   # 2025 winter window
    datetime(2025, 9, 1, 23, 0, tzinfo=timezone.utc),   # 2025 summer window
    datetime(2026, 2, 2, 23, 0, tzinfo=timezone.utc),   # 2026 winter window
    datetime(2026, 9, 1, 23, 0, tzinfo=timezone.utc),   # 2026 summer window
)

DEADLINE_LOOKBEHIND = timedelta(hours=24)
DEADLINE_LOOKAHEAD = timedelta(hours=2)


class SyncStrategy(str, Enum):
    NORMAL = "normal"
    DEADLINE_DAY = "deadline_day"
    EMERGENCY = "emergency"


SYNC_INTERVAL_MINUTES = {
    SyncStrategy.DEADLINE_DAY: 30,
    SyncStrategy.EMERGENCY: 120,
    SyncStrategy.NORMAL: 360,
}


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def is_deadline_day(now: datetime, deadlines: Optional[Iterable[datetime]] = None) -> bool:
    """
    True iff ``now`` is inside any [deadline - 24h, deadline + 2h] window.

    Both boundary instants are inclusive.

    Examples:
        >>> is_deadline_day(datetime(2025, 9, 1, 22, 0, tzinfo=timezone.utc))
        True
        >>> is_deadline_day(datetime(2025, 8, 31, 22, 0, tzinfo=timezone.utc))
        False
    """
    now = _as_utc(now)
    for deadline in deadlines if deadlines is not None else TRANSFER_DEADLINES:
        deadline = _as_utc(deadline)
        if deadline - DEADLINE_LOOKBEHIND <= now <= deadline + DEADLINE_LOOKAHEAD:
            return True
    return False


def should_use_emergency_cadence(
    now: datetime,
    override_flag: bool = False,
    deadlines: Optional[Iterable[datetime]] = None,
) -> bool:
    return override_flag or is_deadline_day(now, deadlines)


def select_strategy(
    now: datetime,
    override_flag: bool = False,
    manual_strategy: Optional[SyncStrategy] = None,
    deadline_hint: bool = False,
    limiter_emergency: bool = False,
    deadlines: Optional[Iterable[datetime]] = None,
) -> SyncStrategy:
    """
    Pick the strategy for a sync run.

    Precedence: explicit manual strategy, then deadline day (computed or
    hinted by the caller), then emergency (override flag or quota
    emergency), then normal.

    Args:
        now: Current instant
        override_flag: DEADLINE_DAY_MODE environment override
        manual_strategy: Strategy supplied by the caller, always wins
        deadline_hint: Caller asserts it is a deadline day
        limiter_emergency: Rate limiter is in emergency mode
        deadlines: Deadline instants (defaults to TRANSFER_DEADLINES)
    """
    if manual_strategy is not None:
        return SyncStrategy(manual_strategy)

    if deadline_hint or is_deadline_day(now, deadlines):
        return SyncStrategy.DEADLINE_DAY

    if override_flag or limiter_emergency:
        return SyncStrategy.EMERGENCY

    return SyncStrategy.NORMAL


def next_sync_interval_minutes(strategy: SyncStrategy) -> int:
    return SYNC_INTERVAL_MINUTES[SyncStrategy(strategy)]


def should_run_deadline_cron(
    now: datetime,
    deadlines: Optional[Iterable[datetime]] = None,
    enable_override: bool = False,
) -> bool:
    """The deadline job runs on deadline days, or always when ENABLE_DEADLINE_CRON is set."""
    return enable_override or is_deadline_day(now, deadlines)


def next_deadline(now: datetime, deadlines: Optional[Sequence[datetime]] = None) -> Optional[datetime]:
    """First deadline at or after ``now``, or None when the list is exhausted."""
    now = _as_utc(now)
    upcoming = sorted(
        _as_utc(d) for d in (deadlines if deadlines is not None else TRANSFER_DEADLINES)
        if _as_utc(d) >= now
    )
    return upcoming[0] if upcoming else None
