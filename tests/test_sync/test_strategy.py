"""Unit tests for sync strategy selection and league configuration."""
from datetime import datetime, timedelta, timezone

import pytest

from app.services.sync.league_config import DEFAULT_LEAGUE_CONFIGS, leagues_for_strategy
from app.services.sync.strategy import (
    SyncStrategy,
    is_deadline_day,
    next_deadline,
    next_sync_interval_minutes,
    select_strategy,
    should_run_deadline_cron,
    should_use_emergency_cadence,
)

DEADLINE = datetime(2025, 9, 1, 23, 0, tzinfo=timezone.utc)
DEADLINES = [DEADLINE]


class TestDeadlineWindow:
    """[deadline - 24h, deadline + 2h] membership."""

    @pytest.mark.parametrize("offset,expected", [
        (timedelta(hours=-24), True),
        (timedelta(hours=-24, seconds=-1), False),
        (timedelta(0), True),
        (timedelta(hours=2), True),
        (timedelta(hours=2, seconds=1), False),
    ])
    def test_boundaries_are_inclusive(self, offset, expected):
        """Should include both window boundaries and nothing outside."""
        assert is_deadline_day(DEADLINE + offset, DEADLINES) is expected

    def test_default_deadlines(self):
        """Should use the built-in deadline table when none is passed."""
        assert is_deadline_day(datetime(2025, 9, 1, 22, 0, tzinfo=timezone.utc)) is True
        assert is_deadline_day(datetime(2025, 8, 31, 22, 0, tzinfo=timezone.utc)) is False

    def test_naive_datetime_treated_as_utc(self):
        """Should interpret naive datetimes as UTC."""
        assert is_deadline_day(datetime(2025, 9, 1, 12, 0), DEADLINES) is True

    def test_emergency_cadence(self):
        """Should use emergency cadence on deadline days or with the override."""
        quiet_day = datetime(2025, 7, 1, tzinfo=timezone.utc)
        assert should_use_emergency_cadence(quiet_day, deadlines=DEADLINES) is False
        assert should_use_emergency_cadence(quiet_day, override_flag=True, deadlines=DEADLINES) is True
        assert should_use_emergency_cadence(DEADLINE, deadlines=DEADLINES) is True


class TestSelectStrategy:
    """Strategy precedence."""

    QUIET = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)

    def test_normal_by_default(self):
        """Should select normal outside deadlines and without emergency."""
        assert select_strategy(self.QUIET, deadlines=DEADLINES) == SyncStrategy.NORMAL

    def test_deadline_day(self):
        """Should select deadline_day inside the deadline window."""
        assert select_strategy(DEADLINE, deadlines=DEADLINES) == SyncStrategy.DEADLINE_DAY

    def test_deadline_hint(self):
        """Should trust the caller's deadline hint."""
        assert select_strategy(self.QUIET, deadline_hint=True, deadlines=DEADLINES) == SyncStrategy.DEADLINE_DAY

    def test_emergency_from_override_or_limiter(self):
        """Should select emergency when the override flag or limiter emergency is set."""
        assert select_strategy(self.QUIET, override_flag=True, deadlines=DEADLINES) == SyncStrategy.EMERGENCY
        assert select_strategy(self.QUIET, limiter_emergency=True, deadlines=DEADLINES) == SyncStrategy.EMERGENCY

    def test_deadline_beats_emergency(self):
        """Should prefer deadline_day over emergency."""
        strategy = select_strategy(DEADLINE, limiter_emergency=True, deadlines=DEADLINES)
        assert strategy == SyncStrategy.DEADLINE_DAY

    def test_manual_strategy_always_wins(self):
        """Should return the manual strategy regardless of other inputs."""
        strategy = select_strategy(
            DEADLINE,
            override_flag=True,
            manual_strategy=SyncStrategy.NORMAL,
            limiter_emergency=True,
            deadlines=DEADLINES,
        )
        assert strategy == SyncStrategy.NORMAL

    def test_manual_strategy_accepts_string(self):
        """Should coerce a raw string strategy."""
        assert select_strategy(self.QUIET, manual_strategy="emergency") == SyncStrategy.EMERGENCY

    def test_deterministic(self):
        """Should return identical results for identical inputs."""
        results = {select_strategy(self.QUIET, deadlines=DEADLINES) for _ in range(5)}
        assert results == {SyncStrategy.NORMAL}


class TestIntervalsAndDeadlines:
    """Cadence lookup and deadline helpers."""

    def test_intervals(self):
        """Should map strategies to 30/120/360 minute cadences."""
        assert next_sync_interval_minutes(SyncStrategy.DEADLINE_DAY) == 30
        assert next_sync_interval_minutes(SyncStrategy.EMERGENCY) == 120
        assert next_sync_interval_minutes(SyncStrategy.NORMAL) == 360

    def test_deadline_cron_gate(self):
        """Should run the deadline cron only on deadline days unless overridden."""
        quiet = datetime(2025, 7, 1, tzinfo=timezone.utc)
        assert should_run_deadline_cron(quiet, DEADLINES) is False
        assert should_run_deadline_cron(quiet, DEADLINES, enable_override=True) is True
        assert should_run_deadline_cron(DEADLINE, DEADLINES) is True

    def test_next_deadline(self):
        """Should return the earliest deadline at or after now."""
        later = datetime(2026, 2, 2, 23, 0, tzinfo=timezone.utc)
        deadlines = [later, DEADLINE]

        assert next_deadline(datetime(2025, 7, 1, tzinfo=timezone.utc), deadlines) == DEADLINE
        assert next_deadline(DEADLINE + timedelta(minutes=1), deadlines) == later
        assert next_deadline(later + timedelta(days=1), deadlines) is None


class TestLeagueConfig:
    """League inclusion per strategy."""

    def test_normal_leagues(self):
        """Should include tier 1 and tier 2 leagues under normal."""
        ids = [league.api_league_id for league in leagues_for_strategy(SyncStrategy.NORMAL)]
        assert ids == [39, 140, 135, 78, 61, 94, 106, 60]

    def test_deadline_day_includes_everything(self):
        """Should include every configured league on deadline day."""
        leagues = leagues_for_strategy(SyncStrategy.DEADLINE_DAY)
        assert len(leagues) == len(DEFAULT_LEAGUE_CONFIGS) == 10

    def test_emergency_is_tier_one_only(self):
        """Should include only tier 1 leagues in emergency mode."""
        leagues = leagues_for_strategy(SyncStrategy.EMERGENCY)
        assert len(leagues) == 5
        assert all(league.tier == 1 for league in leagues)
