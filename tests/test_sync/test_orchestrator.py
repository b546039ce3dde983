"""Tests for SyncOrchestrator runs and sync status reporting."""
import pytest

from app.core.exceptions import DatabaseUnavailableError, SourceFetchError
from app.models.models import Transfer
from app.repositories.database_service import SqlAlchemyDatabaseService
from app.repositories.memory import InMemoryDatabaseService
from app.services.sync.league_config import LeagueConfig
from app.services.sync.orchestrator import SyncOrchestrator, summarize_sync_logs
from app.services.sync.rate_limiter import ApiRateLimiter
from app.services.sync.strategy import SyncStrategy
from conftest import FakeTransferSource, make_raw_transfer

TWO_LEAGUES = (
    LeagueConfig(39, "Premier League", 1, True, True, True),
    LeagueConfig(140, "La Liga", 1, True, True, True),
)


class ExplodingDatabaseService(InMemoryDatabaseService):
    """Loses its connection on the second insert."""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.inserts = 0

    def insert(self, record):
        self.inserts += 1
        if self.inserts == 2:
            raise DatabaseUnavailableError("connection reset")
        return super().insert(record)


@pytest.fixture
def orchestrator(in_memory_db, transfer_source, clock):
    return SyncOrchestrator(
        in_memory_db,
        transfer_source,
        ApiRateLimiter(daily_limit=100, clock=clock),
        league_configs=TWO_LEAGUES,
        clock=clock,
    )


# ─── Runs ───────────────────────────────────────────────────────────────────────

class TestExecute:
    """End-to-end sync runs against the in-memory store."""

    @pytest.mark.asyncio
    async def test_inserts_valid_rows(self, orchestrator, in_memory_db, transfer_source):
        """Should insert valid rows, drop invalid ones and commit."""
        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.success is True
        assert result.total_processed == 4
        assert result.successful == 3
        assert result.failed == 0
        assert result.groups_processed == 2
        assert sorted(t.api_transfer_id for t in in_memory_db.all_transfers()) == [1001, 1002, 1003]
        assert [call.league_id for call in transfer_source.calls] == [39, 140]
        assert in_memory_db.transactions[-1].committed is True

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, orchestrator, in_memory_db):
        """Should not duplicate rows when the same data is synced twice."""
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)
        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.successful == 3
        assert len(in_memory_db.all_transfers()) == 3

    @pytest.mark.asyncio
    async def test_changed_rows_are_updated(self, in_memory_db, clock):
        """Should patch an existing row when the source data changes."""
        source = FakeTransferSource({39: [make_raw_transfer(1001)]})
        orchestrator = SyncOrchestrator(
            in_memory_db, source, ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES[:1], clock=clock
        )
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        source.rows_by_league[39] = [make_raw_transfer(1001, amount="€120M")]
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        [transfer] = in_memory_db.all_transfers()
        assert transfer.transfer_value_cents == 12_000_000_000
        assert transfer.transfer_value_display == "€120.0M"

    @pytest.mark.asyncio
    async def test_league_failure_is_isolated(self, in_memory_db, sample_transfer_rows, clock):
        """Should record a failed league and keep syncing the others."""
        source = FakeTransferSource(
            {39: sample_transfer_rows},
            failures={140: SourceFetchError("HTTP 500", status_code=500)},
        )
        orchestrator = SyncOrchestrator(
            in_memory_db, source, ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES, clock=clock
        )

        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.success is False
        assert result.successful == 3
        assert result.failed == 1
        assert any("La Liga" in error for error in result.errors)
        assert len(in_memory_db.all_transfers()) == 3

    @pytest.mark.asyncio
    async def test_record_failure_is_isolated(self, in_memory_db, clock):
        """Should skip a record that fails to persist and continue."""
        class RejectingDatabaseService(InMemoryDatabaseService):
            def insert(self, record):
                if record.api_transfer_id == 1002:
                    raise ValueError("constraint violated")
                return super().insert(record)

        db = RejectingDatabaseService(clock=clock)
        source = FakeTransferSource({39: [make_raw_transfer(1001), make_raw_transfer(1002), make_raw_transfer(1003)]})
        orchestrator = SyncOrchestrator(
            db, source, ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES[:1], clock=clock
        )

        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.successful == 2
        assert result.failed == 1
        assert "1002" in result.errors[0]

    @pytest.mark.asyncio
    async def test_database_outage_rolls_back_run(self, sample_transfer_rows, clock):
        """Should roll back and mark every processed row failed on a store outage."""
        db = ExplodingDatabaseService(clock)
        orchestrator = SyncOrchestrator(
            db,
            FakeTransferSource({39: sample_transfer_rows}),
            ApiRateLimiter(daily_limit=100),
            league_configs=TWO_LEAGUES,
            clock=clock,
        )

        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.successful == 0
        assert result.failed == result.total_processed == 4
        assert db.transactions[-1].rolled_back is True
        assert db.all_transfers() == []
        assert result.errors[-1].startswith("Sync failed")
        assert result.rolled_back is True
        assert result.success is False

    @pytest.mark.asyncio
    async def test_rollback_before_any_rows_is_a_failure(self, clock):
        """Should report failure when the run is rolled back with nothing processed."""
        class UnreachableDatabaseService(InMemoryDatabaseService):
            def begin_transaction(self):
                raise DatabaseUnavailableError("connection refused")

        db = UnreachableDatabaseService(clock=clock)
        orchestrator = SyncOrchestrator(
            db, FakeTransferSource(), ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES, clock=clock
        )

        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.total_processed == 0
        assert result.failed == 0
        assert result.rolled_back is True
        assert result.success is False
        assert result.to_dict()["success"] is False
        [log] = db.get_recent_sync_logs()
        assert log.success is False
        assert orchestrator.get_sync_status()["health_status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_strategy_controls_leagues(self, in_memory_db, clock):
        """Should only fetch leagues included under the strategy."""
        source = FakeTransferSource()
        orchestrator = SyncOrchestrator(in_memory_db, source, ApiRateLimiter(daily_limit=100), clock=clock)

        result = await orchestrator.execute(SyncStrategy.EMERGENCY, season=2026)

        assert result.groups_processed == 5
        assert [call.league_id for call in source.calls] == [39, 140, 135, 78, 61]

    @pytest.mark.asyncio
    async def test_run_is_logged(self, orchestrator, in_memory_db):
        """Should persist a sync log with trigger and context."""
        await orchestrator.execute(
            SyncStrategy.NORMAL, season=2023, trigger="cron", context={"source": "test"}
        )

        [log] = in_memory_db.get_recent_sync_logs()
        assert log.trigger == "cron"
        assert log.strategy == "normal"
        assert log.success is True
        assert log.context == {"source": "test"}
        assert log.result["successful"] == 3


# ─── SQLAlchemy store ───────────────────────────────────────────────────────────

class TestExecuteOnSqlStore:
    """Runs against SqlAlchemyDatabaseService."""

    @pytest.mark.asyncio
    async def test_rejected_record_keeps_siblings(self, db_session, clock):
        """Should skip a row the database rejects and still commit the rows around it."""
        db = SqlAlchemyDatabaseService(db_session)
        source = FakeTransferSource({39: [
            make_raw_transfer(1001),
            make_raw_transfer(1002, amount="€99999999999999999M"),  # overflows BIGINT
            make_raw_transfer(1003),
        ]})
        orchestrator = SyncOrchestrator(
            db, source, ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES[:1], clock=clock
        )

        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.successful == 2
        assert result.failed == 1
        assert result.rolled_back is False
        assert len(result.errors) == 1
        assert "1002" in result.errors[0]
        persisted = db_session.query(Transfer).all()
        assert sorted(t.api_transfer_id for t in persisted) == [1001, 1003]
        [log] = db.get_recent_sync_logs()
        assert log.result["successful"] == 2

    @pytest.mark.asyncio
    async def test_rerun_updates_in_place(self, db_session, clock):
        """Should update an existing row instead of inserting a duplicate."""
        db = SqlAlchemyDatabaseService(db_session)
        source = FakeTransferSource({39: [make_raw_transfer(1001)]})
        orchestrator = SyncOrchestrator(
            db, source, ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES[:1], clock=clock
        )
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        source.rows_by_league[39] = [make_raw_transfer(1001, toClub={"id": 50, "name": "Manchester City"})]
        result = await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert result.successful == 1
        [row] = db_session.query(Transfer).all()
        assert row.to_club_name == "Manchester City"


# ─── Status ─────────────────────────────────────────────────────────────────────

class TestSyncStatus:
    """Health derivation from recent sync logs."""

    def test_unknown_without_runs(self, orchestrator):
        """Should report unknown health before the first run."""
        status = orchestrator.get_sync_status()

        assert status["health_status"] == "unknown"
        assert status["last_sync"] is None
        assert status["metrics"]["total_syncs"] == 0
        assert len(status["league_configs"]) == 2

    @pytest.mark.asyncio
    async def test_healthy_after_success(self, orchestrator):
        """Should report healthy after a clean run."""
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        status = orchestrator.get_sync_status()

        assert status["health_status"] == "healthy"
        assert status["metrics"]["successful_syncs"] == 1
        assert len(status["recent_logs"]) == 1

    @pytest.mark.asyncio
    async def test_stale_run_is_unhealthy(self, orchestrator, clock):
        """Should report unhealthy when the last run is older than 24h."""
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)
        clock.advance(hours=25)

        assert orchestrator.get_sync_status()["health_status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_partial_run_is_degraded(self, in_memory_db, sample_transfer_rows, clock):
        """Should report degraded when the last run partly succeeded."""
        source = FakeTransferSource({39: sample_transfer_rows}, failures={140: SourceFetchError("down")})
        orchestrator = SyncOrchestrator(
            in_memory_db, source, ApiRateLimiter(daily_limit=100), league_configs=TWO_LEAGUES, clock=clock
        )
        await orchestrator.execute(SyncStrategy.NORMAL, season=2023)

        assert orchestrator.get_sync_status()["health_status"] == "degraded"

    def test_summarize_empty(self):
        """Should return zeroed metrics for no logs."""
        summary = summarize_sync_logs([])

        assert summary["total_syncs"] == 0
        assert summary["by_strategy"] == {}
