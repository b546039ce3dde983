"""Tests for the SQLAlchemy-backed DatabaseService."""
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import DatabaseUnavailableError, RecordProcessingError
from app.repositories.database_service import EnrichmentError, SqlAlchemyDatabaseService, SyncLogEntry
from app.services.sync.adapters.transfer_transformer import transform_single
from conftest import make_raw_transfer


@pytest.fixture
def db(db_session):
    return SqlAlchemyDatabaseService(db_session)


def sparse(transfer_id, season=2025):
    return transform_single(
        make_raw_transfer(transfer_id, playerAge=None, playerPosition=None, playerNationality=None),
        season=season,
    )


class TestTransfers:
    """Transfer reads and writes."""

    def test_insert_and_find(self, db):
        """Should find an inserted transfer by its provider id."""
        inserted = db.insert(transform_single(make_raw_transfer(1001), season=2023))

        found = db.find_by_external_id(1001)

        assert found.id == inserted.id
        assert found.player_full_name == "Declan Rice"
        assert db.find_by_external_id(9999) is None

    def test_update_missing_transfer(self, db):
        """Should raise RecordProcessingError for an unknown id."""
        with pytest.raises(RecordProcessingError):
            db.update("missing", {"age": 30})

    def test_rollback_discards_writes(self, db):
        """Should discard uncommitted inserts on rollback."""
        transaction = db.begin_transaction()
        db.insert(transform_single(make_raw_transfer(1001), season=2023))

        transaction.rollback()

        assert db.find_by_external_id(1001) is None

    def test_connection_errors_are_translated(self, db, monkeypatch):
        """Should raise DatabaseUnavailableError for connection-level failures."""
        def broken(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        monkeypatch.setattr(db.transfers, "find_by_api_transfer_id", broken)

        with pytest.raises(DatabaseUnavailableError):
            db.find_by_external_id(1001)


class TestUnderEnriched:
    """Cursor pagination over under-enriched transfers."""

    def test_only_incomplete_transfers_for_season(self, db):
        """Should return incomplete transfers for the season only."""
        db.insert(sparse(1001))
        db.insert(sparse(1002, season=2024))
        db.insert(transform_single(make_raw_transfer(1003), season=2025))

        rows = db.get_under_enriched(2025)

        assert [row.api_transfer_id for row in rows] == [1001]

    def test_unknown_nationality_counts_as_incomplete(self, db):
        """Should treat UNK nationality as under-enriched."""
        transfer = db.insert(transform_single(make_raw_transfer(1001), season=2025))
        db.update(transfer.id, {"nationality": "UNK"})

        assert len(db.get_under_enriched(2025)) == 1

    def test_resume_after_cursor(self, db):
        """Should return only rows after the cursor in (created_at, id) order."""
        inserted = [db.insert(sparse(transfer_id)) for transfer_id in (1001, 1002, 1003)]
        ordered = db.get_under_enriched(2025)
        assert {row.id for row in ordered} == {row.id for row in inserted}

        after_first = db.get_under_enriched(2025, after_cursor=ordered[0].id)

        assert [row.id for row in after_first] == [row.id for row in ordered[1:]]

    def test_unknown_cursor_starts_over(self, db):
        """Should ignore a cursor that does not exist."""
        db.insert(sparse(1001))

        assert len(db.get_under_enriched(2025, after_cursor="missing")) == 1


class TestEnrichmentLogs:
    """Durable enrichment failure lifecycle."""

    def test_append_retry_resolve(self, db):
        """Should track retries and drop resolved logs from the unresolved list."""
        transfer = db.insert(sparse(1001))
        error = db.append_enrichment_error(EnrichmentError(
            record_id=transfer.id,
            external_id=51001,
            message="HTTP 503",
            timestamp=datetime(2026, 3, 10, tzinfo=timezone.utc),
            season=2025,
        ))

        db.increment_enrichment_retry(error.id)
        [pending] = db.get_unresolved_enrichment_errors(max_retries=3, season=2025)
        assert pending.retry_count == 1
        assert db.get_enrichment_stats(2025)["unresolved_errors"] == 1

        db.resolve_enrichment_error(error.id)
        assert db.get_unresolved_enrichment_errors(max_retries=3, season=2025) == []

    def test_missing_log(self, db):
        """Should raise RecordProcessingError for an unknown log id."""
        with pytest.raises(RecordProcessingError):
            db.resolve_enrichment_error("missing")


class TestSyncLogs:
    """Sync log persistence."""

    def test_round_trip(self, db):
        """Should read back logs newest first with their result fields."""
        for hour in (10, 12):
            db.record_sync_log(SyncLogEntry(
                id=f"run-{hour}",
                timestamp=datetime(2026, 3, 10, hour, tzinfo=timezone.utc),
                strategy="normal",
                season=2026,
                trigger="cron",
                success=True,
                result={"total_processed": 5, "successful": 5, "failed": 0, "errors": []},
                context={"source": "test"},
            ))

        logs = db.get_recent_sync_logs(limit=10)

        assert [log.id for log in logs] == ["run-12", "run-10"]
        assert logs[0].timestamp.tzinfo is not None
        assert logs[0].result["successful"] == 5
        assert logs[0].context == {"source": "test"}
