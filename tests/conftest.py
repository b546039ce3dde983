"""Shared pytest fixtures for transfer-sync-api tests."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app.core.exceptions import PlayerNotFoundError, SourceFetchError
from app.services.enrichment.player_client import PlayerSource
from app.services.sync.adapters.api_football_adapter import FetchTransfersParams, TransferSource

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# FAKES
# =============================================================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeTransferSource(TransferSource):
    """Serves canned raw rows per league; leagues in ``failures`` raise."""

    def __init__(self, rows_by_league: Optional[Dict[int, List[Dict[str, Any]]]] = None, failures=None):
        self.rows_by_league = rows_by_league or {}
        self.failures = failures or {}
        self.calls: List[FetchTransfersParams] = []

    async def fetch(self, params: FetchTransfersParams) -> List[Dict[str, Any]]:
        self.calls.append(params)
        if params.league_id in self.failures:
            raise self.failures[params.league_id]
        return list(self.rows_by_league.get(params.league_id, []))


class FakePlayerSource(PlayerSource):
    """Serves canned /players entries; unknown players raise PlayerNotFoundError."""

    def __init__(self, players: Optional[Dict[int, Dict[str, Any]]] = None, failures=None):
        self.players = players or {}
        self.failures = failures or {}
        self.calls: List[int] = []

    async def fetch_player(self, player_id: int, season: int) -> Dict[str, Any]:
        self.calls.append(player_id)
        if player_id in self.failures:
            raise self.failures[player_id]
        if player_id not in self.players:
            raise PlayerNotFoundError(player_id)
        return self.players[player_id]


async def no_sleep(seconds: float) -> None:
    return None


# =============================================================================
# SAMPLE DATA HELPERS
# =============================================================================

def make_raw_transfer(transfer_id: int = 1001, **overrides) -> Dict[str, Any]:
    """Build one raw API-Football transfer row.

    Usage:
        row = make_raw_transfer(2002, playerName="Jude Bellingham", amount="€103M")
    """
    row = {
        "id": transfer_id,
        "playerId": transfer_id + 50000,
        "playerName": "Declan Rice",
        "playerAge": 24,
        "playerPosition": "Midfielder",
        "playerNationality": "ENG",
        "fromClub": {"id": 48, "name": "West Ham"},
        "toClub": {"id": 42, "name": "Arsenal"},
        "league": {"id": 39, "name": "Premier League", "country": "England"},
        "type": "Permanent",
        "amount": "€116.6M",
        "date": "2023-07-15",
    }
    row.update(overrides)
    return row


def make_player_response(player_id: int = 51001, **overrides) -> Dict[str, Any]:
    """Build one /players response entry."""
    player = {
        "id": player_id,
        "name": "D. Rice",
        "age": 26,
        "birth": {"date": "1999-01-14", "place": "London", "country": "England"},
        "nationality": "England",
        "photo": f"https://media.api-sports.io/football/players/{player_id}.png",
    }
    statistics = overrides.pop("statistics", [
        {"games": {"position": "Midfielder"}},
        {"games": {"position": "Midfielder"}},
    ])
    player.update(overrides)
    return {"player": player, "statistics": statistics}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def in_memory_db(clock):
    """Dict-backed DatabaseService sharing the test clock."""
    from app.repositories.memory import InMemoryDatabaseService
    return InMemoryDatabaseService(clock=clock)


@pytest.fixture
def sample_transfer_rows() -> List[Dict[str, Any]]:
    """Three valid rows plus one row without a date (dropped by the transformer)."""
    return [
        make_raw_transfer(1001),
        make_raw_transfer(
            1002,
            playerName="Kai Havertz",
            playerPosition="Attacker",
            playerNationality="GER",
            fromClub={"id": 49, "name": "Chelsea"},
            amount="€75M",
            date="2023-06-28",
        ),
        make_raw_transfer(
            1003,
            playerName="David Raya",
            playerPosition="Goalkeeper",
            playerNationality="ESP",
            fromClub={"id": 55, "name": "Brentford"},
            type="Loan",
            amount=None,
            date="2023-08-15",
        ),
        make_raw_transfer(1004, date=""),
    ]


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from app.core.database import enable_sqlite_savepoints
    from app.models.models import Base

    # One shared connection so TestClient requests see the same data
    engine = enable_sqlite_savepoints(create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ))
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def session_factory(db_session):
    """Session factory bound to the test engine (for per-call stores)."""
    return sessionmaker(bind=db_session.get_bind(), autoflush=False)


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

CRON_SECRET = "test-cron-secret"
MANUAL_TOKEN = "test-manual-token"


@pytest.fixture
def transfer_source(sample_transfer_rows) -> FakeTransferSource:
    return FakeTransferSource({39: sample_transfer_rows})


@pytest.fixture
def player_source() -> FakePlayerSource:
    return FakePlayerSource()


@pytest.fixture
def services(transfer_source, player_source):
    """ServiceRegistry wired with fakes in place of API-Football."""
    from app.core.config import settings
    from app.services.enrichment.player_cache import PlayerCache
    from app.services.registry import ServiceRegistry
    from app.services.sync.manual_sync_limiter import ManualSyncLimiter
    from app.services.sync.rate_limiter import ApiRateLimiter

    return ServiceRegistry(
        settings=settings,
        rate_limiter=ApiRateLimiter(daily_limit=100),
        transfer_client=transfer_source,
        player_client=player_source,
        player_cache=PlayerCache(),
        manual_sync_limiter=ManualSyncLimiter(store=None),
    )


@pytest.fixture(scope="function")
def test_client(db_session, services, monkeypatch):
    """
    Create FastAPI TestClient with a fresh database for each test.

    Note: We don't use context manager (with TestClient) because that would
    run the lifespan and start the real scheduler.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/sync/transfers")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from app.main import app
    from app.core.config import settings
    from app.core.database import get_db
    from app.core.limiter import limiter

    monkeypatch.setattr(settings, "CRON_SECRET", CRON_SECRET)
    monkeypatch.setattr(settings, "MANUAL_SYNC_TOKEN", MANUAL_TOKEN)
    monkeypatch.setattr(settings, "ENRICHMENT_RECORD_DELAY", 0.0)
    monkeypatch.setattr(settings, "ENRICHMENT_BATCH_DELAY", 0.0)
    monkeypatch.setattr(settings, "ENRICHMENT_RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr(limiter, "enabled", False)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    original_services = app.state.services
    app.state.services = services
    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    app.state.services = original_services
