"""
Database configuration and session management.
"""
import os
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import settings

_engine = None
_SessionLocal = None


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    Let SQLAlchemy own BEGIN on pysqlite connections.

    pysqlite defers BEGIN until the first DML statement, so a SAVEPOINT
    issued first becomes the outermost transaction and its RELEASE commits.
    Per-record savepoints (Session.begin_nested) need a real BEGIN first.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _build_engine(database_url: str) -> Engine:
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"

    if database_url.startswith("sqlite"):
        # SQLite connections are shared with the scheduler and threadpool
        return enable_sqlite_savepoints(create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        ))

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine, _SessionLocal

    if _engine is None:
        _engine = _build_engine(settings.DATABASE_URL)
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    return _engine


def SessionLocal() -> Session:
    """Open a new session bound to the application engine."""
    get_engine()
    return _SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
    ```
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables."""
    from app.models.models import Base
    Base.metadata.create_all(bind=get_engine(), checkfirst=True)
