"""
Repository layer for data access.

Usage:
    from app.repositories import SqlAlchemyDatabaseService
    from app.core.database import SessionLocal

    db = SessionLocal()
    service = SqlAlchemyDatabaseService(db)
    transfer = service.find_by_external_id(987654)
    db.close()
"""
from app.repositories.base import BaseRepository
from app.repositories.database_service import (
    DatabaseService,
    Transaction,
    SqlAlchemyDatabaseService,
)
from app.repositories.memory import InMemoryDatabaseService

__all__ = [
    "BaseRepository",
    "DatabaseService",
    "Transaction",
    "SqlAlchemyDatabaseService",
    "InMemoryDatabaseService",
]
