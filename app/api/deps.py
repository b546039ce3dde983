"""
FastAPI dependencies shared by the sync and enrichment routes.

Process-wide collaborators come from ``app.state.services`` so tests can
swap them without touching module globals.
"""
from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.requests import Request

from app.core.database import get_db
from app.repositories.database_service import DatabaseService, SqlAlchemyDatabaseService
from app.services.registry import ServiceRegistry
from app.services.sync.orchestrator import SyncOrchestrator


def get_services(request: Request) -> ServiceRegistry:
    return request.app.state.services


def get_database_service(db: Session = Depends(get_db)) -> DatabaseService:
    """Dependency to get a request-scoped DatabaseService."""
    return SqlAlchemyDatabaseService(db)


def get_orchestrator(
    services: ServiceRegistry = Depends(get_services),
    db_service: DatabaseService = Depends(get_database_service),
) -> SyncOrchestrator:
    """Dependency to get sync orchestrator instance."""
    return services.orchestrator(db_service)
