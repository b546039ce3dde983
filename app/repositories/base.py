"""
Base repository class for data access layer.

Repositories own query logic for one model. They add and flush but never
commit; the caller (usually a DatabaseService transaction) decides when
changes become durable.

Example:
    class TransferRepository(BaseRepository[Transfer]):
        def find_by_api_transfer_id(self, api_transfer_id: int) -> Optional[Transfer]:
            return self.where_first(Transfer.api_transfer_id == api_transfer_id)
"""
import uuid
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List, Any

from sqlalchemy import desc, func
from sqlalchemy.orm import Query, Session

from app.utils.timezone import utc_now

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # CRUD Operations
    # ========================================================================

    def find_by_id(self, id: str) -> Optional[T]:
        return self.db.get(self.model_type, id)

    def create(self, **kwargs) -> T:
        """
        Add a new record and flush it so it is visible to later queries.

        Fills ``id``, ``created_at`` and ``updated_at`` when the model has
        them and they were not supplied.
        """
        now = utc_now()
        if hasattr(self.model_type, "id") and "id" not in kwargs:
            kwargs["id"] = str(uuid.uuid4())
        for stamp in ("created_at", "updated_at"):
            if hasattr(self.model_type, stamp) and stamp not in kwargs:
                kwargs[stamp] = now

        instance = self.model_type(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance

    def update(self, instance: T, **kwargs) -> T:
        """Apply changes to a loaded instance and bump ``updated_at``."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = utc_now()
        self.db.flush()
        return instance

    # ========================================================================
    # Query Builders
    # ========================================================================

    def query(self) -> Query:
        return self.db.query(self.model_type)

    def where(self, *criterion) -> List[T]:
        return self.db.query(self.model_type).filter(*criterion).all()

    def where_first(self, *criterion) -> Optional[T]:
        return self.db.query(self.model_type).filter(*criterion).first()

    def count(self, *criterion) -> int:
        query = self.db.query(func.count())
        query = query.select_from(self.model_type)
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    def latest(self, order_field: str, limit: int = 10, *criterion) -> List[T]:
        """Most recent records by ``order_field``, newest first."""
        column = getattr(self.model_type, order_field)
        query = self.db.query(self.model_type)
        if criterion:
            query = query.filter(*criterion)
        return query.order_by(desc(column)).limit(limit).all()

    def all(self) -> List[Any]:
        return self.db.query(self.model_type).all()
