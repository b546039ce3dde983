"""
Transfer data access.
"""
from typing import List, Optional

from sqlalchemy import and_, or_

from app.models.models import Transfer
from app.repositories.base import BaseRepository
from app.core.logging import get_logger

logger = get_logger(__name__)

# Nationality placeholder written when the provider has nothing usable
UNKNOWN_NATIONALITY = "UNK"


def under_enriched_clause():
    """SQL predicate: missing position, age, or a real nationality."""
    return or_(
        Transfer.position.is_(None),
        Transfer.age.is_(None),
        Transfer.nationality.is_(None),
        Transfer.nationality == UNKNOWN_NATIONALITY,
    )


class TransferRepository(BaseRepository[Transfer]):
    """Transfer-specific queries."""

    def __init__(self, db):
        super().__init__(Transfer, db)

    def find_by_api_transfer_id(self, api_transfer_id: int) -> Optional[Transfer]:
        return self.where_first(Transfer.api_transfer_id == api_transfer_id)

    def get_under_enriched(
        self,
        season: int,
        after_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Transfer]:
        """
        Under-enriched transfers for a season, ordered by (created_at, id).

        Args:
            season: Season year
            after_id: Resume cursor; only records strictly after it are returned
            limit: Maximum number of records
        """
        query = self.query().filter(Transfer.season == season, under_enriched_clause())

        if after_id:
            cursor = self.find_by_id(after_id)
            if cursor is None:
                logger.warning(f"Resume cursor {after_id} not found, starting from the beginning")
            else:
                query = query.filter(
                    or_(
                        Transfer.created_at > cursor.created_at,
                        and_(Transfer.created_at == cursor.created_at, Transfer.id > cursor.id),
                    )
                )

        return query.order_by(Transfer.created_at, Transfer.id).limit(limit).all()

    def count_for_season(self, season: int, under_enriched_only: bool = False) -> int:
        criterion = [Transfer.season == season]
        if under_enriched_only:
            criterion.append(under_enriched_clause())
        return self.count(*criterion)
