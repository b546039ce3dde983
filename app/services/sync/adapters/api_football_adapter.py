"""API-Football transfers adapter.

Fetches raw transfer rows for one league and season. Each page is one
quota-admitted request; pagination stops at the provider's last page or
at max_pages, whichever comes first.

Raw rows are returned untouched. Normalization happens in
transfer_transformer so the orchestrator can count raw rows separately
from valid records.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from app.core.logging import get_logger
from app.services.core.api_football_client import ApiFootballClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchTransfersParams:
    season: int
    league_id: int
    page: int = 1


class TransferSource(ABC):
    """Contract for anything that can produce raw transfer rows."""

    @abstractmethod
    async def fetch(self, params: FetchTransfersParams) -> List[Dict[str, Any]]:
        """
        Fetch raw rows for one league.

        Raises:
            SourceFetchError: On transport failure or quota denial
        """


class ApiFootballTransferClient(TransferSource):
    """TransferSource backed by the API-Football /transfers endpoint."""

    def __init__(self, client: ApiFootballClient, max_pages: int = 3):
        self.client = client
        self.max_pages = max(1, max_pages)

    async def fetch(self, params: FetchTransfersParams) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        page = params.page
        pages_fetched = 0

        while True:
            data = await self.client.get(
                "transfers",
                {"season": params.season, "league": params.league_id, "page": page},
            )
            rows.extend(data.get("response") or [])
            pages_fetched += 1

            total_pages = (data.get("paging") or {}).get("total") or page
            if page >= total_pages or pages_fetched >= self.max_pages:
                break
            page += 1

        logger.debug(
            f"Fetched {len(rows)} raw transfers for league {params.league_id} "
            f"({pages_fetched} page(s))"
        )
        return rows

    async def close(self) -> None:
        await self.client.close()
