"""
Player details client for API-Football /players.

Each lookup is one quota-admitted request through ApiFootballClient.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict

from app.core.exceptions import EnrichmentFetchError, PlayerNotFoundError, RateLimitExceededError, SourceFetchError
from app.core.logging import get_logger
from app.services.core.api_football_client import ApiFootballClient

logger = get_logger(__name__)


class PlayerSource(ABC):
    """Anything that can return a /players response entry for a player and season."""

    @abstractmethod
    async def fetch_player(self, player_id: int, season: int) -> Dict[str, Any]:
        """
        Raises:
            PlayerNotFoundError: Provider returned no data for the player
            EnrichmentFetchError: Request failed
        """


class PlayerEnrichmentClient(PlayerSource):

    def __init__(self, client: ApiFootballClient):
        self.client = client

    async def fetch_player(self, player_id: int, season: int) -> Dict[str, Any]:
        try:
            data = await self.client.get("players", {"id": player_id, "season": season})
        except RateLimitExceededError:
            raise
        except SourceFetchError as e:
            raise EnrichmentFetchError(
                f"Player {player_id} lookup failed: {e}",
                status_code=e.status_code,
                retryable=e.retryable,
            ) from e

        response = data.get("response") or []
        if not response:
            raise PlayerNotFoundError(player_id)

        return response[0]

    async def close(self) -> None:
        await self.client.close()
