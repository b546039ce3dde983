"""
Custom exceptions for the transfer sync and enrichment services.

Error categories and where they are handled:
- Admission: quota denial is a value (RateLimitDecision.allowed is False);
  clients translate it into RateLimitExceededError before any network call.
- Transport: SourceFetchError, caught per league by the orchestrator.
- Per-record: RecordProcessingError, caught per record.
- Catastrophic: DatabaseUnavailableError, rolls back the whole sync run.
- Enrichment: EnrichmentFetchError / PlayerNotFoundError, logged durably and retried.
"""
from typing import Optional


class TransferSyncError(Exception):
    """Base exception for all custom errors."""
    pass


# Source / transport errors
class SourceFetchError(TransferSyncError):
    """Raised when fetching from an external provider fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class RateLimitExceededError(SourceFetchError):
    """Raised by API clients when the daily quota refuses admission."""

    def __init__(self, remaining: int = 0):
        self.remaining = remaining
        super().__init__(f"API rate limit exceeded. Remaining: {remaining}", retryable=False)


# Persistence errors
class RecordProcessingError(TransferSyncError):
    """Raised when a single record cannot be validated or persisted."""
    pass


class DatabaseUnavailableError(TransferSyncError):
    """Raised when the store itself is unreachable. Never isolated per record."""
    pass


# Enrichment errors
class EnrichmentFetchError(SourceFetchError):
    """Raised when the player details endpoint fails."""
    pass


class PlayerNotFoundError(EnrichmentFetchError):
    """Raised when the provider has no data for a player."""

    def __init__(self, player_id: int):
        self.player_id = player_id
        super().__init__(f"No player data found for ID: {player_id}", retryable=False)
