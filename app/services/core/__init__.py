"""
Core services shared by sync and enrichment.

- api_football_client: quota-aware API-Football HTTP client
- retry: explicit retry policy with tagged success/exhausted results
"""
from app.services.core.retry import RetryPolicy, RetrySuccess, RetryExhausted

__all__ = [
    "RetryPolicy",
    "RetrySuccess",
    "RetryExhausted",
]
