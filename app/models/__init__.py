"""
Models for the transfer sync API.

Usage:
    from app.models import Transfer, SyncLog
"""
from app.models.models import (
    Base,
    Transfer,
    SyncLog,
    EnrichmentLog,
    PlayerCacheEntry,
    ManualSyncLimit,
)

__all__ = [
    "Base",
    "Transfer",
    "SyncLog",
    "EnrichmentLog",
    "PlayerCacheEntry",
    "ManualSyncLimit",
]
