"""
Database models for the transfer sync API.

Tables:
- transfers: normalized transfer records plus enrichment columns
- sync_logs: one row per sync run
- enrichment_logs: durable enrichment failures with retry counters
- player_cache: persisted secondary-API player payloads
- manual_sync_limits: last manual trigger per token
"""
from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Date, Boolean, Text, JSON,
    ForeignKey, Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Transfer(Base):
    """A football transfer keyed by the provider's own transfer id."""
    __tablename__ = "transfers"

    id = Column(String(36), primary_key=True)
    api_transfer_id = Column(Integer, unique=True, nullable=False, index=True)  # natural idempotency key

    # Player
    player_id = Column(Integer, nullable=False, index=True)  # API-Football player id
    player_first_name = Column(String(100), nullable=False)
    player_last_name = Column(String(150), nullable=False, default="")
    player_full_name = Column(String(255), nullable=False, index=True)
    age = Column(Integer, nullable=True)
    position = Column(String(20), nullable=True)  # Goalkeeper, Defender, Midfielder, Attacker
    nationality = Column(String(3), nullable=True)  # ISO-3 or UNK
    player_photo_url = Column(String(500), nullable=True)

    # Clubs and league (denormalized for display)
    from_club_api_id = Column(Integer, nullable=True)
    from_club_name = Column(String(255), nullable=False)
    to_club_api_id = Column(Integer, nullable=True)
    to_club_name = Column(String(255), nullable=False)
    league_api_id = Column(Integer, nullable=False, index=True)
    league_name = Column(String(100), nullable=False)

    # Transfer details
    transfer_type = Column(String(20), nullable=False)  # Loan, Permanent, Free Transfer, N/A
    transfer_value_cents = Column(BigInteger, nullable=True)
    transfer_value_display = Column(String(20), nullable=False, default="FREE")
    status = Column(String(16), nullable=False, default="done")
    transfer_date = Column(Date, nullable=False, index=True)
    transfer_window = Column(String(16), nullable=False, index=True)  # 2025-summer, 2026-winter
    season = Column(Integer, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_transfers_season_created", "season", "created_at", "id"),
    )


class SyncLog(Base):
    """Outcome of one sync run (cron or manual)."""
    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    strategy = Column(String(16), nullable=False, index=True)  # normal, deadline_day, emergency
    season = Column(Integer, nullable=False)
    trigger_source = Column(String(8), nullable=False, index=True)  # cron, manual
    success = Column(Boolean, nullable=False, index=True)
    total_processed = Column(Integer, nullable=False, default=0)
    successful = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=False, default=0)
    groups_processed = Column(Integer, nullable=False, default=0)
    api_calls_used = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    rate_limit_status = Column(JSON, nullable=True)
    context = Column(JSON, nullable=True)


class EnrichmentLog(Base):
    """Durable record of a failed player enrichment, retried with backoff."""
    __tablename__ = "enrichment_logs"

    id = Column(String(36), primary_key=True)
    transfer_id = Column(String(36), ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(Integer, nullable=True)
    season = Column(Integer, nullable=True, index=True)
    error = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    retry_count = Column(Integer, nullable=False, default=0)
    resolved = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_enrichment_logs_unresolved", "resolved", "retry_count"),
    )


class PlayerCacheEntry(Base):
    """Persisted player payload from the secondary API."""
    __tablename__ = "player_cache"

    id = Column(String(36), primary_key=True)
    player_id = Column(Integer, unique=True, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    statistics = Column(JSON, nullable=False, default=list)
    cached_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    hit_count = Column(Integer, nullable=False, default=0)


class ManualSyncLimit(Base):
    """Last manual sync per token (one slot per hour)."""
    __tablename__ = "manual_sync_limits"

    token = Column(String(255), primary_key=True)
    last_triggered = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
