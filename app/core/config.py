"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- API_FOOTBALL_KEY
- CRON_SECRET (trusted scheduler header)
- MANUAL_SYNC_TOKEN (shared secret for human-triggered syncs)
"""
import os
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Transfer Sync API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./transfers.db")

    # Security secrets
    CRON_SECRET: str = ""
    MANUAL_SYNC_TOKEN: str = ""

    # HTTP rate limiting (slowapi)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE: str = "memory"  # "memory" or "redis"
    REDIS_URL: Optional[str] = None  # Required if using Redis storage

    # API-Football
    API_FOOTBALL_KEY: str = ""
    API_FOOTBALL_BASE_URL: str = "https://v3.football.api-sports.io"
    API_FOOTBALL_TIMEOUT: float = 30.0
    API_FOOTBALL_MAX_PAGES: int = 3

    # Daily quota accounting
    API_DAILY_LIMIT: int = 3000
    API_EMERGENCY_THRESHOLD: float = 0.10

    # Strategy selection
    DEADLINE_DAY_MODE: bool = False  # Forces the emergency cadence
    ENABLE_DEADLINE_CRON: bool = False  # Runs the deadline job outside deadline windows
    TRANSFER_DEADLINES: str = ""  # Comma-separated ISO-8601 instants, UTC
    CURRENT_SEASON: int = 2026

    # Manual sync slots
    MANUAL_SYNC_STORAGE: Literal["database", "memory"] = "database"
    MANUAL_SYNC_WINDOW_MINUTES: int = 60

    # Player enrichment
    ENRICHMENT_BATCH_SIZE: int = 50
    ENRICHMENT_RECORD_DELAY: float = 0.1  # seconds between records
    ENRICHMENT_BATCH_DELAY: float = 1.0  # seconds between batches
    ENRICHMENT_MAX_RECORDS: int = 1000
    ENRICHMENT_MAX_RETRIES: int = 3
    ENRICHMENT_RETRY_BASE_DELAY: float = 1.0

    # Player cache
    PLAYER_CACHE_TTL_DAYS: int = 7
    PLAYER_CACHE_MAX_SIZE: int = 10000

    # Scheduler
    SCHEDULER_ENABLED: bool = True

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins with environment-aware defaults."""
        if self.CORS_ORIGINS_STR:
            origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
            if origins:
                if self.is_production() and "*" in origins:
                    logger.warning(
                        "Wildcard CORS origins (*) are not allowed in production. "
                        "Please set explicit origins in CORS_ORIGINS_STR environment variable."
                    )
                    return []
                return origins

        if self.is_production():
            return []
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]

    @property
    def transfer_deadlines(self) -> Optional[list[datetime]]:
        """
        Parse TRANSFER_DEADLINES into UTC instants.

        Returns None when unset so callers fall back to the built-in list.
        Naive timestamps are read as UTC.
        """
        if not self.TRANSFER_DEADLINES.strip():
            return None

        deadlines = []
        for raw in self.TRANSFER_DEADLINES.split(","):
            raw = raw.strip()
            if not raw:
                continue
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            deadlines.append(parsed.astimezone(timezone.utc))
        return deadlines

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if self.is_production():
            if not self.API_FOOTBALL_KEY:
                missing.append("API_FOOTBALL_KEY")
            if not self.CRON_SECRET:
                missing.append("CRON_SECRET")
            if not self.MANUAL_SYNC_TOKEN:
                missing.append("MANUAL_SYNC_TOKEN")

        if self.RATE_LIMIT_ENABLED and self.RATE_LIMIT_STORAGE == "redis" and not self.REDIS_URL:
            missing.append("REDIS_URL")

        return missing


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = ConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

# Validate secrets on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required secrets for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing secrets: {', '.join(missing_secrets)}. "
            f"Please set these environment variables in .env.production"
        )
