"""
Transform raw API-Football transfer rows into TransferRecord objects.

Validate-then-filter: rows that fail schema validation, have an
unparsable date, or are missing required fields are dropped and logged
at debug level. Dropped rows are not failures.
"""
import re
from dataclasses import dataclass, asdict, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.logging import get_logger

logger = get_logger(__name__)


class TransferType(str, Enum):
    LOAN = "Loan"
    PERMANENT = "Permanent"
    FREE_TRANSFER = "Free Transfer"
    NOT_APPLICABLE = "N/A"


# ---------------------------------------------------------------------------
# Raw provider schema
# ---------------------------------------------------------------------------

class RawClub(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1)
    logo: Optional[str] = None


class RawLeague(BaseModel):
    id: int
    name: str = Field(min_length=1)
    country: Optional[str] = None


class RawTransfer(BaseModel):
    """One transfer row as returned by the provider."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    player_id: int = Field(alias="playerId")
    player_name: str = Field(alias="playerName", min_length=1)
    player_age: Optional[int] = Field(default=None, alias="playerAge")
    player_position: Optional[str] = Field(default=None, alias="playerPosition")
    player_nationality: Optional[str] = Field(default=None, alias="playerNationality")
    from_club: RawClub = Field(alias="fromClub")
    to_club: RawClub = Field(alias="toClub")
    league: RawLeague
    type: str
    amount: Optional[str] = None
    date: str

    @field_validator("player_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("player name is blank")
        return value

    @field_validator("player_age")
    @classmethod
    def _plausible_age(cls, value: Optional[int]) -> Optional[int]:
        if value is None or 16 <= value <= 50:
            return value
        return None

    @field_validator("player_nationality")
    @classmethod
    def _iso3_only(cls, value: Optional[str]) -> Optional[str]:
        if value and len(value) == 3:
            return value.upper()
        return None


# ---------------------------------------------------------------------------
# Canonical record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransferRecord:
    """Normalized transfer, keyed by the provider's transfer id."""
    api_transfer_id: int
    player_id: int
    player_first_name: str
    player_last_name: str
    player_full_name: str
    from_club_name: str
    to_club_name: str
    league_api_id: int
    league_name: str
    transfer_type: str
    transfer_date: date
    transfer_window: str
    season: int
    age: Optional[int] = None
    position: Optional[str] = None
    nationality: Optional[str] = None
    from_club_api_id: Optional[int] = None
    to_club_api_id: Optional[int] = None
    transfer_value_cents: Optional[int] = None
    transfer_value_display: str = "FREE"
    status: str = "done"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def diff(self, existing: Any) -> Dict[str, Any]:
        """
        Fields whose value differs from ``existing`` (an ORM row or any object).

        Enrichment-owned fields (age, position, nationality) are only
        patched when the source actually provides a value, so a sync never
        wipes data the enrichment pipeline filled in.
        """
        patch = {}
        for f in fields(self):
            if f.name == "api_transfer_id":
                continue
            value = getattr(self, f.name)
            if f.name in ("age", "position", "nationality") and value is None:
                continue
            if getattr(existing, f.name, None) != value:
                patch[f.name] = value
        return patch


# ---------------------------------------------------------------------------
# Field normalizers
# ---------------------------------------------------------------------------

def extract_name(full_name: str) -> tuple[str, str]:
    """
    Split a full name into (first, last). The last name keeps every token after the first.

    Examples:
        >>> extract_name("Kevin De Bruyne")
        ('Kevin', 'De Bruyne')
        >>> extract_name("Casemiro")
        ('Casemiro', '')
    """
    parts = full_name.strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def map_transfer_type(api_type: str) -> TransferType:
    normalized = (api_type or "").strip().lower()

    if normalized == "loan":
        return TransferType.LOAN
    if normalized in ("free", "free transfer"):
        return TransferType.FREE_TRANSFER
    if normalized in ("n/a", "not applicable"):
        return TransferType.NOT_APPLICABLE
    return TransferType.PERMANENT


def map_position(api_position: Optional[str]) -> Optional[str]:
    if not api_position:
        return None

    normalized = api_position.strip().lower()

    if "goalkeeper" in normalized or "gk" in normalized:
        return "Goalkeeper"
    if any(token in normalized for token in ("defender", "back", "center", "full")):
        return "Defender"
    if "mid" in normalized:
        return "Midfielder"
    if any(token in normalized for token in ("attacker", "forward", "striker", "wing")):
        return "Attacker"
    return None


_CURRENCY_CHARS = re.compile(r"[€£$,]")


def parse_transfer_value(amount: Optional[str]) -> Optional[int]:
    """
    Parse a display amount into integer cents.

    Examples:
        >>> parse_transfer_value("€25M")
        2500000000
        >>> parse_transfer_value("£500K")
        50000000
        >>> parse_transfer_value("free") is None
        True
    """
    if not amount or amount.strip().lower() in ("free", "n/a"):
        return None

    clean = _CURRENCY_CHARS.sub("", amount).strip()
    try:
        if "M" in clean:
            return round(float(clean.replace("M", "")) * 100_000_000)
        if "K" in clean:
            return round(float(clean.replace("K", "")) * 100_000)
        return round(float(clean) * 100)
    except ValueError:
        logger.debug(f"Failed to parse transfer value: {amount}")
        return None


def format_transfer_value(value_cents: Optional[int]) -> str:
    if not value_cents:
        return "FREE"

    millions = value_cents / 100_000_000
    if millions >= 1000:
        return f"€{millions / 1000:.1f}B"
    return f"€{millions:.1f}M"


def determine_transfer_window(transfer_date: date) -> str:
    """
    Bucket a date into "YYYY-winter" or "YYYY-summer".

    January-February is winter and May-August is summer. March and April
    fall back to winter, September-December to summer.
    """
    month = transfer_date.month
    if month in (1, 2):
        season = "winter"
    elif 5 <= month <= 8:
        season = "summer"
    else:
        season = "winter" if month < 5 else "summer"
    return f"{transfer_date.year}-{season}"


def parse_transfer_date(raw: str) -> Optional[date]:
    """Accepts "YYYY-MM-DD" or a full ISO timestamp. Returns None if unparsable."""
    if not raw:
        return None
    raw = raw.strip()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Row transforms
# ---------------------------------------------------------------------------

def transform_single(row: Dict[str, Any], season: int) -> Optional[TransferRecord]:
    """Transform one raw row, or return None when it must be dropped."""
    try:
        raw = RawTransfer.model_validate(row)
    except ValidationError as e:
        logger.debug(f"Dropping invalid transfer row {row.get('id', 'unknown')}: {e.error_count()} errors")
        return None

    transfer_date = parse_transfer_date(raw.date)
    if transfer_date is None:
        logger.debug(f"Invalid transfer date: {raw.date} for transfer {raw.id}")
        return None

    first_name, last_name = extract_name(raw.player_name)
    value_cents = parse_transfer_value(raw.amount)

    return TransferRecord(
        api_transfer_id=raw.id,
        player_id=raw.player_id,
        player_first_name=first_name,
        player_last_name=last_name,
        player_full_name=raw.player_name,
        age=raw.player_age,
        position=map_position(raw.player_position),
        nationality=raw.player_nationality,
        from_club_api_id=raw.from_club.id,
        from_club_name=raw.from_club.name,
        to_club_api_id=raw.to_club.id,
        to_club_name=raw.to_club.name,
        league_api_id=raw.league.id,
        league_name=raw.league.name,
        transfer_type=map_transfer_type(raw.type).value,
        transfer_value_cents=value_cents,
        transfer_value_display=format_transfer_value(value_cents),
        transfer_date=transfer_date,
        transfer_window=determine_transfer_window(transfer_date),
        season=season,
    )


def transform_batch(rows: Iterable[Optional[Dict[str, Any]]], season: int) -> List[TransferRecord]:
    """Transform rows, skipping None entries and rows that fail validation."""
    records = []
    for row in rows:
        if row is None:
            continue
        record = transform_single(row, season)
        if record is not None:
            records.append(record)
    return records
