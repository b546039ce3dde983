"""
Normalization of API-Football /players responses into transfer fields.

A /players response entry looks like:
    {
        "player": {"id": 276, "age": 32, "birth": {"date": "1992-02-05"},
                   "nationality": "Brazil", "photo": "https://..."},
        "statistics": [{"games": {"position": "Attacker"}}, ...]
    }
"""
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Optional

from app.repositories.transfer_repository import UNKNOWN_NATIONALITY
from app.services.enrichment.nationality import NATIONALITY_CODES

STANDARD_POSITIONS = {"Goalkeeper", "Defender", "Midfielder", "Attacker"}


def normalize_position(statistics: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """
    Most frequent games.position across statistics entries.

    Ties go to the label seen first. Labels outside the four standard
    positions give None.
    """
    positions = [
        (entry.get("games") or {}).get("position")
        for entry in statistics or []
    ]
    positions = [p for p in positions if p]
    if not positions:
        return None

    # Counter keeps insertion order, and most_common is stable on ties
    most_common = Counter(positions).most_common(1)[0][0]
    return most_common if most_common in STANDARD_POSITIONS else None


def normalize_nationality(nationality: Optional[str]) -> str:
    if not nationality:
        return UNKNOWN_NATIONALITY

    mapped = NATIONALITY_CODES.get(nationality)
    if mapped:
        return mapped

    fallback = nationality.strip()[:3].upper()
    return fallback if len(fallback) == 3 else UNKNOWN_NATIONALITY


def calculate_age(birth_date: Optional[str], today: Optional[date] = None) -> Optional[int]:
    """Whole years between birth_date (ISO) and today. None if unparseable."""
    if not birth_date:
        return None
    try:
        born = date.fromisoformat(birth_date[:10])
    except ValueError:
        return None

    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def enrich_player_data(response: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """
    Build the enrichment patch for one transfer.

    Returns:
        Dict with position, age, nationality and player_photo_url
    """
    player = response.get("player") or {}
    age = player.get("age") or calculate_age((player.get("birth") or {}).get("date"), today)

    return {
        "position": normalize_position(response.get("statistics")),
        "age": age,
        "nationality": normalize_nationality(player.get("nationality")),
        "player_photo_url": player.get("photo"),
    }
