"""Unit tests for raw transfer row transformation."""
from datetime import date

import pytest

from app.services.sync.adapters.transfer_transformer import (
    TransferType,
    determine_transfer_window,
    extract_name,
    format_transfer_value,
    map_position,
    map_transfer_type,
    parse_transfer_date,
    parse_transfer_value,
    transform_batch,
    transform_single,
)
from conftest import make_raw_transfer


class TestFieldNormalizers:
    """Pure field-level helpers."""

    def test_extract_name(self):
        """Should split on the first token and keep the rest as last name."""
        assert extract_name("Kevin De Bruyne") == ("Kevin", "De Bruyne")
        assert extract_name("Casemiro") == ("Casemiro", "")
        assert extract_name("   ") == ("", "")

    @pytest.mark.parametrize("raw,expected", [
        ("Loan", TransferType.LOAN),
        ("free", TransferType.FREE_TRANSFER),
        ("Free Transfer", TransferType.FREE_TRANSFER),
        ("N/A", TransferType.NOT_APPLICABLE),
        ("€ 45M", TransferType.PERMANENT),
        ("", TransferType.PERMANENT),
    ])
    def test_map_transfer_type(self, raw, expected):
        """Should map provider type strings onto the four transfer types."""
        assert map_transfer_type(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("Goalkeeper", "Goalkeeper"),
        ("Centre-Back", "Defender"),
        ("Defender", "Defender"),
        ("Midfielder", "Midfielder"),
        ("Attacker", "Attacker"),
        ("Striker", "Attacker"),
        ("Coach", None),
        (None, None),
    ])
    def test_map_position(self, raw, expected):
        """Should map provider positions onto the standard labels."""
        assert map_position(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("€25M", 2_500_000_000),
        ("£500K", 50_000_000),
        ("$1,200", 120_000),
        ("free", None),
        ("N/A", None),
        (None, None),
        ("undisclosed", None),
    ])
    def test_parse_transfer_value(self, raw, expected):
        """Should parse display amounts into integer cents."""
        assert parse_transfer_value(raw) == expected

    def test_format_transfer_value(self):
        """Should format cents as millions, billions, or FREE."""
        assert format_transfer_value(None) == "FREE"
        assert format_transfer_value(0) == "FREE"
        assert format_transfer_value(2_500_000_000) == "€25.0M"
        assert format_transfer_value(150_000_000_000) == "€1.5B"

    @pytest.mark.parametrize("month,expected", [
        (1, "2024-winter"),
        (2, "2024-winter"),
        (3, "2024-winter"),
        (4, "2024-winter"),
        (5, "2024-summer"),
        (8, "2024-summer"),
        (9, "2024-summer"),
        (12, "2024-summer"),
    ])
    def test_determine_transfer_window(self, month, expected):
        """Should bucket every month into winter or summer."""
        assert determine_transfer_window(date(2024, month, 15)) == expected

    def test_parse_transfer_date(self):
        """Should accept plain dates and ISO timestamps."""
        assert parse_transfer_date("2023-07-15") == date(2023, 7, 15)
        assert parse_transfer_date("2023-07-15T10:30:00Z") == date(2023, 7, 15)
        assert parse_transfer_date("15/07/2023") is None
        assert parse_transfer_date("") is None


class TestTransformSingle:
    """Whole-row transformation."""

    def test_valid_row(self):
        """Should build a complete TransferRecord from a valid row."""
        record = transform_single(make_raw_transfer(1001), season=2023)

        assert record is not None
        assert record.api_transfer_id == 1001
        assert record.player_id == 51001
        assert record.player_first_name == "Declan"
        assert record.player_last_name == "Rice"
        assert record.position == "Midfielder"
        assert record.nationality == "ENG"
        assert record.from_club_name == "West Ham"
        assert record.to_club_name == "Arsenal"
        assert record.league_api_id == 39
        assert record.transfer_type == "Permanent"
        assert record.transfer_value_cents == 11_660_000_000
        assert record.transfer_value_display == "€116.6M"
        assert record.transfer_date == date(2023, 7, 15)
        assert record.transfer_window == "2023-summer"
        assert record.season == 2023

    def test_implausible_age_and_nationality_are_cleared(self):
        """Should null out ages outside 16-50 and non ISO-3 nationalities."""
        record = transform_single(
            make_raw_transfer(1001, playerAge=72, playerNationality="England"),
            season=2023,
        )

        assert record is not None
        assert record.age is None
        assert record.nationality is None

    @pytest.mark.parametrize("overrides", [
        {"date": ""},
        {"date": "not-a-date"},
        {"playerName": "   "},
        {"toClub": None},
        {"league": {"name": "No id"}},
    ])
    def test_invalid_rows_are_dropped(self, overrides):
        """Should return None for rows that fail validation."""
        assert transform_single(make_raw_transfer(1001, **overrides), season=2023) is None

    def test_missing_required_key_is_dropped(self):
        """Should drop rows missing a required key entirely."""
        row = make_raw_transfer(1001)
        del row["playerId"]

        assert transform_single(row, season=2023) is None


class TestTransformBatch:
    """Batch transformation."""

    def test_filters_invalid_and_none(self, sample_transfer_rows):
        """Should keep only the valid rows, in order."""
        records = transform_batch(sample_transfer_rows + [None], season=2023)

        assert [r.api_transfer_id for r in records] == [1001, 1002, 1003]
        assert records[2].transfer_type == "Loan"
        assert records[2].transfer_value_display == "FREE"


class TestRecordDiff:
    """TransferRecord.diff against an existing row."""

    def test_identical_row_has_no_diff(self):
        """Should return an empty patch when nothing changed."""
        record = transform_single(make_raw_transfer(1001), season=2023)

        assert record.diff(record) == {}

    def test_changed_fields_are_reported(self):
        """Should report only fields whose values changed."""
        old = transform_single(make_raw_transfer(1001), season=2023)
        new = transform_single(make_raw_transfer(1001, toClub={"id": 50, "name": "Man City"}), season=2023)

        patch = new.diff(old)

        assert patch == {"to_club_name": "Man City", "to_club_api_id": 50}

    def test_missing_enrichment_fields_do_not_wipe_existing(self):
        """Should not overwrite enriched age/position/nationality with None."""
        enriched = transform_single(make_raw_transfer(1001), season=2023)
        sparse = transform_single(
            make_raw_transfer(1001, playerAge=None, playerPosition=None, playerNationality=None),
            season=2023,
        )

        assert sparse.diff(enriched) == {}
