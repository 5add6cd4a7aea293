"""
Unit tests for the slot grid and sunbed catalog.
"""

from datetime import datetime

from tanbook.config import SUNBEDS
from tanbook.services.slot_grid import (
    TIME_SLOTS,
    current_slot_floor,
    generate_time_slots,
    get_sunbed,
    is_valid_date,
    is_valid_slot,
    list_resources,
    list_slots,
)


class TestTimeSlots:
    """Test the daily slot catalog."""

    def test_forty_eight_slots(self):
        """09:00 to 21:00 in quarter hours gives 48 slots."""
        assert len(TIME_SLOTS) == 48

    def test_first_and_last_slot(self):
        assert TIME_SLOTS[0] == "09:00"
        assert TIME_SLOTS[-1] == "20:45"

    def test_slots_ascending_and_unique(self):
        assert TIME_SLOTS == sorted(TIME_SLOTS)
        assert len(set(TIME_SLOTS)) == len(TIME_SLOTS)

    def test_slots_zero_padded(self):
        """Every slot is formatted as HH:MM."""
        for slot in TIME_SLOTS:
            assert len(slot) == 5
            assert slot[2] == ":"

    def test_custom_window(self):
        assert generate_time_slots(10, 11) == ["10:00", "10:15", "10:30", "10:45"]

    def test_list_slots_returns_copy(self):
        """Callers cannot modify the shared catalog."""
        slots = list_slots()
        slots.clear()
        assert len(list_slots()) == 48

    def test_valid_slot(self):
        assert is_valid_slot("09:00") is True
        assert is_valid_slot("14:45") is True

    def test_invalid_slots(self):
        assert is_valid_slot("21:00") is False
        assert is_valid_slot("08:45") is False
        assert is_valid_slot("9:00") is False
        assert is_valid_slot("10:10") is False


class TestSunbedCatalog:
    """Test the sunbed catalog."""

    def test_catalog_matches_config(self):
        resources = list_resources()
        assert [s.id for s in resources] == [entry["id"] for entry in SUNBEDS]

    def test_reference_deployment_has_four_beds(self):
        assert [s.id for s in list_resources()] == [
            "standard-1",
            "standard-2",
            "premium-1",
            "standing-1",
        ]

    def test_get_sunbed(self):
        sunbed = get_sunbed("premium-1")
        assert sunbed is not None
        assert sunbed.type == "premium"
        assert sunbed.price_multiplier == 1.5
        assert sunbed.max_session_time == 15
        assert "Aromatherapy" in sunbed.features

    def test_unknown_sunbed(self):
        assert get_sunbed("tanning-booth-9") is None


class TestHelpers:
    """Test date and time helpers."""

    def test_floor_to_quarter_hour(self):
        assert current_slot_floor(datetime(2025, 6, 1, 14, 37)) == "14:30"
        assert current_slot_floor(datetime(2025, 6, 1, 9, 0)) == "09:00"
        assert current_slot_floor(datetime(2025, 6, 1, 9, 14)) == "09:00"
        assert current_slot_floor(datetime(2025, 6, 1, 20, 59)) == "20:45"

    def test_valid_date(self):
        assert is_valid_date("2025-06-01") is True
        assert is_valid_date("2024-02-29") is True

    def test_invalid_dates(self):
        assert is_valid_date("2025-02-30") is False
        assert is_valid_date("2025-6-1") is False
        assert is_valid_date("01/06/2025") is False
        assert is_valid_date("") is False
