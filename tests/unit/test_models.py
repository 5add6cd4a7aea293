"""
Unit tests for booking, wallet and identity models.
"""

import pytest
from pydantic import ValidationError

from tanbook.models.booking import (
    BookingError,
    BookingResult,
    NewReservation,
    Reservation,
    ReservationStatus,
    ScanResult,
    Sunbed,
)
from tanbook.models.user import UserIdentity
from tanbook.models.wallet import WalletData


class TestReservation:
    """Test reservation validation."""

    def test_defaults(self):
        reservation = NewReservation(
            user_id="user-a", sunbed_id="standard-1", date="2025-06-01", time="10:00"
        )
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.duration == 15
        assert reservation.user_name == "Anonymous"
        assert reservation.is_confirmed is True

    def test_slot_key(self):
        reservation = Reservation(
            id="r1", user_id="user-a", sunbed_id="premium-1", date="2025-06-01", time="18:30"
        )
        assert reservation.slot_key == ("premium-1", "2025-06-01", "18:30")

    def test_rejects_bad_date_format(self):
        with pytest.raises(ValidationError):
            NewReservation(user_id="u", sunbed_id="standard-1", date="01/06/2025", time="10:00")

    def test_rejects_bad_time_format(self):
        with pytest.raises(ValidationError):
            NewReservation(user_id="u", sunbed_id="standard-1", date="2025-06-01", time="9:00")
        with pytest.raises(ValidationError):
            NewReservation(user_id="u", sunbed_id="standard-1", date="2025-06-01", time="25:00")

    def test_status_from_string(self):
        reservation = NewReservation(
            user_id="u",
            sunbed_id="standard-1",
            date="2025-06-01",
            time="10:00",
            status="cancelled",
        )
        assert reservation.status == ReservationStatus.CANCELLED
        assert reservation.is_confirmed is False

    def test_json_round_trip_keeps_timestamps(self):
        original = Reservation(
            id="r1", user_id="u", sunbed_id="standard-1", date="2025-06-01", time="10:00"
        )
        restored = Reservation.model_validate(original.model_dump(mode="json"))
        assert restored == original


class TestSunbed:
    """Test the sunbed catalog model."""

    def test_category_must_be_known(self):
        with pytest.raises(ValidationError):
            Sunbed(id="x", name="X", type="horizontal", max_session_time=10)

    def test_frozen(self):
        sunbed = Sunbed(id="x", name="X", type="standard", max_session_time=10)
        with pytest.raises(ValidationError):
            sunbed.name = "Y"


class TestResults:
    """Test result models."""

    def test_booking_error_serializes_as_code(self):
        result = BookingResult(
            success=False, message="taken", error_code=BookingError.SLOT_UNAVAILABLE
        )
        assert result.model_dump(mode="json")["error_code"] == "SLOT_UNAVAILABLE"

    def test_scan_result_rejects_negative_deduction(self):
        with pytest.raises(ValidationError):
            ScanResult(success=True, message="ok", sunbed_id="standard-1", hours_deducted=-0.25)


class TestWalletData:
    """Test wallet model rules."""

    def test_remaining_never_negative(self):
        wallet = WalletData(user_id="u", remaining=-1.0)
        assert wallet.remaining == 0.0

    def test_assignment_is_clamped(self):
        wallet = WalletData(user_id="u", remaining=1.0)
        wallet.remaining = -0.5
        assert wallet.remaining == 0.0

    def test_remaining_minutes(self):
        assert WalletData(user_id="u", remaining=0.75).remaining_minutes == 45


class TestUserIdentity:
    """Test the identity model."""

    def test_booking_name(self):
        assert UserIdentity(uid="u", display_name="Alice").booking_name == "Alice"
        assert UserIdentity(uid="u").booking_name == "Anonymous"

    def test_blank_fields_are_missing(self):
        user = UserIdentity(uid="u", email="  ", display_name="")
        assert user.email is None
        assert user.display_name is None

    def test_uid_required(self):
        with pytest.raises(ValidationError):
            UserIdentity(uid="")
