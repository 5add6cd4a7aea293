"""
Data models for the tanning salon booking core.
"""

from .booking import (
    BookingError,
    BookingResult,
    DailyAvailability,
    NewReservation,
    Reservation,
    ReservationEvent,
    ReservationStatus,
    ScanResult,
    Sunbed,
)
from .user import UserIdentity
from .wallet import Purchase, WalletData

__all__ = [
    "BookingError",
    "BookingResult",
    "DailyAvailability",
    "NewReservation",
    "Reservation",
    "ReservationEvent",
    "ReservationStatus",
    "ScanResult",
    "Sunbed",
    "UserIdentity",
    "Purchase",
    "WalletData",
]
