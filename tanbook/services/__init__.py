"""
Services layer for the tanning salon booking core.
"""

from .availability import AvailabilityProjector, fold_events, project_availability
from .booking import BookingCoordinator
from .ledger import (
    InMemoryReservationLedger,
    LedgerError,
    LedgerUnavailableError,
    ReservationConflictError,
    ReservationLedger,
    ReservationNotFoundError,
    Subscription,
)
from .nearest_slot import find_best_time_slot, resolve_session_start
from .remote import HttpReservationLedger, HttpWallet
from .session import CustomerSession
from .wallet import InMemoryWallet, Wallet, can_user_book

__all__ = [
    "AvailabilityProjector",
    "fold_events",
    "project_availability",
    "BookingCoordinator",
    "InMemoryReservationLedger",
    "LedgerError",
    "LedgerUnavailableError",
    "ReservationConflictError",
    "ReservationLedger",
    "ReservationNotFoundError",
    "Subscription",
    "find_best_time_slot",
    "resolve_session_start",
    "HttpReservationLedger",
    "HttpWallet",
    "CustomerSession",
    "InMemoryWallet",
    "Wallet",
    "can_user_book",
]
