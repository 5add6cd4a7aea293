"""
Customer Session - everything one signed-in user does with the booking core.

The session owns every ledger subscription it opens (the availability
feed for the selected date and the user's own bookings feed) and
cancels all of them on sign-out.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger

from tanbook.config import SESSION_HOURS, SESSION_MINUTES
from tanbook.models.booking import (
    BookingError,
    BookingResult,
    Reservation,
    ReservationStatus,
    ScanResult,
)
from tanbook.models.user import UserIdentity
from tanbook.services.availability import AvailabilityProjector
from tanbook.services.booking import BookingCoordinator
from tanbook.services.ledger import LedgerError, ReservationLedger, Subscription, sort_user_bookings
from tanbook.services.nearest_slot import resolve_session_start
from tanbook.services.slot_grid import current_slot_floor, get_sunbed, is_valid_slot
from tanbook.services.wallet import Wallet, can_user_book


class CustomerSession:
    """
    A signed-in customer's view of the salon.

    Use as an async context manager, or call open() and sign_out()
    explicitly:

        async with CustomerSession(user, ledger, wallet) as session:
            session.select_date("2025-06-01")
            result = await session.book("standard-1", "2025-06-01", "10:00")
    """

    def __init__(self, user: UserIdentity, ledger: ReservationLedger, wallet: Wallet):
        self.user: Optional[UserIdentity] = user
        self._ledger = ledger
        self._wallet = wallet
        self.projector = AvailabilityProjector(ledger)
        self.coordinator = BookingCoordinator(ledger, self.projector)
        self._bookings_subscription: Optional[Subscription] = None
        self._user_bookings: List[Reservation] = []
        self.error: Optional[str] = None

    async def __aenter__(self) -> "CustomerSession":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.sign_out()

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None

    @property
    def user_bookings(self) -> List[Reservation]:
        """The user's non-cancelled bookings, newest first."""
        return list(self._user_bookings)

    def open(self) -> None:
        """Start the live feed of the user's own bookings."""
        if self.user is None or (self._bookings_subscription and self._bookings_subscription.active):
            return
        logger.info(f"Opening session for user {self.user.uid}")
        self._bookings_subscription = self._ledger.subscribe_user(
            self.user.uid, self._on_user_bookings, self._on_user_bookings_error
        )

    def sign_out(self) -> None:
        """Tear down every subscription this session created."""
        if self._bookings_subscription:
            self._bookings_subscription.cancel()
            self._bookings_subscription = None
        self.projector.close()
        self._user_bookings = []
        self.error = None
        if self.user is not None:
            logger.info(f"User {self.user.uid} signed out")
        self.user = None

    close = sign_out

    def select_date(self, date: str) -> Subscription:
        """Show availability for a date, replacing any previously watched date."""
        return self.projector.watch(date)

    async def refresh_bookings(self) -> List[Reservation]:
        """Re-read the user's bookings from the ledger."""
        user = self.user
        if user is None:
            return []
        try:
            reservations = await self._ledger.find_by_user(user.uid)
        except LedgerError as e:
            logger.error(f"Error loading bookings: {e}")
            self.error = "Failed to load bookings"
            return self.user_bookings
        if self.user is not user:
            return []
        self._on_user_bookings(reservations)
        return self.user_bookings

    def upcoming_bookings(self, now: Optional[datetime] = None) -> List[Reservation]:
        """Confirmed bookings later today (from the current quarter hour) or on a later date."""
        now = now or datetime.now()
        today = now.strftime("%Y-%m-%d")
        current_time = current_slot_floor(now)
        return [
            booking
            for booking in self._user_bookings
            if booking.status == ReservationStatus.CONFIRMED
            and (booking.date > today or (booking.date == today and booking.time >= current_time))
        ]

    def has_existing_booking(self, sunbed_id: str, date: str, time: str) -> bool:
        return any(
            booking.slot_key == (sunbed_id, date, time)
            and booking.status == ReservationStatus.CONFIRMED
            for booking in self._user_bookings
        )

    async def book(self, sunbed_id: str, date: str, time: str) -> BookingResult:
        """
        Book a slot picked from the calendar and pay for it from the wallet.
        """
        # Sign-out may happen while this call is suspended
        user = self.user
        if user is None:
            return BookingResult(
                success=False,
                message="User not authenticated",
                error_code=BookingError.NOT_AUTHENTICATED,
            )

        gate = await self._check_balance(user)
        if gate is not None:
            return BookingResult(success=False, message=gate[1], error_code=gate[0])

        result = await self.coordinator.create_reservation(user, sunbed_id, date, time)
        if result.success:
            await self._charge_session(user)
        return result

    async def cancel(self, reservation_id: str) -> BookingResult:
        return await self.coordinator.cancel_reservation(reservation_id)

    async def start_scan_session(
        self, sunbed_id: str, now: Optional[datetime] = None
    ) -> ScanResult:
        """
        Start a walk-up session on a scanned sunbed.

        The session is booked into the slot nearest to `now`. A user who
        already holds that exact slot is let straight in.
        """
        now = now or datetime.now()
        user = self.user

        if user is None:
            return ScanResult(
                success=False,
                sunbed_id=sunbed_id,
                message="User not authenticated",
                error_code=BookingError.NOT_AUTHENTICATED,
            )

        sunbed = get_sunbed(sunbed_id)
        if sunbed is None:
            return ScanResult(
                success=False,
                sunbed_id=sunbed_id,
                message="Please select a sunbed before starting your session.",
                error_code=BookingError.UNKNOWN_RESOURCE,
            )

        gate = await self._check_balance(user)
        if gate is not None:
            return ScanResult(
                success=False, sunbed_id=sunbed_id, message=gate[1], error_code=gate[0]
            )

        date, time = resolve_session_start(now)
        if not is_valid_slot(time):
            return ScanResult(
                success=False,
                sunbed_id=sunbed_id,
                date=date,
                time=time,
                message=f"Sessions can only be started during opening hours, not at {time}.",
                error_code=BookingError.OUTSIDE_OPERATING_HOURS,
            )

        session_end = self._session_end(date, time)

        if not self._user_bookings:
            await self.refresh_bookings()
        if self.has_existing_booking(sunbed_id, date, time):
            logger.info(f"User {user.uid} starts pre-booked {sunbed_id} session at {time}")
            return ScanResult(
                success=True,
                sunbed_id=sunbed_id,
                date=date,
                time=time,
                session_end=session_end,
                already_booked=True,
                message=(
                    f"You already have a booking for {sunbed.name} at {time}. "
                    "Starting your pre-booked session."
                ),
            )

        result = await self.coordinator.create_reservation(
            user,
            sunbed_id,
            date,
            time,
            duration_minutes=SESSION_MINUTES,
            skip_local_availability_check=True,
        )
        if not result.success:
            message = result.message
            if result.error_code == BookingError.SLOT_UNAVAILABLE:
                message = f"Could not book {sunbed.name} for {time}. This slot may be taken."
            return ScanResult(
                success=False,
                sunbed_id=sunbed_id,
                date=date,
                time=time,
                message=message,
                error_code=result.error_code,
            )

        await self._charge_session(user)
        return ScanResult(
            success=True,
            sunbed_id=sunbed_id,
            date=date,
            time=time,
            session_end=session_end,
            hours_deducted=SESSION_HOURS,
            reservation_id=result.reservation_id,
            message=(
                f"{sunbed.name} booked for {time}-{session_end}. "
                f"{SESSION_MINUTES} minutes deducted."
            ),
        )

    async def _check_balance(self, user: UserIdentity):
        """Return (error_code, message) when the wallet cannot pay for a session."""
        try:
            remaining = await self._wallet.get_remaining_hours(user.uid)
        except LedgerError as e:
            logger.error(f"Error reading wallet for {user.uid}: {e}")
            return BookingError.LEDGER_UNAVAILABLE, "Could not read your balance. Please try again."

        if not can_user_book(remaining):
            return (
                BookingError.INSUFFICIENT_BALANCE,
                f"You need {SESSION_MINUTES} minutes but only have "
                f"{int(round(remaining * 60))} minutes. Please purchase more hours.",
            )
        return None

    async def _charge_session(self, user: UserIdentity) -> None:
        # Not transactional with the booking: a failed deduction is logged only
        try:
            await self._wallet.deduct_hours(user.uid, SESSION_HOURS)
        except LedgerError as e:
            logger.error(f"Booking succeeded but deducting hours for {user.uid} failed: {e}")
            self.error = "Failed to update your balance"

    @staticmethod
    def _session_end(date: str, time: str) -> str:
        start = datetime.strptime(f"{date} {time}", "%Y-%m-%d %H:%M")
        return (start + timedelta(minutes=SESSION_MINUTES)).strftime("%H:%M")

    def _on_user_bookings(self, reservations: List[Reservation]) -> None:
        self._user_bookings = sort_user_bookings(reservations)
        self.error = None

    def _on_user_bookings_error(self, error: Exception) -> None:
        logger.error(f"Error loading bookings: {error}")
        self.error = "Failed to load bookings"
