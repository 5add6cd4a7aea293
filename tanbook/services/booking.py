"""
Booking Coordinator - the only path that creates or cancels reservations.

Creation re-checks the ledger for a confirmed reservation on the same
(sunbed, date, time) right before inserting, even when the locally
cached availability table says the slot is free, because that table can
be stale. Failures are returned as BookingResult error codes, never
raised.
"""

from datetime import datetime
from typing import Optional

from loguru import logger

from tanbook.config import SESSION_MINUTES
from tanbook.models.booking import (
    BookingError,
    BookingResult,
    NewReservation,
    ReservationStatus,
)
from tanbook.models.user import UserIdentity
from tanbook.services.availability import AvailabilityProjector
from tanbook.services.ledger import (
    LedgerError,
    ReservationConflictError,
    ReservationLedger,
    ReservationNotFoundError,
)
from tanbook.services.slot_grid import get_sunbed, is_valid_date, is_valid_slot

MESSAGES = {
    BookingError.SLOT_UNAVAILABLE: "Time slot is no longer available",
    BookingError.UNKNOWN_RESOURCE: "Invalid sunbed selected",
    BookingError.INVALID_SLOT: "Selected time is not a bookable slot",
    BookingError.NOT_AUTHENTICATED: "User not authenticated",
    BookingError.NOT_FOUND: "Booking not found",
    BookingError.CANCEL_FAILED: "Failed to cancel booking",
    BookingError.LEDGER_UNAVAILABLE: "Booking service is unreachable. Please try again.",
}


def _failure(code: BookingError, message: Optional[str] = None) -> BookingResult:
    return BookingResult(success=False, message=message or MESSAGES[code], error_code=code)


class BookingCoordinator:
    """
    Creates and cancels reservations against a ledger.

    The projector, when given, supplies the cached availability used for
    the cheap client-side rejection before the authoritative check.
    """

    def __init__(
        self,
        ledger: ReservationLedger,
        projector: Optional[AvailabilityProjector] = None,
    ):
        self._ledger = ledger
        self._projector = projector

    async def create_reservation(
        self,
        user: Optional[UserIdentity],
        sunbed_id: str,
        date: str,
        time: str,
        duration_minutes: int = SESSION_MINUTES,
        skip_local_availability_check: bool = False,
    ) -> BookingResult:
        """
        Book a sunbed slot for a user.

        Args:
            user: Signed-in user, or None when nobody is signed in
            sunbed_id: Sunbed to book
            date: Booking date (YYYY-MM-DD)
            time: Slot start (HH:MM), one of the slot grid values
            duration_minutes: Session length
            skip_local_availability_check: Go straight to the ledger check;
                used by kiosk sessions that have not loaded a table

        Returns:
            BookingResult with the new reservation id on success
        """
        if user is None:
            return _failure(BookingError.NOT_AUTHENTICATED)

        if not skip_local_availability_check and self._projector is not None:
            # No cached table means nothing to reject on; the ledger decides
            if self._projector.is_available(sunbed_id, date, time) is False:
                return _failure(BookingError.SLOT_UNAVAILABLE)

        sunbed = get_sunbed(sunbed_id)
        if sunbed is None:
            return _failure(BookingError.UNKNOWN_RESOURCE)
        if not is_valid_slot(time):
            return _failure(BookingError.INVALID_SLOT)
        if not is_valid_date(date):
            return _failure(BookingError.INVALID_SLOT, "Selected date is not a valid booking date")

        try:
            conflict = await self._ledger.find_conflict(sunbed_id, date, time)
            if conflict is not None:
                logger.warning(
                    f"Slot {sunbed_id} {date} {time} already held by reservation {conflict.id}"
                )
                return _failure(
                    BookingError.SLOT_UNAVAILABLE, "Time slot is already booked by another user"
                )

            now = datetime.now()
            reservation = NewReservation(
                user_id=user.uid,
                user_name=user.booking_name,
                user_email=user.email or "",
                sunbed_id=sunbed_id,
                sunbed_name=sunbed.name,
                date=date,
                time=time,
                duration=duration_minutes,
                status=ReservationStatus.CONFIRMED,
                created_at=now,
                updated_at=now,
            )
            reservation_id = await self._ledger.insert(reservation)

        except ReservationConflictError as e:
            logger.warning(f"Lost booking race for {sunbed_id} {date} {time}: {e}")
            return _failure(
                BookingError.SLOT_UNAVAILABLE, "Time slot is already booked by another user"
            )
        except LedgerError as e:
            logger.error(f"Error creating booking: {e}")
            return _failure(BookingError.LEDGER_UNAVAILABLE)

        logger.info(f"Booking {reservation_id} confirmed: {sunbed.name} on {date} at {time}")
        return BookingResult(
            success=True,
            reservation_id=reservation_id,
            message=f"Your {sunbed.name} is booked for {date} at {time}.",
        )

    async def cancel_reservation(self, reservation_id: str) -> BookingResult:
        """
        Cancel a reservation.

        Cancelling an already-cancelled reservation succeeds without a
        write. Completed reservations cannot be cancelled.
        """
        try:
            reservation = await self._ledger.get(reservation_id)
            if reservation is None:
                return _failure(BookingError.NOT_FOUND)

            if reservation.status == ReservationStatus.CANCELLED:
                return BookingResult(
                    success=True,
                    reservation_id=reservation_id,
                    message="Booking was already cancelled.",
                )
            if reservation.status == ReservationStatus.COMPLETED:
                return _failure(
                    BookingError.CANCEL_FAILED, "A completed session cannot be cancelled"
                )

            await self._ledger.update_status(reservation_id, ReservationStatus.CANCELLED)

        except ReservationNotFoundError:
            return _failure(BookingError.NOT_FOUND)
        except LedgerError as e:
            logger.error(f"Error cancelling booking {reservation_id}: {e}")
            return _failure(BookingError.CANCEL_FAILED)

        logger.info(f"Booking {reservation_id} cancelled")
        return BookingResult(
            success=True,
            reservation_id=reservation_id,
            message="Your booking has been successfully cancelled.",
        )
