"""
Availability Projector - derives daily sunbed availability from reservations.

The daily table is a pure function of the slot grid and the confirmed
reservations on a date. AvailabilityProjector keeps those tables for
one view, either fetched once or kept live through the ledger's per-date
subscription.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Literal, Optional, Sequence

from loguru import logger

from tanbook.models.booking import (
    BookingError,
    DailyAvailability,
    Reservation,
    ReservationEvent,
    ReservationStatus,
    Sunbed,
)
from tanbook.services.ledger import LedgerError, ReservationLedger, Subscription
from tanbook.services.slot_grid import current_slot_floor, list_resources, list_slots

SlotStatus = Literal["available", "booked", "past"]


def empty_availability(
    sunbeds: Optional[Sequence[Sunbed]] = None,
    slots: Optional[Sequence[str]] = None,
) -> Dict[str, Dict[str, bool]]:
    """Every sunbed and slot marked bookable."""
    sunbeds = list_resources() if sunbeds is None else sunbeds
    slots = list_slots() if slots is None else slots
    return {sunbed.id: {time: True for time in slots} for sunbed in sunbeds}


def project_availability(
    date: str,
    reservations: Iterable[Reservation],
    sunbeds: Optional[Sequence[Sunbed]] = None,
    slots: Optional[Sequence[str]] = None,
) -> DailyAvailability:
    """
    Build the availability table for a date.

    Confirmed reservations on `date` block their slot. Reservations on
    other dates, in other statuses, for unknown sunbeds or outside the
    slot grid are ignored.
    """
    table = empty_availability(sunbeds, slots)
    for reservation in reservations:
        if reservation.date != date or reservation.status != ReservationStatus.CONFIRMED:
            continue
        sunbed_slots = table.get(reservation.sunbed_id)
        if sunbed_slots is None or reservation.time not in sunbed_slots:
            continue
        sunbed_slots[reservation.time] = False
    return DailyAvailability(date=date, sunbed_availability=table)


def fold_events(
    date: str,
    events: Iterable[ReservationEvent],
    sunbeds: Optional[Sequence[Sunbed]] = None,
    slots: Optional[Sequence[str]] = None,
) -> DailyAvailability:
    """
    Build the availability table for a date from an ordered event stream.

    A "confirmed" event adds the reservation to the blocking set; any
    other event removes it.
    """
    blocking: Dict[str, Reservation] = {}
    for event in events:
        reservation = event.reservation
        if reservation.date != date:
            continue
        if event.kind == ReservationStatus.CONFIRMED.value:
            blocking[reservation.id] = reservation.model_copy(
                update={"status": ReservationStatus.CONFIRMED}
            )
        else:
            blocking.pop(reservation.id, None)
    return project_availability(date, blocking.values(), sunbeds, slots)


class AvailabilityProjector:
    """
    Per-view cache of daily availability tables.

    Tables are replaced wholesale on every update; callers should treat
    a table they hold as an immutable snapshot and call get() again after
    a change notification.
    """

    def __init__(
        self,
        ledger: ReservationLedger,
        sunbeds: Optional[Sequence[Sunbed]] = None,
        slots: Optional[Sequence[str]] = None,
    ):
        self._ledger = ledger
        self._sunbeds = list(sunbeds) if sunbeds is not None else list_resources()
        self._slots = list(slots) if slots is not None else list_slots()
        self._tables: Dict[str, DailyAvailability] = {}
        self._subscription: Optional[Subscription] = None
        self._watched_date: Optional[str] = None
        self.error: Optional[str] = None
        self.error_code: Optional[BookingError] = None

    @property
    def watched_date(self) -> Optional[str]:
        """Date of the live subscription, if one is active."""
        if self._subscription and self._subscription.active:
            return self._watched_date
        return None

    def get(self, date: str) -> Optional[DailyAvailability]:
        """Latest known table for a date, or None if never loaded."""
        return self._tables.get(date)

    async def load(self, date: str) -> Optional[DailyAvailability]:
        """
        One-shot fetch of a date's table.

        A date that already has a table (cached or live) is not fetched
        again. On ledger failure the error state is set and the previous
        table, if any, is returned.
        """
        if date in self._tables:
            return self._tables[date]

        try:
            reservations = await self._ledger.find_confirmed(date)
        except LedgerError as e:
            logger.error(f"Error loading availability for {date}: {e}")
            self._set_error("Failed to load availability")
            return self._tables.get(date)

        # A live feed may have delivered while the fetch was in flight
        if date not in self._tables:
            self._tables[date] = self._project(date, reservations)
        self._clear_error()
        return self._tables[date]

    def watch(self, date: str) -> Subscription:
        """
        Keep a date's table live.

        Only one date is watched at a time; watching a new date cancels
        the previous subscription first.
        """
        if self._subscription and self._subscription.active:
            if self._watched_date == date:
                return self._subscription
            self._subscription.cancel()

        logger.info(f"Watching availability for {date}")
        self._watched_date = date
        self._subscription = self._ledger.subscribe_confirmed(
            date,
            lambda reservations: self._on_snapshot(date, reservations),
            lambda error: self._on_feed_error(date, error),
        )
        return self._subscription

    def unwatch(self) -> None:
        """Cancel the live subscription, keeping the cached tables."""
        if self._subscription:
            self._subscription.cancel()
            self._subscription = None
        self._watched_date = None

    def close(self) -> None:
        """Cancel the live subscription and drop all cached tables."""
        self.unwatch()
        self._tables.clear()
        self._clear_error()

    def is_available(self, sunbed_id: str, date: str, time: str) -> Optional[bool]:
        """
        Whether the cached table marks a slot bookable.

        Returns None when no table for the date has been loaded.
        """
        table = self._tables.get(date)
        if table is None:
            return None
        return table.is_available(sunbed_id, time)

    def available_slots(self, sunbed_id: str, date: str) -> List[str]:
        table = self._tables.get(date)
        if table is None:
            return []
        return [time for time in self._slots if table.is_available(sunbed_id, time)]

    def slot_status(
        self, date: str, time: str, sunbed_id: str, now: Optional[datetime] = None
    ) -> SlotStatus:
        """Classify a slot for display: past, booked or available."""
        now = now or datetime.now()
        if date == now.strftime("%Y-%m-%d") and time <= current_slot_floor(now):
            return "past"

        table = self._tables.get(date)
        if table is None:
            return "available"
        return "available" if table.is_available(sunbed_id, time) else "booked"

    def _project(self, date: str, reservations: Iterable[Reservation]) -> DailyAvailability:
        return project_availability(date, reservations, self._sunbeds, self._slots)

    def _on_snapshot(self, date: str, reservations: List[Reservation]) -> None:
        self._tables[date] = self._project(date, reservations)
        self._clear_error()
        logger.debug(f"Availability for {date} refreshed from {len(reservations)} reservations")

    def _on_feed_error(self, date: str, error: Exception) -> None:
        logger.error(f"Error in availability listener for {date}: {error}")
        self._set_error(f"Failed to sync availability: {error}")

    def _set_error(self, message: str) -> None:
        self.error = message
        self.error_code = BookingError.LEDGER_UNAVAILABLE

    def _clear_error(self) -> None:
        self.error = None
        self.error_code = None
