"""
Reservation Ledger - the authoritative store of reservations.

The booking core only talks to the ledger through the ReservationLedger
interface: point reads, conflict lookups, inserts, status updates and
per-date / per-user live subscriptions. Two implementations exist: the
in-memory ledger below (also backing the ledger HTTP API) and the
HTTP client in tanbook.services.remote.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from loguru import logger

from tanbook.models.booking import (
    NewReservation,
    Reservation,
    ReservationEvent,
    ReservationStatus,
)

OnChange = Callable[[List[Reservation]], None]
OnError = Callable[[Exception], None]


class LedgerError(Exception):
    """Base class for ledger failures."""


class LedgerUnavailableError(LedgerError):
    """The backing store could not be reached or failed."""


class ReservationNotFoundError(LedgerError):
    """No reservation exists with the requested id."""


class ReservationConflictError(LedgerError):
    """A confirmed reservation already holds the (sunbed, date, time) slot."""


class Subscription:
    """
    Cancellation handle for a live ledger feed.

    Cancelling is idempotent.
    """

    def __init__(self, cancel: Callable[[], None], description: str = ""):
        self._cancel = cancel
        self._active = True
        self.description = description

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._cancel()
        logger.debug(f"Subscription cancelled: {self.description}")

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"<Subscription {self.description!r} {state}>"


class ReservationLedger(ABC):
    """
    Interface the booking core requires from the reservation store.

    All queries return copies; mutating a returned reservation never
    changes the ledger.
    """

    @abstractmethod
    async def get(self, reservation_id: str) -> Optional[Reservation]:
        """Point read by id."""

    @abstractmethod
    async def find_confirmed(self, date: str) -> List[Reservation]:
        """All confirmed reservations on a date."""

    @abstractmethod
    async def find_conflict(self, sunbed_id: str, date: str, time: str) -> Optional[Reservation]:
        """The confirmed reservation holding a slot, if any."""

    @abstractmethod
    async def insert(self, reservation: NewReservation) -> str:
        """Store a new reservation and return its assigned id."""

    @abstractmethod
    async def update_status(self, reservation_id: str, status: ReservationStatus) -> None:
        """Change a reservation's status. Raises ReservationNotFoundError."""

    @abstractmethod
    async def find_by_user(self, user_id: str) -> List[Reservation]:
        """Every reservation owned by a user, in any status."""

    @abstractmethod
    def subscribe_confirmed(
        self, date: str, on_change: OnChange, on_error: Optional[OnError] = None
    ) -> Subscription:
        """
        Live feed of the confirmed reservations on a date.

        Delivers the current snapshot first, then a full snapshot after
        every change, until the returned subscription is cancelled.
        """

    @abstractmethod
    def subscribe_user(
        self, user_id: str, on_change: OnChange, on_error: Optional[OnError] = None
    ) -> Subscription:
        """Live feed of every reservation owned by a user."""


def sort_user_bookings(reservations: Iterable[Reservation]) -> List[Reservation]:
    """Drop cancelled bookings and order newest date, then latest time, first."""
    bookings = [r for r in reservations if r.status != ReservationStatus.CANCELLED]
    bookings.sort(key=lambda r: (r.date, r.time), reverse=True)
    return bookings


class _Listener:
    def __init__(self, on_change: OnChange, on_error: Optional[OnError]):
        self.on_change = on_change
        self.on_error = on_error


class InMemoryReservationLedger(ReservationLedger):
    """
    In-memory ledger with synchronous listener fan-out.

    Inserts are conditional writes: a second confirmed reservation for
    the same (sunbed, date, time) is rejected under the store lock, so
    racing coordinators cannot both succeed.
    """

    def __init__(self, enforce_unique: bool = True):
        self._reservations: Dict[str, Reservation] = {}
        self._events: List[ReservationEvent] = []
        self._date_listeners: Dict[str, List[_Listener]] = {}
        self._user_listeners: Dict[str, List[_Listener]] = {}
        self._lock = asyncio.Lock()
        self.enforce_unique = enforce_unique

    # Public accessors for testing
    @property
    def reservations(self) -> Dict[str, Reservation]:
        """Access to the stored reservations."""
        return self._reservations

    @property
    def event_log(self) -> List[ReservationEvent]:
        """Ordered history of confirm/cancel/complete events."""
        return list(self._events)

    def listener_count(self) -> int:
        """Number of live subscriptions across dates and users."""
        return sum(len(v) for v in self._date_listeners.values()) + sum(
            len(v) for v in self._user_listeners.values()
        )

    def reset(self) -> None:
        """Drop all reservations, events and listeners."""
        self._reservations.clear()
        self._events.clear()
        self._date_listeners.clear()
        self._user_listeners.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        reservation = self._reservations.get(reservation_id)
        return reservation.model_copy() if reservation else None

    async def find_confirmed(self, date: str) -> List[Reservation]:
        return self._confirmed_on(date)

    async def find_conflict(self, sunbed_id: str, date: str, time: str) -> Optional[Reservation]:
        found = self._find_conflict(sunbed_id, date, time)
        return found.model_copy() if found else None

    async def find_by_user(self, user_id: str) -> List[Reservation]:
        return self._owned_by(user_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, reservation: NewReservation) -> str:
        async with self._lock:
            if self.enforce_unique and reservation.is_confirmed:
                existing = self._find_conflict(
                    reservation.sunbed_id, reservation.date, reservation.time
                )
                if existing:
                    raise ReservationConflictError(
                        f"{reservation.sunbed_id} {reservation.date} {reservation.time} "
                        f"is held by reservation {existing.id}"
                    )

            reservation_id = uuid4().hex
            stored = Reservation(id=reservation_id, **reservation.model_dump())
            self._reservations[reservation_id] = stored
            self._record(stored)

        logger.info(
            f"Reservation {reservation_id} stored: {stored.sunbed_id} "
            f"{stored.date} {stored.time} for user {stored.user_id}"
        )
        self._notify(stored)
        return reservation_id

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> None:
        async with self._lock:
            current = self._reservations.get(reservation_id)
            if current is None:
                raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

            status = ReservationStatus(status)
            if (
                self.enforce_unique
                and status == ReservationStatus.CONFIRMED
                and not current.is_confirmed
            ):
                existing = self._find_conflict(current.sunbed_id, current.date, current.time)
                if existing:
                    raise ReservationConflictError(
                        f"Cannot reconfirm {reservation_id}: slot held by {existing.id}"
                    )

            updated = current.model_copy(update={"status": status, "updated_at": datetime.now()})
            self._reservations[reservation_id] = updated
            self._record(updated)

        logger.info(f"Reservation {reservation_id} is now {status.value}")
        self._notify(updated)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe_confirmed(
        self, date: str, on_change: OnChange, on_error: Optional[OnError] = None
    ) -> Subscription:
        listener = _Listener(on_change, on_error)
        self._date_listeners.setdefault(date, []).append(listener)
        self._deliver(listener, self._confirmed_on(date), f"date {date}")
        return Subscription(
            lambda: self._remove(self._date_listeners, date, listener),
            description=f"confirmed reservations on {date}",
        )

    def subscribe_user(
        self, user_id: str, on_change: OnChange, on_error: Optional[OnError] = None
    ) -> Subscription:
        listener = _Listener(on_change, on_error)
        self._user_listeners.setdefault(user_id, []).append(listener)
        self._deliver(listener, self._owned_by(user_id), f"user {user_id}")
        return Subscription(
            lambda: self._remove(self._user_listeners, user_id, listener),
            description=f"reservations of user {user_id}",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_conflict(self, sunbed_id: str, date: str, time: str) -> Optional[Reservation]:
        for reservation in self._reservations.values():
            if reservation.is_confirmed and reservation.slot_key == (sunbed_id, date, time):
                return reservation
        return None

    def _confirmed_on(self, date: str) -> List[Reservation]:
        return [
            r.model_copy()
            for r in self._reservations.values()
            if r.date == date and r.is_confirmed
        ]

    def _owned_by(self, user_id: str) -> List[Reservation]:
        return [r.model_copy() for r in self._reservations.values() if r.user_id == user_id]

    def _record(self, reservation: Reservation) -> None:
        self._events.append(
            ReservationEvent(kind=reservation.status.value, reservation=reservation)
        )

    def _notify(self, reservation: Reservation) -> None:
        # Copy the lists: a callback may cancel its own subscription
        for listener in list(self._date_listeners.get(reservation.date, [])):
            self._deliver(listener, self._confirmed_on(reservation.date), f"date {reservation.date}")
        for listener in list(self._user_listeners.get(reservation.user_id, [])):
            self._deliver(listener, self._owned_by(reservation.user_id), f"user {reservation.user_id}")

    @staticmethod
    def _deliver(listener: _Listener, snapshot: List[Reservation], feed: str) -> None:
        try:
            listener.on_change(snapshot)
        except Exception as e:
            logger.error(f"Subscriber for {feed} failed to handle snapshot: {e}")
            if listener.on_error:
                listener.on_error(e)

    @staticmethod
    def _remove(registry: Dict[str, List[_Listener]], key: str, listener: _Listener) -> None:
        listeners = registry.get(key)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                del registry[key]
