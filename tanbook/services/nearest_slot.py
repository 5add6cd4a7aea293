"""
Nearest-Slot Resolver for walk-up kiosk sessions.

A customer scanning a sunbed's QR code does not pick a slot; the
session is booked into the quarter hour closest to "now":

- within 5 minutes of a grid point, snap to it (11:02 -> 11:00,
  11:50 -> 11:45)
- from minute 55 on, snap forward to the next hour (11:58 -> 12:00)
- otherwise take the next grid point ahead (11:22 -> 11:30)
"""

from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from tanbook.config import NEAREST_SLOT_TOLERANCE_MINUTES

GRID_MINUTES = (0, 15, 30, 45)


def _resolve(now: datetime) -> Tuple[int, int]:
    """Return (hour, minute) of the resolved slot; hour may be 24."""
    minute = now.minute
    hour = now.hour

    # Grid points are 15 apart, so at most one is within tolerance
    for candidate in GRID_MINUTES:
        if candidate == 0 and minute >= 60 - NEAREST_SLOT_TOLERANCE_MINUTES:
            return hour + 1, 0
        if abs(minute - candidate) <= NEAREST_SLOT_TOLERANCE_MINUTES:
            return hour, candidate

    for candidate in GRID_MINUTES:
        if candidate > minute:
            return hour, candidate
    return hour + 1, 0


def find_best_time_slot(now: datetime) -> str:
    """
    Pick the slot a walk-up session starting at `now` is booked into.

    The hour is not wrapped; use resolve_session_start() when the
    result must carry a date across midnight.
    """
    hour, minute = _resolve(now)
    return f"{hour:02d}:{minute:02d}"


def resolve_session_start(now: datetime) -> Tuple[str, str]:
    """
    Resolve `now` to a (YYYY-MM-DD, HH:MM) pair, rolling over midnight.

    Example: 23:58 on 2025-06-01 resolves to ("2025-06-02", "00:00").
    """
    hour, minute = _resolve(now)
    day: date = now.date()
    if hour >= 24:
        day += timedelta(days=1)
        hour -= 24
    return day.strftime("%Y-%m-%d"), f"{hour:02d}:{minute:02d}"


def get_current_booking_time_slot(now: Optional[datetime] = None) -> str:
    """Slot a session started right now would be booked into."""
    return find_best_time_slot(now or datetime.now())
