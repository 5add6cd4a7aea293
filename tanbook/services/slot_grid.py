"""
Slot Grid - the static catalog of sunbeds and daily time slots.
"""

from datetime import datetime
from typing import List, Optional

from tanbook.config import CLOSING_HOUR, OPENING_HOUR, SLOT_MINUTES, SUNBEDS
from tanbook.models.booking import Sunbed


def generate_time_slots(
    start_hour: int = OPENING_HOUR,
    end_hour: int = CLOSING_HOUR,
    step_minutes: int = SLOT_MINUTES,
) -> List[str]:
    """
    Generate the slot start times for one day.

    Args:
        start_hour: First hour of the operating window (inclusive)
        end_hour: Last hour of the operating window (exclusive)
        step_minutes: Slot length in minutes

    Returns:
        Zero-padded "HH:MM" strings in ascending order
    """
    slots = []
    for hour in range(start_hour, end_hour):
        for minute in range(0, 60, step_minutes):
            slots.append(f"{hour:02d}:{minute:02d}")
    return slots


TIME_SLOTS: List[str] = generate_time_slots()

_SUNBED_CATALOG: List[Sunbed] = [Sunbed(**entry) for entry in SUNBEDS]
_SUNBEDS_BY_ID = {sunbed.id: sunbed for sunbed in _SUNBED_CATALOG}
_SLOT_SET = frozenset(TIME_SLOTS)


def list_resources() -> List[Sunbed]:
    """All sunbeds in catalog order."""
    return list(_SUNBED_CATALOG)


def list_slots() -> List[str]:
    """All bookable slot times in ascending order."""
    return list(TIME_SLOTS)


def get_sunbed(sunbed_id: str) -> Optional[Sunbed]:
    return _SUNBEDS_BY_ID.get(sunbed_id)


def is_valid_slot(time: str) -> bool:
    return time in _SLOT_SET


def current_slot_floor(now: datetime) -> str:
    """Floor a timestamp to its quarter hour, e.g. 14:37 -> "14:30"."""
    minute = (now.minute // SLOT_MINUTES) * SLOT_MINUTES
    return f"{now.hour:02d}:{minute:02d}"


def is_valid_date(value: str) -> bool:
    """Whether a string is a calendar date in YYYY-MM-DD form."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").strftime("%Y-%m-%d") == value
    except (TypeError, ValueError):
        return False
