"""
Booking-related data models.
"""

from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ReservationStatus(str, Enum):
    """Lifecycle state of a reservation."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingError(str, Enum):
    """Reasons a booking operation can fail."""

    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    UNKNOWN_RESOURCE = "UNKNOWN_RESOURCE"
    INVALID_SLOT = "INVALID_SLOT"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    OUTSIDE_OPERATING_HOURS = "OUTSIDE_OPERATING_HOURS"
    NOT_FOUND = "NOT_FOUND"
    CANCEL_FAILED = "CANCEL_FAILED"
    LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"


class Sunbed(BaseModel):
    """
    A bookable tanning unit from the static catalog.
    """

    id: str = Field(description="Unique sunbed identifier")
    name: str = Field(description="Display name")
    type: Literal["standard", "premium", "standing"] = Field(description="Sunbed category")
    description: str = Field(default="", description="Short marketing description")
    price_multiplier: float = Field(default=1.0, gt=0, description="Multiplier on the base price")
    max_session_time: int = Field(gt=0, description="Maximum session length in minutes")
    features: List[str] = Field(default_factory=list, description="Feature tags")

    model_config = ConfigDict(frozen=True)


class NewReservation(BaseModel):
    """
    A reservation as submitted to the ledger, before it has an id.
    """

    user_id: str = Field(description="Owning user identifier")
    user_name: str = Field(default="Anonymous", description="Owner display name at booking time")
    user_email: str = Field(default="", description="Owner email at booking time")
    sunbed_id: str = Field(description="Booked sunbed")
    sunbed_name: str = Field(default="", description="Sunbed display name at booking time")
    date: str = Field(pattern=DATE_PATTERN, description="Booking date (YYYY-MM-DD)")
    time: str = Field(pattern=TIME_PATTERN, description="Slot start (HH:MM)")
    duration: int = Field(default=15, gt=0, description="Duration in minutes")
    status: ReservationStatus = Field(default=ReservationStatus.CONFIRMED)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def slot_key(self) -> tuple:
        """The (sunbed, date, time) triple this reservation occupies."""
        return (self.sunbed_id, self.date, self.time)

    @property
    def is_confirmed(self) -> bool:
        return self.status == ReservationStatus.CONFIRMED


class Reservation(NewReservation):
    """
    A reservation stored in the ledger.
    """

    id: str = Field(description="Ledger-assigned identifier")


class ReservationEvent(BaseModel):
    """
    A change to the ledger: a reservation was confirmed or left the
    confirmed state.
    """

    kind: Literal["confirmed", "cancelled", "completed"]
    reservation: Reservation
    occurred_at: datetime = Field(default_factory=datetime.now)


class DailyAvailability(BaseModel):
    """
    Bookability of every sunbed and slot for one date.

    Instances are immutable snapshots; a change to the underlying
    reservations produces a new instance. The nested table is exposed
    through read-only mappings.
    """

    date: str = Field(pattern=DATE_PATTERN)
    sunbed_availability: Mapping[str, Mapping[str, bool]] = Field(
        description="sunbed id -> slot time -> True if bookable"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("sunbed_availability")
    @classmethod
    def read_only(cls, v: Mapping[str, Mapping[str, bool]]) -> Mapping[str, Mapping[str, bool]]:
        return MappingProxyType(
            {sunbed_id: MappingProxyType(dict(slots)) for sunbed_id, slots in v.items()}
        )

    @field_serializer("sunbed_availability")
    def dump_table(self, v: Mapping[str, Mapping[str, bool]]) -> Dict[str, Dict[str, bool]]:
        return {sunbed_id: dict(slots) for sunbed_id, slots in v.items()}

    def is_available(self, sunbed_id: str, time: str) -> bool:
        return self.sunbed_availability.get(sunbed_id, {}).get(time, False)

    def available_slots(self, sunbed_id: str) -> List[str]:
        slots = self.sunbed_availability.get(sunbed_id, {})
        return [time for time, free in slots.items() if free]


class BookingResult(BaseModel):
    """
    Result of a booking or cancellation attempt.
    """

    success: bool = Field(description="Whether the operation was successful")
    reservation_id: Optional[str] = Field(default=None, description="Reservation identifier")
    message: str = Field(description="Human-readable result message")
    error_code: Optional[BookingError] = Field(default=None, description="Error code if failed")


class ScanResult(BaseModel):
    """
    Result of a walk-up kiosk session start.
    """

    success: bool
    message: str
    sunbed_id: str
    date: Optional[str] = None
    time: Optional[str] = None
    session_end: Optional[str] = Field(default=None, description="Session end (HH:MM)")
    already_booked: bool = Field(default=False, description="Granted from an existing booking")
    hours_deducted: float = 0.0
    reservation_id: Optional[str] = None
    error_code: Optional[BookingError] = None

    @field_validator("hours_deducted")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("hours_deducted cannot be negative")
        return v
