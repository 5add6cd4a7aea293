"""
Prepaid-hours wallet data models.
"""

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class Purchase(BaseModel):
    """A recorded top-up of prepaid hours."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    date: str = Field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d"))
    hours: float = Field(gt=0, description="Hours added to the wallet")
    amount: float = Field(default=0.0, ge=0, description="Amount paid, recorded as-is")


class WalletData(BaseModel):
    """
    A user's prepaid tanning balance.

    Balances are expressed in hours; one 15-minute session costs 0.25.
    """

    user_id: str
    remaining: float = Field(default=0.0, description="Bookable hours left")
    hours_used_this_month: float = Field(default=0.0, ge=0)
    purchase_history: List[Purchase] = Field(
        default_factory=list, description="Purchases, newest first"
    )
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    last_updated: datetime = Field(default_factory=datetime.now)

    @field_validator("remaining")
    @classmethod
    def clamp_remaining(cls, v: float) -> float:
        """A balance never goes below zero."""
        return max(0.0, v)

    @property
    def remaining_minutes(self) -> int:
        return int(round(self.remaining * 60))

    model_config = {"validate_assignment": True}
