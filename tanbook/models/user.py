"""
Signed-in user identity, as supplied by the identity provider.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class UserIdentity(BaseModel):
    """
    The subset of the identity provider's user record the booking core uses.
    """

    uid: str = Field(min_length=1, description="Stable user identifier")
    email: Optional[str] = Field(default=None, description="Account email")
    display_name: Optional[str] = Field(default=None, description="Public display name")

    @field_validator("email", "display_name", mode="before")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings as missing."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def booking_name(self) -> str:
        """Name denormalized onto reservations."""
        return self.display_name or "Anonymous"
