"""Barber domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class PaymentPeriod(str, Enum):
    """How often a barber's commissions are settled."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class CalendarVisibility(str, Enum):
    """Whose appointments a barber may see in calendar views."""

    OWN = "own"
    ALL = "all"
    SELECTED = "selected"


class BarberCreate(BaseModel):
    """Data required to create a barber profile.

    The identity is linked later, when the invitee redeems their invite.
    """

    display_name: str = Field(..., min_length=1, max_length=255)
    nif: str = Field(..., min_length=1, max_length=20)
    iban: str = Field(..., min_length=15, max_length=34)
    payment_period: PaymentPeriod = PaymentPeriod.MONTHLY
    calendar_visibility: CalendarVisibility = CalendarVisibility.OWN
    visible_barber_ids: list[UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_visibility(self) -> "BarberCreate":
        """A selected list only makes sense with SELECTED visibility."""
        if self.visible_barber_ids and self.calendar_visibility != CalendarVisibility.SELECTED:
            raise ValueError("visible_barber_ids requires calendar_visibility 'selected'")
        return self


class BarberUpdate(BaseModel):
    """Data that can be updated on a barber. All fields optional."""

    display_name: str | None = Field(None, min_length=1, max_length=255)
    nif: str | None = Field(None, min_length=1, max_length=20)
    iban: str | None = Field(None, min_length=15, max_length=34)
    payment_period: PaymentPeriod | None = None
    is_active: bool | None = None
    calendar_visibility: CalendarVisibility | None = None
    visible_barber_ids: list[UUID] | None = None


class Barber(BaseModel):
    """Full barber entity as stored."""

    id: UUID
    user_id: UUID | None
    display_name: str
    nif: str
    iban: str
    payment_period: PaymentPeriod
    is_active: bool
    calendar_visibility: CalendarVisibility
    visible_barber_ids: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_bookable(self) -> bool:
        """Inactive barbers keep their history but take no new bookings."""
        return self.is_active
