"""Appointment domain models and the draft booking builder."""

from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.errors import InvalidBookingError


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED)

    @property
    def blocks_slot(self) -> bool:
        """Canceled appointments free their slot; every other status holds it."""
        return self != AppointmentStatus.CANCELED


class Appointment(BaseModel):
    """Full appointment entity as stored. Appointments are never deleted."""

    id: UUID
    client_id: UUID | None
    client_name: str
    barber_id: UUID
    service_id: UUID
    date: datetime
    duration_minutes: int
    status: AppointmentStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def ends_at(self) -> datetime:
        return self.date + timedelta(minutes=self.duration_minutes)


class BookingRequest(BaseModel):
    """Validated booking input, produced by DraftBooking.build()."""

    service_id: UUID
    barber_id: UUID
    date: datetime
    client_name: str = Field(..., min_length=1, max_length=255)
    client_id: UUID | None = None
    notes: str | None = Field(None, max_length=1000)

    model_config = {"frozen": True}


class DraftBooking:
    """
    Step-by-step booking builder.

    Collects the choices a client makes while booking (service, barber,
    time, contact) and produces an immutable BookingRequest. Only shape is
    checked here; catalog state and slot availability are checked when the
    request is submitted to AppointmentService.book().

    Usage:
        request = (
            DraftBooking()
            .with_service(service_id)
            .with_barber(barber_id)
            .at(when)
            .for_client("Ana", client_id=user_id)
            .build()
        )
    """

    def __init__(self):
        self._service_id: UUID | None = None
        self._barber_id: UUID | None = None
        self._date: datetime | None = None
        self._client_name: str | None = None
        self._client_id: UUID | None = None
        self._notes: str | None = None

    def with_service(self, service_id: UUID) -> "DraftBooking":
        self._service_id = service_id
        return self

    def with_barber(self, barber_id: UUID) -> "DraftBooking":
        self._barber_id = barber_id
        return self

    def at(self, date: datetime) -> "DraftBooking":
        if date.tzinfo is None:
            raise InvalidBookingError("Booking time must be timezone-aware")
        self._date = date
        return self

    def for_client(self, client_name: str, client_id: UUID | None = None) -> "DraftBooking":
        self._client_name = client_name.strip() if client_name else client_name
        self._client_id = client_id
        return self

    def with_notes(self, notes: str | None) -> "DraftBooking":
        self._notes = notes
        return self

    def missing(self) -> list[str]:
        """Names of the steps not yet completed."""
        steps = {
            "service": self._service_id,
            "barber": self._barber_id,
            "date": self._date,
            "client": self._client_name,
        }
        return [name for name, value in steps.items() if not value]

    def build(self) -> BookingRequest:
        """
        Freeze the draft into a BookingRequest.

        Raises:
            InvalidBookingError: If a step is missing
        """
        missing = self.missing()
        if missing:
            raise InvalidBookingError(f"Booking is incomplete: missing {', '.join(missing)}")

        return BookingRequest(
            service_id=self._service_id,
            barber_id=self._barber_id,
            date=self._date,
            client_name=self._client_name,
            client_id=self._client_id,
            notes=self._notes,
        )
