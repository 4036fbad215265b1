"""
Domain events for the barbershop.

Immutable event objects describing state changes. A service publishes what
happened after its transaction commits; handlers react without the
publisher knowing who is listening.

Event Categories:
- AppointmentEvent: Appointment lifecycle (booked, confirmed, completed, canceled)
- ServiceValidated: Admin approved a completed service for settlement
- PaymentEvent: Commission payment lifecycle (settled, paid)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BarbershopEvent:
    """Base class for all barbershop domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# APPOINTMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class AppointmentEvent(BarbershopEvent):
    """Events related to appointment lifecycle."""
    appointment: Any = None  # Appointment - Any avoids a models import cycle


@dataclass(frozen=True)
class AppointmentBooked(AppointmentEvent):
    """A client booked a new appointment (pending)."""

    @classmethod
    def create(cls, appointment: Any) -> "AppointmentBooked":
        return cls(appointment=appointment)


@dataclass(frozen=True)
class AppointmentConfirmed(AppointmentEvent):
    """An admin confirmed a pending appointment."""

    @classmethod
    def create(cls, appointment: Any) -> "AppointmentConfirmed":
        return cls(appointment=appointment)


@dataclass(frozen=True)
class AppointmentCompleted(AppointmentEvent):
    """Appointment completed; its completed service record was created."""
    completed_service: Any = None

    @classmethod
    def create(cls, appointment: Any, completed_service: Any) -> "AppointmentCompleted":
        return cls(appointment=appointment, completed_service=completed_service)


@dataclass(frozen=True)
class AppointmentCanceled(AppointmentEvent):
    """Appointment canceled; its slot is free again."""

    @classmethod
    def create(cls, appointment: Any) -> "AppointmentCanceled":
        return cls(appointment=appointment)


# =============================================================================
# VALIDATION EVENTS
# =============================================================================


@dataclass(frozen=True)
class ServiceValidated(BarbershopEvent):
    """A completed service or product sale was validated by an admin."""
    record: Any = None
    record_type: str = "completed_service"

    @classmethod
    def create(cls, record: Any, record_type: str = "completed_service") -> "ServiceValidated":
        return cls(record=record, record_type=record_type)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentEvent(BarbershopEvent):
    """Events related to commission payments."""
    payment: Any = None


@dataclass(frozen=True)
class PaymentSettled(PaymentEvent):
    """A settlement produced a pending payment."""

    @classmethod
    def create(cls, payment: Any) -> "PaymentSettled":
        return cls(payment=payment)


@dataclass(frozen=True)
class PaymentPaid(PaymentEvent):
    """A pending payment was marked paid."""

    @classmethod
    def create(cls, payment: Any) -> "PaymentPaid":
        return cls(payment=payment)
