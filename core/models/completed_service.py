"""Completed service records - the unit of commission settlement."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class CompletedServiceCreate(BaseModel):
    """
    Data for recording a performed service.

    price is the amount charged, trusted as a snapshot. appointment_id is
    set when the record is derived from a completed appointment and absent
    for walk-ins.
    """

    barber_id: UUID
    service_id: UUID
    client_name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    date: datetime
    client_id: UUID | None = None
    appointment_id: UUID | None = None


class CompletedService(BaseModel):
    """Stored completed service. Only validation and the settlement claim change."""

    id: UUID
    barber_id: UUID
    service_id: UUID
    client_id: UUID | None
    client_name: str
    price: Decimal
    date: datetime
    appointment_id: UUID | None
    validated_by_admin: bool
    validated_at: datetime | None
    payment_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_settled(self) -> bool:
        return self.payment_id is not None
