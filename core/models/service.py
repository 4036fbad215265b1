"""Service catalog domain models.

Prices are Decimal currency amounts (NUMERIC(10, 2) in the database).
A completed service copies the price at the time it is performed, so a
later price change never rewrites history.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class ServiceCreate(BaseModel):
    """Data required to create a service."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    duration_minutes: int = Field(..., ge=5, le=480)
    is_active: bool = True


class ServiceUpdate(BaseModel):
    """Data that can be updated on a service. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    duration_minutes: int | None = Field(None, ge=5, le=480)
    is_active: bool | None = None


class Service(BaseModel):
    """Full service entity as stored."""

    id: UUID
    name: str
    description: str | None
    price: Decimal
    duration_minutes: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
