"""Commission rate models.

A commission is the barber's share, in percent, of the price of a service
or product they sold. Missing rows fall back to the shop default.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class CommissionCreate(BaseModel):
    """Rate for one barber on one service."""

    barber_id: UUID
    service_id: UUID
    percentage: Decimal = Field(..., ge=0, le=100, max_digits=5, decimal_places=2)


class Commission(BaseModel):
    """Stored service commission rate."""

    id: UUID
    barber_id: UUID
    service_id: UUID
    percentage: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductCommissionCreate(BaseModel):
    """Rate for one barber on one product."""

    barber_id: UUID
    product_id: UUID
    percentage: Decimal = Field(..., ge=0, le=100, max_digits=5, decimal_places=2)


class ProductCommission(BaseModel):
    """Stored product commission rate."""

    id: UUID
    barber_id: UUID
    product_id: UUID
    percentage: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
