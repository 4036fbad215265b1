"""Product sale records, settled alongside completed services."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class ProductSaleCreate(BaseModel):
    """Data for recording a retail sale made by a barber."""

    barber_id: UUID
    product_id: UUID
    client_name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    date: datetime
    client_id: UUID | None = None


class ProductSale(BaseModel):
    """Stored product sale."""

    id: UUID
    barber_id: UUID
    product_id: UUID
    client_id: UUID | None
    client_name: str
    quantity: int
    unit_price: Decimal
    date: datetime
    validated_by_admin: bool
    validated_at: datetime | None
    payment_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity
