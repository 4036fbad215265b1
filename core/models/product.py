"""Retail product models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class ProductCategory(str, Enum):
    """Shelf category of a retail product."""

    SHAMPOO = "shampoo"
    CONDITIONER = "conditioner"
    STYLING = "styling"
    BEARD = "beard"
    SKINCARE = "skincare"
    EQUIPMENT = "equipment"
    OTHER = "other"


class ProductCreate(BaseModel):
    """Data required to create a product."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    cost_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: ProductCategory = ProductCategory.OTHER
    sku: str | None = Field(None, max_length=64)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True


class Product(BaseModel):
    """Full product entity as stored."""

    id: UUID
    name: str
    description: str | None
    price: Decimal
    cost_price: Decimal
    category: ProductCategory
    sku: str | None
    stock_quantity: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
