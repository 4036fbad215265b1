"""Commission payment models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class PaymentStatus(str, Enum):
    """Payment lifecycle status. pending -> paid is the only transition."""

    PENDING = "pending"
    PAID = "paid"


class Payment(BaseModel):
    """
    Commission payout for one barber over a half-open period.

    period_start is inclusive and period_end exclusive. carried_over_count
    is how many of the claimed rows are dated before period_start.
    """

    id: UUID
    barber_id: UUID
    amount: Decimal
    period_start: date
    period_end: date
    status: PaymentStatus
    payment_date: datetime | None
    notes: str | None
    service_count: int
    product_sale_count: int
    carried_over_count: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID


class SettlementPeriod(BaseModel):
    """Suggested next settlement window for a barber."""

    barber_id: UUID
    period_start: date
    period_end: date

    model_config = {"frozen": True}
