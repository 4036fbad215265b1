"""Shop configuration for scheduling and commissions."""

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class ShopConfig(BaseModel):
    """
    Opening hours, slot granularity and commission defaults.

    Hours are wall-clock hours in the shop's timezone.
    """

    timezone: str = Field(
        default="Europe/Lisbon",
        description="IANA timezone the opening hours are expressed in",
    )
    opening_hour: int = Field(default=9, ge=0, le=23)
    closing_hour: int = Field(default=18, ge=1, le=24)
    slot_step_minutes: int = Field(
        default=30,
        description="Granularity of bookable start times",
        ge=5,
        le=240,
    )
    default_commission_percentage: Decimal = Field(
        default=Decimal("50"),
        description="Barber share when no explicit commission row exists",
        ge=0,
        le=100,
    )

    @model_validator(mode="after")
    def validate_hours(self) -> "ShopConfig":
        """Closing must come after opening."""
        if self.closing_hour <= self.opening_hour:
            raise ValueError("closing_hour must be after opening_hour")
        return self
