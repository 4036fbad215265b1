"""Actor model - the authenticated caller of a core operation."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, model_validator


class Role(str, Enum):
    """Role granted to an identity by the identity provider."""

    ADMIN = "admin"
    BARBER = "barber"
    CLIENT = "client"


class Actor(BaseModel):
    """Who is performing an operation, as supplied by the identity provider."""

    user_id: UUID
    role: Role
    barber_id: UUID | None = None
    full_name: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def barber_requires_profile(self) -> "Actor":
        """Barbers always act through their barber profile."""
        if self.role == Role.BARBER and self.barber_id is None:
            raise ValueError("Barber actors require barber_id")
        return self

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def owns_barber(self, barber_id: UUID) -> bool:
        """Whether this actor is the barber identified by barber_id."""
        return self.role == Role.BARBER and self.barber_id == barber_id
