"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.actor import Actor, Role


class Session(BaseModel):
    """An active session issued by the identity provider."""

    token: str = Field(..., description="Session token (opaque string)")
    user_id: UUID
    role: Role
    barber_id: UUID | None = None
    full_name: str | None = None
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime

    def to_actor(self) -> Actor:
        """Actor performing requests under this session."""
        return Actor(
            user_id=self.user_id,
            role=self.role,
            barber_id=self.barber_id,
            full_name=self.full_name,
        )


class InviteValidation(BaseModel):
    """Result of validating a barber invite token."""

    valid: bool
    owner_id: UUID | None = None
